"""DDL emission exports."""

from .ddl_emitter import (
    RELATION_SOURCE_FIELD,
    RELATION_TARGET_FIELD,
    ColumnTypeConflictError,
    build_relational_schema,
    column_type_for,
    emit_ddl,
    generate_ddl,
    partition_definitions,
    quote_identifier,
)
from .ddl_models import (
    ELEMENTS_TABLE,
    ORIGIN_COLUMN,
    RELATION_NAME_COLUMN,
    RELATIONS_TABLE,
    TARGET_COLUMN,
    ColumnType,
    RelationalColumn,
    RelationalSchema,
    SchemaPartition,
    TableLayout,
)

__all__ = [
    "RELATION_SOURCE_FIELD",
    "RELATION_TARGET_FIELD",
    "ColumnTypeConflictError",
    "build_relational_schema",
    "column_type_for",
    "emit_ddl",
    "generate_ddl",
    "partition_definitions",
    "quote_identifier",
    "ELEMENTS_TABLE",
    "ORIGIN_COLUMN",
    "RELATION_NAME_COLUMN",
    "RELATIONS_TABLE",
    "TARGET_COLUMN",
    "ColumnType",
    "RelationalColumn",
    "RelationalSchema",
    "SchemaPartition",
    "TableLayout",
]
