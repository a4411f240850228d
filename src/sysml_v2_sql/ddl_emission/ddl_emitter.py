"""SQL DDL generation from resolved schema definitions."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from sysml_v2_sql.schema_resolution import (
    IDENTIFIER_PROPERTY,
    TYPE_TAG_PROPERTY,
    DefinitionVariant,
    FieldKind,
    SchemaDefinition,
    SchemaError,
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

_LOGGER = logging.getLogger(__name__)

RELATION_SOURCE_FIELD = "source"
RELATION_TARGET_FIELD = "target"

_COLUMN_TYPES = {
    FieldKind.STRING: ColumnType.TEXT,
    FieldKind.INTEGER: ColumnType.INTEGER,
    FieldKind.NUMBER: ColumnType.REAL,
    FieldKind.BOOLEAN: ColumnType.INTEGER,
    FieldKind.ARRAY: ColumnType.TEXT,
    FieldKind.OBJECT: ColumnType.TEXT,
}
_ELEMENT_INDEX_CANDIDATES = (
    "declaredName",
    "declaredShortName",
    "isLibraryElement",
    "name",
    "qualifiedName",
)
_ELEMENT_FRAMEWORK_COLUMNS = (
    RelationalColumn(IDENTIFIER_PROPERTY, ColumnType.TEXT, nullable=False, primary_key=True),
    RelationalColumn(TYPE_TAG_PROPERTY, ColumnType.TEXT, nullable=False),
)
_RELATION_FRAMEWORK_COLUMNS = (
    RelationalColumn(IDENTIFIER_PROPERTY, ColumnType.TEXT, nullable=False, primary_key=True),
    RelationalColumn(TYPE_TAG_PROPERTY, ColumnType.TEXT),
    RelationalColumn(RELATION_NAME_COLUMN, ColumnType.TEXT, nullable=False),
    RelationalColumn(ORIGIN_COLUMN, ColumnType.TEXT, nullable=False, references=ELEMENTS_TABLE),
    RelationalColumn(TARGET_COLUMN, ColumnType.TEXT, nullable=False, references=ELEMENTS_TABLE),
)


class ColumnTypeConflictError(SchemaError):
    """Raised when one column name would need two different SQL types."""

    def __init__(self, field: str, type_a: ColumnType, type_b: ColumnType, table: str) -> None:
        self.field = field
        self.type_a = type_a
        self.type_b = type_b
        self.table = table
        super().__init__(
            f"Field '{field}' maps to both {type_a.value} and {type_b.value} in table '{table}'."
        )


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier, escaping embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def column_type_for(kind: FieldKind) -> ColumnType | None:
    """Return the column type for a field kind, or None for references."""
    return _COLUMN_TYPES.get(kind)


def partition_definitions(
    definitions: Mapping[str, SchemaDefinition],
    *,
    source_field: str = RELATION_SOURCE_FIELD,
    target_field: str = RELATION_TARGET_FIELD,
) -> SchemaPartition:
    """Split object definitions into element-like and relation-like names.

    A definition is relation-like when it carries reference fields for both
    endpoints of a relationship.
    """
    element_like: list[str] = []
    relation_like: list[str] = []
    for name in sorted(definitions):
        definition = definitions[name]
        if definition.variant is not DefinitionVariant.OBJECT:
            continue
        source = definition.field(source_field)
        target = definition.field(target_field)
        if (
            source is not None
            and target is not None
            and source.is_reference
            and target.is_reference
        ):
            relation_like.append(name)
        else:
            element_like.append(name)
    return SchemaPartition(element_like=tuple(element_like), relation_like=tuple(relation_like))


def build_relational_schema(
    definitions: Mapping[str, SchemaDefinition],
    partition: SchemaPartition | None = None,
) -> RelationalSchema:
    """Compute the column layout of the elements and relations tables."""
    partition = partition or partition_definitions(definitions)
    elements = _build_table(
        ELEMENTS_TABLE,
        _ELEMENT_FRAMEWORK_COLUMNS,
        [definitions[name] for name in partition.element_like],
    )
    relations = _build_table(
        RELATIONS_TABLE,
        _RELATION_FRAMEWORK_COLUMNS,
        [definitions[name] for name in partition.relation_like],
    )
    element_indexes = (TYPE_TAG_PROPERTY,) + tuple(
        name for name in _ELEMENT_INDEX_CANDIDATES if elements.column(name) is not None
    )
    return RelationalSchema(
        elements=TableLayout(elements.name, elements.columns, element_indexes),
        relations=TableLayout(
            relations.name,
            relations.columns,
            (ORIGIN_COLUMN, TARGET_COLUMN, RELATION_NAME_COLUMN),
        ),
    )


def emit_ddl(schema: RelationalSchema) -> str:
    """Render the CREATE TABLE and CREATE INDEX statements for a schema."""
    statements = [_create_table(schema.elements), _create_table(schema.relations)]
    index_lines = [
        _create_index(table.name, column)
        for table in (schema.elements, schema.relations)
        for column in table.indexed_columns
    ]
    statements.append("\n".join(index_lines))
    return "\n\n".join(statements) + "\n"


def generate_ddl(definitions: Mapping[str, SchemaDefinition]) -> str:
    """Resolve definitions straight to DDL text."""
    schema = build_relational_schema(definitions)
    _LOGGER.info(
        "generated %d element columns and %d relation columns",
        len(schema.elements.columns),
        len(schema.relations.columns),
    )
    return emit_ddl(schema)


def _build_table(
    table: str,
    framework_columns: Sequence[RelationalColumn],
    definitions: Sequence[SchemaDefinition],
) -> TableLayout:
    columns: dict[str, RelationalColumn] = {column.name: column for column in framework_columns}
    for definition in definitions:
        for descriptor in definition.fields:
            column_type = column_type_for(descriptor.kind)
            if column_type is None:
                continue
            existing = columns.get(descriptor.name)
            if existing is None:
                columns[descriptor.name] = RelationalColumn(descriptor.name, column_type)
            elif existing.column_type is not column_type:
                raise ColumnTypeConflictError(
                    descriptor.name, existing.column_type, column_type, table
                )
    return TableLayout(name=table, columns=tuple(columns.values()))


def _create_table(table: TableLayout) -> str:
    column_lines = ",\n".join(f"    {_column_definition(column)}" for column in table.columns)
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(table.name)} (\n{column_lines}\n) STRICT;"


def _column_definition(column: RelationalColumn) -> str:
    parts = [quote_identifier(column.name), column.column_type.value]
    if column.primary_key:
        parts.append("PRIMARY KEY")
    if not column.nullable:
        parts.append("NOT NULL")
    if column.references is not None:
        parts.append(
            f"REFERENCES {quote_identifier(column.references)}"
            f"({quote_identifier(IDENTIFIER_PROPERTY)})"
            " DEFERRABLE INITIALLY DEFERRED"
        )
    return " ".join(parts)


def _create_index(table: str, column: str) -> str:
    return (
        f"CREATE INDEX IF NOT EXISTS {quote_identifier(f'{table}.{column}')}"
        f" ON {quote_identifier(table)}({quote_identifier(column)});"
    )
