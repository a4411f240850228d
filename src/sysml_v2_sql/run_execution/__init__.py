"""Run execution domain exports."""

from .model_run_use_cases import (
    RunExecutionError,
    fetch_and_import,
    generate_schema_sql,
    import_element_file,
    initialize_database,
)
from .run_contracts import (
    FetchOutcome,
    FetchRequest,
    ImportOptions,
    ImportOutcome,
    ImportRequest,
    SchemaSqlOutcome,
    SchemaSqlRequest,
)

__all__ = [
    "FetchOutcome",
    "FetchRequest",
    "ImportOptions",
    "ImportOutcome",
    "ImportRequest",
    "SchemaSqlOutcome",
    "SchemaSqlRequest",
    "RunExecutionError",
    "fetch_and_import",
    "generate_schema_sql",
    "import_element_file",
    "initialize_database",
]
