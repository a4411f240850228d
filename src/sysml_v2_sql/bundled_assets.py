"""Access to the schema, DDL and queries shipped inside the package."""

from __future__ import annotations

from importlib import resources
from importlib.resources.abc import Traversable


def _assets() -> Traversable:
    return resources.files("sysml_v2_sql").joinpath("assets")


def bundled_schema_text() -> str:
    """Return the bundled SysML JSON schema."""
    return _assets().joinpath("sysml_schema.json").read_text(encoding="utf-8")


def bundled_ddl() -> str:
    """Return the checked-in DDL generated from the bundled schema."""
    return _assets().joinpath("schema.sql").read_text(encoding="utf-8")


def bundled_query_names() -> tuple[str, ...]:
    queries = _assets().joinpath("queries")
    return tuple(sorted(entry.name for entry in queries.iterdir() if entry.name.endswith(".sql")))


def bundled_query(name: str) -> str:
    """Return the text of one shipped example query, e.g. `GetStructureElements.sql`."""
    if name not in bundled_query_names():
        raise FileNotFoundError(f"No bundled query named '{name}'.")
    return _assets().joinpath("queries", name).read_text(encoding="utf-8")
