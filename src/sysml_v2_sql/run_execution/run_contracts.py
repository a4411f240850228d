"""Run execution entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from sysml_v2_sql.model_fetching import CommitSelector, ModelReference, ProjectSelector
from sysml_v2_sql.model_import import ImportSummary


@dataclass(frozen=True)
class ImportOptions:
    """Import switches given on the command line; they can only turn options on."""

    vacuum: bool = False
    disable_foreign_key_checks: bool = False
    tolerant_booleans: bool = False
    schema_path: str | None = None


@dataclass(frozen=True)
class ImportRequest:
    """Input contract for importing a JSON element document."""

    database_path: str
    input_path: str
    config_path: str | None = None
    options: ImportOptions = field(default_factory=ImportOptions)


@dataclass(frozen=True)
class ImportOutcome:
    """Output contract for one completed import."""

    database_path: Path
    summary: ImportSummary


@dataclass(frozen=True)
class FetchRequest:  # pylint: disable=too-many-instance-attributes
    """Input contract for fetching a model and optionally importing it."""

    database_path: str | None
    base_url: str | None
    project: ProjectSelector
    commit: CommitSelector = field(default_factory=CommitSelector)
    config_path: str | None = None
    allow_invalid_certs: bool = False
    page_size: int | None = None
    dump_json_path: str | None = None
    pretty: bool = False
    skip_import: bool = False
    options: ImportOptions = field(default_factory=ImportOptions)


@dataclass(frozen=True)
class FetchOutcome:
    """Output contract for one completed fetch."""

    reference: ModelReference
    element_count: int
    page_count: int
    dump_path: Path | None
    summary: ImportSummary | None


@dataclass(frozen=True)
class SchemaSqlRequest:
    """Input contract for regenerating DDL from a JSON schema."""

    schema_path: str
    dump_sql_path: str | None = None
    database_path: str | None = None
    initialize: bool = True


@dataclass(frozen=True)
class SchemaSqlOutcome:
    """Output contract for DDL regeneration."""

    ddl: str
    dump_path: Path | None
    database_path: Path | None
