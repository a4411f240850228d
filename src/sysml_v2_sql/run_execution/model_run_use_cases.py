"""Run execution use-case services."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

import httpx

from sysml_v2_sql.bundled_assets import bundled_ddl
from sysml_v2_sql.configuration import (
    Configuration,
    ConfigurationError,
    ImportSettings,
    load_configuration,
)
from sysml_v2_sql.database_gateway import DatabaseGateway, DatabaseGatewayError
from sysml_v2_sql.ddl_emission import generate_ddl
from sysml_v2_sql.model_fetching import (
    FetchError,
    FetchTimeoutError,
    ModelReference,
    PaginatedFetcher,
    resolve_model_reference,
)
from sysml_v2_sql.model_import import (
    ElementImporter,
    ElementImportError,
    ImportCatalog,
    ImportSummary,
    dump_element_document,
    load_element_document,
)
from sysml_v2_sql.schema_resolution import SchemaError, load_schema_document, resolve_schema

from .run_contracts import (
    FetchOutcome,
    FetchRequest,
    ImportOptions,
    ImportOutcome,
    ImportRequest,
    SchemaSqlOutcome,
    SchemaSqlRequest,
)

_LOGGER = logging.getLogger(__name__)

_RUN_ERRORS = (
    ConfigurationError,
    SchemaError,
    ElementImportError,
    FetchError,
    DatabaseGatewayError,
    OSError,
)


class RunExecutionError(Exception):
    """Raised when a run use case cannot be completed."""


def initialize_database(database_path: Path | str) -> Path:
    """Create the bundled tables and indexes; safe to repeat."""
    path = Path(database_path)
    try:
        with DatabaseGateway.open(path) as gateway:
            gateway.execute_ddl(bundled_ddl())
    except DatabaseGatewayError as exc:
        raise RunExecutionError(str(exc)) from exc
    _LOGGER.info("initialized database %s", path)
    return path.resolve()


def generate_schema_sql(request: SchemaSqlRequest) -> SchemaSqlOutcome:
    """Regenerate DDL from a JSON schema, optionally dumping and applying it."""
    try:
        schema_text = Path(request.schema_path).read_text(encoding="utf-8")
        ddl = generate_ddl(resolve_schema(load_schema_document(schema_text)))
        dump_path = None
        if request.dump_sql_path is not None:
            dump_path = Path(request.dump_sql_path)
            dump_path.write_text(ddl, encoding="utf-8")
        database_path = None
        if request.database_path is not None and request.initialize:
            database_path = Path(request.database_path)
            with DatabaseGateway.open(database_path) as gateway:
                gateway.execute_ddl(ddl)
    except _RUN_ERRORS as exc:
        raise RunExecutionError(str(exc)) from exc
    return SchemaSqlOutcome(
        ddl=ddl,
        dump_path=dump_path.resolve() if dump_path else None,
        database_path=database_path.resolve() if database_path else None,
    )


def import_element_file(
    request: ImportRequest, *, environ: Mapping[str, str] | None = None
) -> ImportOutcome:
    """Import a JSON element document into an initialized database."""
    try:
        configuration = load_configuration(request.config_path, environ=environ)
        records = load_element_document(request.input_path)
        summary = _import_records(request.database_path, records, configuration, request.options)
    except _RUN_ERRORS as exc:
        raise RunExecutionError(str(exc)) from exc
    return ImportOutcome(database_path=Path(request.database_path).resolve(), summary=summary)


def fetch_and_import(
    request: FetchRequest,
    *,
    environ: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchOutcome:
    """Fetch one commit of a model, then dump and/or import its elements."""
    if request.database_path is None and not request.skip_import:
        raise RunExecutionError("A database path is required unless import is skipped.")
    try:
        configuration = load_configuration(request.config_path, environ=environ)
        base_url = request.base_url or configuration.server.base_url
        if base_url is None:
            raise RunExecutionError(
                "No API base URL given on the command line or in the configuration."
            )
        reference, records, page_count = asyncio.run(
            _fetch(base_url, request, configuration, transport)
        )
        dump_path = None
        if request.dump_json_path is not None:
            dump_path = dump_element_document(
                records, request.dump_json_path, pretty=request.pretty
            )
            _LOGGER.info("wrote %d elements to %s", len(records), dump_path)
        summary = None
        if not request.skip_import and request.database_path is not None:
            summary = _import_records(
                request.database_path, records, configuration, request.options
            )
    except _RUN_ERRORS as exc:
        raise RunExecutionError(str(exc)) from exc
    return FetchOutcome(
        reference=reference,
        element_count=len(records),
        page_count=page_count,
        dump_path=dump_path,
        summary=summary,
    )


async def _fetch(
    base_url: str,
    request: FetchRequest,
    configuration: Configuration,
    transport: httpx.AsyncBaseTransport | None,
) -> tuple[ModelReference, Sequence[Any], int]:
    server = configuration.server
    if request.allow_invalid_certs:
        server = replace(server, verify_tls=False)
    if request.page_size is not None:
        server = replace(server, page_size=request.page_size)
    async with PaginatedFetcher(
        base_url, server, configuration.credentials, transport=transport
    ) as fetcher:
        try:
            async with asyncio.timeout(server.overall_timeout_seconds):
                reference = await resolve_model_reference(fetcher, request.project, request.commit)
                fetched = await fetcher.fetch_elements(reference)
        except TimeoutError as exc:
            raise FetchTimeoutError(base_url, server.overall_timeout_seconds) from exc
    return reference, fetched.records, fetched.page_count


def _import_records(
    database_path: str,
    records: Sequence[Any],
    configuration: Configuration,
    options: ImportOptions,
) -> ImportSummary:
    settings = _merge_import_settings(configuration.import_settings, options)
    catalog = _load_catalog(options.schema_path or configuration.schema_path)
    with DatabaseGateway.open(database_path) as gateway:
        return ElementImporter(gateway, catalog, settings).import_elements(records)


def _merge_import_settings(settings: ImportSettings, options: ImportOptions) -> ImportSettings:
    return ImportSettings(
        disable_foreign_key_checks=settings.disable_foreign_key_checks
        or options.disable_foreign_key_checks,
        vacuum=settings.vacuum or options.vacuum,
        tolerant_booleans=settings.tolerant_booleans or options.tolerant_booleans,
    )


def _load_catalog(schema_path: Path | str | None) -> ImportCatalog:
    if schema_path is None:
        return ImportCatalog.bundled()
    return ImportCatalog.from_schema_text(Path(schema_path).read_text(encoding="utf-8"))
