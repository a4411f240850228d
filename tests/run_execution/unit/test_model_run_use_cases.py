"""Tests for run execution use-case services."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path

import httpx
import pytest
from sysml_v2_sql.bundled_assets import bundled_schema_text
from sysml_v2_sql.model_fetching import CommitSelector, ProjectSelector
from sysml_v2_sql.run_execution import (
    FetchRequest,
    ImportOptions,
    ImportRequest,
    RunExecutionError,
    SchemaSqlRequest,
    fetch_and_import,
    generate_schema_sql,
    import_element_file,
    initialize_database,
)

_RECORDS = [
    {"@id": "A", "@type": "PartDefinition", "declaredName": "Engine"},
    {"@id": "B", "@type": "PartUsage", "declaredName": "engine", "definition": [{"@id": "A"}]},
    {"@id": "C", "@type": "PartUsage", "declaredName": "piston", "owner": {"@id": "B"}},
]


def _write_json(path: Path, document: object) -> Path:
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def _count(database_path: Path, table: str) -> int:
    connection = sqlite3.connect(database_path)
    try:
        return connection.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]
    finally:
        connection.close()


def _elements_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/projects/p-1/commits/c-1/elements"):
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json=_RECORDS[2:])
        return httpx.Response(
            200,
            json=_RECORDS[:2],
            headers={"Link": f'<{request.url.copy_with(query=b"page=2")}>; rel="next"'},
        )
    return httpx.Response(404)


def test_initialize_database_is_repeatable(tmp_path: Path) -> None:
    database_path = tmp_path / "model.sqlite"

    initialize_database(database_path)
    resolved = initialize_database(database_path)

    assert resolved == database_path.resolve()
    assert _count(database_path, "elements") == 0


def test_import_element_file_imports_records(tmp_path: Path) -> None:
    database_path = tmp_path / "model.sqlite"
    initialize_database(database_path)
    input_path = _write_json(tmp_path / "model.json", _RECORDS)

    outcome = import_element_file(
        ImportRequest(database_path=str(database_path), input_path=str(input_path)), environ={}
    )

    assert outcome.summary.elements_imported == 3
    assert outcome.summary.relations_imported == 2
    assert _count(database_path, "relations") == 2


def test_import_element_file_honours_configured_options(tmp_path: Path) -> None:
    database_path = tmp_path / "model.sqlite"
    initialize_database(database_path)
    input_path = _write_json(
        tmp_path / "model.json",
        [{"@id": "A", "@type": "PartDefinition", "isLibraryElement": "false"}],
    )
    config_path = tmp_path / "config.yaml"
    config_path.write_text("import:\n  tolerant_booleans: true\n", encoding="utf-8")

    import_element_file(
        ImportRequest(
            database_path=str(database_path),
            input_path=str(input_path),
            config_path=str(config_path),
        ),
        environ={},
    )

    connection = sqlite3.connect(database_path)
    try:
        stored = connection.execute('SELECT "isLibraryElement" FROM elements').fetchone()[0]
    finally:
        connection.close()
    assert stored == 0


def test_import_into_uninitialized_database_fails(tmp_path: Path) -> None:
    input_path = _write_json(tmp_path / "model.json", _RECORDS)

    with pytest.raises(RunExecutionError, match="initialize the database"):
        import_element_file(
            ImportRequest(database_path=str(tmp_path / "empty.sqlite"), input_path=str(input_path)),
            environ={},
        )


def test_import_of_malformed_document_fails(tmp_path: Path) -> None:
    database_path = tmp_path / "model.sqlite"
    initialize_database(database_path)
    input_path = _write_json(tmp_path / "model.json", {"@id": "A"})

    with pytest.raises(RunExecutionError, match="JSON array"):
        import_element_file(
            ImportRequest(database_path=str(database_path), input_path=str(input_path)),
            environ={},
        )


def test_import_with_custom_schema_uses_its_catalog(tmp_path: Path) -> None:
    database_path = tmp_path / "model.sqlite"
    initialize_database(database_path)
    schema_path = tmp_path / "schema.json"
    schema_path.write_text(bundled_schema_text(), encoding="utf-8")
    input_path = _write_json(tmp_path / "model.json", _RECORDS)

    outcome = import_element_file(
        ImportRequest(
            database_path=str(database_path),
            input_path=str(input_path),
            options=ImportOptions(schema_path=str(schema_path)),
        ),
        environ={},
    )

    assert outcome.summary.relations_imported == 2


def test_fetch_and_import_stores_all_pages(tmp_path: Path) -> None:
    database_path = tmp_path / "model.sqlite"
    initialize_database(database_path)
    dump_path = tmp_path / "dump.json"

    outcome = fetch_and_import(
        FetchRequest(
            database_path=str(database_path),
            base_url="https://api.example.test",
            project=ProjectSelector(project_id="p-1"),
            commit=CommitSelector(commit_id="c-1"),
            dump_json_path=str(dump_path),
        ),
        environ={},
        transport=httpx.MockTransport(_elements_handler),
    )

    assert outcome.element_count == 3
    assert outcome.page_count == 2
    assert outcome.reference.commit_id == "c-1"
    assert outcome.dump_path == dump_path.resolve()
    assert json.loads(dump_path.read_text(encoding="utf-8")) == _RECORDS
    assert outcome.summary is not None
    assert _count(database_path, "elements") == 3


def test_fetch_without_import_leaves_database_untouched(tmp_path: Path) -> None:
    outcome = fetch_and_import(
        FetchRequest(
            database_path=None,
            base_url="https://api.example.test",
            project=ProjectSelector(project_id="p-1"),
            commit=CommitSelector(commit_id="c-1"),
            skip_import=True,
        ),
        environ={},
        transport=httpx.MockTransport(_elements_handler),
    )

    assert outcome.summary is None
    assert outcome.element_count == 3


def test_fetch_uses_configured_base_url(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("server:\n  base_url: https://api.example.test\n", encoding="utf-8")

    outcome = fetch_and_import(
        FetchRequest(
            database_path=None,
            base_url=None,
            project=ProjectSelector(project_id="p-1"),
            commit=CommitSelector(commit_id="c-1"),
            config_path=str(config_path),
            skip_import=True,
        ),
        environ={},
        transport=httpx.MockTransport(_elements_handler),
    )

    assert outcome.page_count == 2


def test_fetch_without_base_url_fails() -> None:
    with pytest.raises(RunExecutionError, match="base URL"):
        fetch_and_import(
            FetchRequest(
                database_path=None,
                base_url=None,
                project=ProjectSelector(project_id="p-1"),
                skip_import=True,
            ),
            environ={},
        )


def test_fetch_failure_is_reported_as_run_error(tmp_path: Path) -> None:
    database_path = tmp_path / "model.sqlite"
    initialize_database(database_path)

    with pytest.raises(RunExecutionError, match="HTTP 404"):
        fetch_and_import(
            FetchRequest(
                database_path=str(database_path),
                base_url="https://api.example.test",
                project=ProjectSelector(project_id="p-1"),
                commit=CommitSelector(commit_id="unknown"),
            ),
            environ={},
            transport=httpx.MockTransport(_elements_handler),
        )

    assert _count(database_path, "elements") == 0


def test_overall_timeout_spans_selection_and_listing(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("server:\n  overall_timeout_seconds: 0.3\n", encoding="utf-8")
    seen: list[str] = []

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        await asyncio.sleep(0.2)
        if request.url.path.endswith("/projects/p-1"):
            return httpx.Response(200, json={"@id": "p-1", "defaultBranch": {"@id": "b-1"}})
        if request.url.path.endswith("/branches/b-1"):
            return httpx.Response(200, json={"@id": "b-1", "head": {"@id": "c-1"}})
        return _elements_handler(request)

    with pytest.raises(RunExecutionError, match="timed out after 0.3s"):
        fetch_and_import(
            FetchRequest(
                database_path=None,
                base_url="https://api.example.test",
                project=ProjectSelector(project_id="p-1"),
                config_path=str(config_path),
                skip_import=True,
            ),
            environ={},
            transport=httpx.MockTransport(slow_handler),
        )

    assert len(seen) == 2


def test_generate_schema_sql_dumps_and_initializes(tmp_path: Path) -> None:
    schema_path = tmp_path / "schema.json"
    schema_path.write_text(bundled_schema_text(), encoding="utf-8")
    dump_path = tmp_path / "schema.sql"
    database_path = tmp_path / "model.sqlite"

    outcome = generate_schema_sql(
        SchemaSqlRequest(
            schema_path=str(schema_path),
            dump_sql_path=str(dump_path),
            database_path=str(database_path),
        )
    )

    assert dump_path.read_text(encoding="utf-8") == outcome.ddl
    assert outcome.database_path == database_path.resolve()
    assert _count(database_path, "relations") == 0


def test_generate_schema_sql_reports_invalid_schema(tmp_path: Path) -> None:
    schema_path = tmp_path / "schema.json"
    schema_path.write_text('{"$defs": {"A": {"allOf": [{"$ref": "#/$defs/A"}]}}}', encoding="utf-8")

    with pytest.raises(RunExecutionError, match="A"):
        generate_schema_sql(SchemaSqlRequest(schema_path=str(schema_path)))
