"""Element document reading and writing tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from sysml_v2_sql.model_import import (
    MalformedElementError,
    dump_element_document,
    load_element_document,
)


def test_load_element_document_returns_records(tmp_path: Path) -> None:
    source = tmp_path / "model.json"
    source.write_text(json.dumps([{"@id": "A", "@type": "Part"}]), encoding="utf-8")

    assert load_element_document(source) == [{"@id": "A", "@type": "Part"}]


def test_load_element_document_rejects_invalid_json(tmp_path: Path) -> None:
    source = tmp_path / "model.json"
    source.write_text("[{", encoding="utf-8")

    with pytest.raises(MalformedElementError, match="Invalid JSON"):
        load_element_document(source)


def test_load_element_document_requires_an_array(tmp_path: Path) -> None:
    source = tmp_path / "model.json"
    source.write_text('{"@id": "A"}', encoding="utf-8")

    with pytest.raises(MalformedElementError, match="JSON array"):
        load_element_document(source)


def test_dump_element_document_is_compact_by_default(tmp_path: Path) -> None:
    written = dump_element_document([{"@id": "A"}], tmp_path / "out.json")

    assert written == (tmp_path / "out.json").resolve()
    assert written.read_text(encoding="utf-8") == '[{"@id": "A"}]\n'


def test_dump_element_document_pretty_prints(tmp_path: Path) -> None:
    written = dump_element_document([{"@id": "Ä"}], tmp_path / "out.json", pretty=True)

    text = written.read_text(encoding="utf-8")
    assert text.startswith("[\n  {\n")
    assert "Ä" in text
    assert load_element_document(written) == [{"@id": "Ä"}]
