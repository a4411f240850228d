"""Reading and writing JSON documents of element records."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .import_models import MalformedElementError


def load_element_document(path: Path | str) -> list[Any]:
    """Read a JSON array of element records from disk."""
    source = Path(path)
    try:
        with source.open(encoding="utf-8") as handle:
            document = json.load(handle)
    except json.JSONDecodeError as exc:
        raise MalformedElementError(f"Invalid JSON in {source}: {exc}") from exc
    if not isinstance(document, list):
        raise MalformedElementError(f"{source} must contain a JSON array of elements.")
    return document


def dump_element_document(
    records: Sequence[Any], path: Path | str, *, pretty: bool = False
) -> Path:
    """Write element records as a JSON array and return the resolved path."""
    destination = Path(path)
    with destination.open("w", encoding="utf-8") as handle:
        json.dump(list(records), handle, indent=2 if pretty else None, ensure_ascii=False)
        handle.write("\n")
    return destination.resolve()
