"""Model import entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sysml_v2_sql.schema_resolution import IDENTIFIER_PROPERTY, TYPE_TAG_PROPERTY


class ElementImportError(Exception):
    """Base error for failed imports."""


class MalformedElementError(ElementImportError):
    """Raised when an element record lacks a usable identifier or type-tag."""


class ConflictingElementError(ElementImportError):
    """Raised when one identifier appears twice with different content."""

    def __init__(self, element_id: str) -> None:
        self.element_id = element_id
        super().__init__(f"Element '{element_id}' appears more than once with different content.")


class ForeignKeyViolationError(ElementImportError):
    """Raised when committing the import would leave relations without elements."""


@dataclass(frozen=True)
class Element:
    """One model element as read from a JSON document."""

    element_id: str
    type_tag: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Any, position: int | None = None) -> Element:
        where = "Element" if position is None else f"Element #{position}"
        if not isinstance(record, Mapping):
            raise MalformedElementError(f"{where} is not a JSON object.")
        element_id = record.get(IDENTIFIER_PROPERTY)
        if not isinstance(element_id, str) or not element_id.strip():
            raise MalformedElementError(f"{where} has no string '{IDENTIFIER_PROPERTY}'.")
        type_tag = record.get(TYPE_TAG_PROPERTY)
        if not isinstance(type_tag, str) or not type_tag.strip():
            raise MalformedElementError(
                f"Element '{element_id}' has no string '{TYPE_TAG_PROPERTY}'."
            )
        attributes = {
            key: value
            for key, value in record.items()
            if key not in (IDENTIFIER_PROPERTY, TYPE_TAG_PROPERTY)
        }
        return cls(element_id=element_id, type_tag=type_tag, attributes=attributes)


@dataclass(frozen=True)
class Relation:
    """Directed edge between two elements."""

    relation_id: str
    origin_id: str
    target_id: str
    name: str
    type_tag: str | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DanglingReference:
    """A relation skipped because one endpoint is not a known element."""

    relation_id: str
    origin_id: str
    target_id: str
    name: str
    missing_id: str

    def describe(self) -> str:
        return (
            f"skipped relation '{self.name}' from '{self.origin_id}' to '{self.target_id}':"
            f" element '{self.missing_id}' is not known"
        )


@dataclass(frozen=True)
class ImportSummary:
    """Outcome of one import run."""

    elements_imported: int
    relations_imported: int
    dangling_references: tuple[DanglingReference, ...] = ()
    unmapped_attributes: tuple[str, ...] = ()
