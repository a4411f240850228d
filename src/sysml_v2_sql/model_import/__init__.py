"""Model import exports."""

from .element_importer import ElementImporter, canonical_json, parse_elements, reference_targets
from .element_sources import dump_element_document, load_element_document
from .import_catalog import ImportCatalog
from .import_models import (
    ConflictingElementError,
    DanglingReference,
    Element,
    ElementImportError,
    ForeignKeyViolationError,
    ImportSummary,
    MalformedElementError,
    Relation,
)

__all__ = [
    "ElementImporter",
    "canonical_json",
    "parse_elements",
    "reference_targets",
    "dump_element_document",
    "load_element_document",
    "ImportCatalog",
    "ConflictingElementError",
    "DanglingReference",
    "Element",
    "ElementImportError",
    "ForeignKeyViolationError",
    "ImportSummary",
    "MalformedElementError",
    "Relation",
]
