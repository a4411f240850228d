"""Schema resolution exports."""

from .schema_models import (
    IDENTIFIER_PROPERTY,
    TYPE_TAG_PROPERTY,
    DefinitionVariant,
    FieldDescriptor,
    FieldKind,
    SchemaDefinition,
    SchemaDocument,
)
from .schema_resolver import (
    CyclicInheritanceError,
    SchemaError,
    UnresolvableReferenceError,
    UnsupportedCombinatorError,
    load_schema_document,
    resolve_schema,
)

__all__ = [
    "IDENTIFIER_PROPERTY",
    "TYPE_TAG_PROPERTY",
    "DefinitionVariant",
    "FieldDescriptor",
    "FieldKind",
    "SchemaDefinition",
    "SchemaDocument",
    "CyclicInheritanceError",
    "SchemaError",
    "UnresolvableReferenceError",
    "UnsupportedCombinatorError",
    "load_schema_document",
    "resolve_schema",
]
