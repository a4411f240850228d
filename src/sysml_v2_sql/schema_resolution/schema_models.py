"""Schema resolution entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

TYPE_TAG_PROPERTY = "@type"
IDENTIFIER_PROPERTY = "@id"


class FieldKind(str, Enum):
    """Kind of value a schema property holds."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    REFERENCE = "reference"


class DefinitionVariant(str, Enum):
    """Shape of a named definition."""

    OBJECT = "object"
    UNION = "union"
    SCALAR = "scalar"


@dataclass(frozen=True)
class FieldDescriptor:
    """One resolved property of a definition.

    `referenced_type` only names the target definition for reference fields;
    the target's own fields are never copied into the descriptor.
    """

    name: str
    kind: FieldKind
    nullable: bool = True
    referenced_type: str | None = None
    many: bool = False
    constant: str | None = None

    @property
    def is_reference(self) -> bool:
        return self.kind is FieldKind.REFERENCE


@dataclass(frozen=True)
class SchemaDefinition:
    """Fully resolved named definition including inherited fields."""

    name: str
    variant: DefinitionVariant
    fields: tuple[FieldDescriptor, ...] = ()
    supertypes: tuple[str, ...] = ()
    discriminator: str | None = None
    members: tuple[str, ...] = ()
    scalar_kind: FieldKind | None = None

    def field(self, name: str) -> FieldDescriptor | None:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        return None

    def reference_fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(descriptor for descriptor in self.fields if descriptor.is_reference)


@dataclass(frozen=True)
class SchemaDocument:
    """Named definition nodes extracted from a JSON schema document."""

    definitions: Mapping[str, Any]
