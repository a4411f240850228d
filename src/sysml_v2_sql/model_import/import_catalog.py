"""Type-tag knowledge the importer derives from resolved schema definitions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from sysml_v2_sql.bundled_assets import bundled_schema_text
from sysml_v2_sql.ddl_emission import SchemaPartition, partition_definitions
from sysml_v2_sql.schema_resolution import (
    DefinitionVariant,
    SchemaDefinition,
    load_schema_document,
    resolve_schema,
)


@dataclass(frozen=True)
class ImportCatalog:
    """Relation-like type-tags and declared reference targets per type-tag."""

    known_tags: frozenset[str] = frozenset()
    relation_tags: frozenset[str] = frozenset()
    reference_types: Mapping[tuple[str, str], str] = field(default_factory=dict)

    @classmethod
    def from_definitions(
        cls,
        definitions: Mapping[str, SchemaDefinition],
        partition: SchemaPartition | None = None,
    ) -> ImportCatalog:
        partition = partition or partition_definitions(definitions)
        tagged = [
            definition
            for definition in definitions.values()
            if definition.variant is DefinitionVariant.OBJECT and definition.discriminator
        ]
        relation_names = set(partition.relation_like)
        reference_types: dict[tuple[str, str], str] = {}
        for definition in tagged:
            for descriptor in definition.reference_fields():
                if descriptor.referenced_type is not None:
                    reference_types[(str(definition.discriminator), descriptor.name)] = (
                        descriptor.referenced_type
                    )
        return cls(
            known_tags=frozenset(str(definition.discriminator) for definition in tagged),
            relation_tags=frozenset(
                str(definition.discriminator)
                for definition in tagged
                if definition.name in relation_names
            ),
            reference_types=reference_types,
        )

    @classmethod
    def from_schema_text(cls, text: str) -> ImportCatalog:
        return cls.from_definitions(resolve_schema(load_schema_document(text)))

    @classmethod
    def bundled(cls) -> ImportCatalog:
        """Catalog for the schema shipped with the package."""
        return cls.from_schema_text(bundled_schema_text())

    def is_known(self, type_tag: str) -> bool:
        return type_tag in self.known_tags

    def is_relation(self, type_tag: str) -> bool:
        return type_tag in self.relation_tags

    def is_reference_field(self, type_tag: str, field_name: str) -> bool:
        return (type_tag, field_name) in self.reference_types

    def referenced_type(self, type_tag: str, field_name: str) -> str | None:
        return self.reference_types.get((type_tag, field_name))
