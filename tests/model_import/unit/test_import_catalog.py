"""Import catalog tests."""

from __future__ import annotations

import json

from sysml_v2_sql.model_import import ImportCatalog


def _schema_text() -> str:
    return json.dumps(
        {
            "$defs": {
                "Element": {
                    "properties": {
                        "@id": {"type": "string"},
                        "@type": {"const": "Element"},
                        "owner": {"oneOf": [{"$ref": "#/$defs/Element"}, {"type": "null"}]},
                    }
                },
                "Link": {
                    "allOf": [
                        {"$ref": "#/$defs/Element"},
                        {
                            "properties": {
                                "@type": {"const": "Link"},
                                "source": {"$ref": "#/$defs/Element"},
                                "target": {"$ref": "#/$defs/Element"},
                            }
                        },
                    ]
                },
                "Kind": {"type": "string", "enum": ["a", "b"]},
            }
        }
    )


def test_catalog_knows_tagged_definitions_only() -> None:
    catalog = ImportCatalog.from_schema_text(_schema_text())

    assert catalog.known_tags == frozenset({"Element", "Link"})
    assert catalog.is_known("Link")
    assert not catalog.is_known("Kind")


def test_catalog_marks_relation_tags() -> None:
    catalog = ImportCatalog.from_schema_text(_schema_text())

    assert catalog.is_relation("Link")
    assert not catalog.is_relation("Element")


def test_catalog_records_reference_targets_per_tag() -> None:
    catalog = ImportCatalog.from_schema_text(_schema_text())

    assert catalog.referenced_type("Link", "owner") == "Element"
    assert catalog.referenced_type("Link", "source") == "Element"
    assert catalog.is_reference_field("Element", "owner")
    assert not catalog.is_reference_field("Element", "@id")
    assert catalog.referenced_type("Unknown", "owner") is None


def test_bundled_catalog_covers_sysml_relationships() -> None:
    catalog = ImportCatalog.bundled()

    assert {"Relationship", "Dependency", "Membership"} <= catalog.relation_tags
    assert catalog.referenced_type("PartUsage", "definition") == "Definition"
    assert catalog.is_known("PartDefinition")
