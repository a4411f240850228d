"""Element importer tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from sysml_v2_sql.bundled_assets import bundled_ddl
from sysml_v2_sql.configuration import ImportSettings
from sysml_v2_sql.database_gateway import DatabaseGateway, DatabaseGatewayError
from sysml_v2_sql.model_import import (
    ConflictingElementError,
    ElementImporter,
    ForeignKeyViolationError,
    ImportCatalog,
    MalformedElementError,
    reference_targets,
)


@pytest.fixture(name="gateway")
def _gateway(tmp_path: Path):
    gateway = DatabaseGateway.open(tmp_path / "model.sqlite")
    gateway.execute_ddl(bundled_ddl())
    yield gateway
    gateway.close()


def _importer(gateway: DatabaseGateway, **settings: bool) -> ElementImporter:
    return ElementImporter(gateway, ImportCatalog.bundled(), ImportSettings(**settings))


def _part_definition(element_id: str = "A", name: str = "Engine") -> dict:
    return {
        "@id": element_id,
        "@type": "PartDefinition",
        "declaredName": name,
        "isLibraryElement": False,
        "isAbstract": False,
    }


def _part_usage(element_id: str, **references: object) -> dict:
    record: dict = {"@id": element_id, "@type": "PartUsage", "declaredName": element_id.lower()}
    record.update(references)
    return record


def _relations(gateway: DatabaseGateway) -> list[tuple[str, str, str]]:
    rows = gateway.query("SELECT origin_id, target_id, name FROM relations ORDER BY origin_id")
    return [(row["origin_id"], row["target_id"], row["name"]) for row in rows]


def test_references_are_lowered_to_relations(gateway: DatabaseGateway) -> None:
    records = [
        _part_definition(),
        _part_usage("B", definition=[{"@id": "A"}]),
        _part_usage("C", owner={"@id": "B"}),
    ]

    summary = _importer(gateway).import_elements(records)

    assert summary.elements_imported == 3
    assert summary.relations_imported == 2
    assert summary.dangling_references == ()
    assert _relations(gateway) == [("B", "A", "definition"), ("C", "B", "owner")]


def test_lowered_relation_carries_declared_target_type(gateway: DatabaseGateway) -> None:
    records = [_part_definition(), _part_usage("B", definition=[{"@id": "A"}])]

    _importer(gateway).import_elements(records)

    rows = gateway.query('SELECT "@id", "@type" FROM relations')
    assert rows == [{"@id": "B/definition/A", "@type": "Definition"}]


def test_reimport_of_unchanged_document_changes_nothing(gateway: DatabaseGateway) -> None:
    records = [
        _part_definition(),
        _part_usage("B", definition=[{"@id": "A"}]),
        _part_usage("C", owner={"@id": "B"}),
    ]
    importer = _importer(gateway)
    importer.import_elements(records)
    before = gateway.query("SELECT * FROM elements ORDER BY \"@id\""), _relations(gateway)

    importer.import_elements(records)

    after = gateway.query("SELECT * FROM elements ORDER BY \"@id\""), _relations(gateway)
    assert after == before


def test_reimport_replaces_changed_rows_and_stale_relations(gateway: DatabaseGateway) -> None:
    importer = _importer(gateway)
    importer.import_elements(
        [
            _part_definition(),
            _part_definition("D", "Wheel"),
            _part_usage("B", definition=[{"@id": "A"}]),
        ]
    )

    importer.import_elements([_part_usage("B", definition=[{"@id": "D"}])])

    assert _relations(gateway) == [("B", "D", "definition")]
    assert gateway.count_rows("elements") == 3


def test_dangling_reference_is_skipped_and_reported(
    gateway: DatabaseGateway, caplog: pytest.LogCaptureFixture
) -> None:
    records = [
        _part_definition(),
        _part_usage("B", definition=[{"@id": "A"}], owner={"@id": "ghost"}),
    ]

    with caplog.at_level(logging.WARNING):
        summary = _importer(gateway).import_elements(records)

    assert len(summary.dangling_references) == 1
    dangling = summary.dangling_references[0]
    assert (dangling.origin_id, dangling.target_id, dangling.name) == ("B", "ghost", "owner")
    assert summary.relations_imported == 1
    assert gateway.count_rows("elements") == 2
    assert sum("ghost" in message for message in caplog.messages) == 1


def test_reference_to_element_stored_earlier_is_not_dangling(gateway: DatabaseGateway) -> None:
    importer = _importer(gateway)
    importer.import_elements([_part_definition()])

    summary = importer.import_elements([_part_usage("B", definition=[{"@id": "A"}])])

    assert summary.dangling_references == ()
    assert _relations(gateway) == [("B", "A", "definition")]


def test_relation_records_populate_both_tables(gateway: DatabaseGateway) -> None:
    records = [
        _part_definition(),
        _part_definition("D", "Wheel"),
        {
            "@id": "R",
            "@type": "Dependency",
            "declaredName": "uses",
            "isImplied": True,
            "source": {"@id": "A"},
            "target": [{"@id": "D"}],
            "owner": {"@id": "A"},
        },
    ]

    summary = _importer(gateway).import_elements(records)

    row = gateway.query(
        'SELECT "@id", "@type", name, origin_id, target_id, "isImplied" FROM relations'
        " WHERE \"@id\" = 'R'"
    )
    assert row == [
        {
            "@id": "R",
            "@type": "Dependency",
            "name": "Dependency",
            "origin_id": "A",
            "target_id": "D",
            "isImplied": 1,
        }
    ]
    assert gateway.count_rows("elements") == 3
    assert ("R", "A", "owner") in _relations(gateway)
    assert summary.relations_imported == 2
    assert "isImplied" not in summary.unmapped_attributes


def _dependency(target_id: str = "D") -> dict:
    return {
        "@id": "R",
        "@type": "Dependency",
        "source": {"@id": "A"},
        "target": [{"@id": target_id}],
    }


def test_partial_reimport_keeps_relation_records_of_other_documents(
    gateway: DatabaseGateway,
) -> None:
    importer = _importer(gateway)
    importer.import_elements([_part_definition(), _part_definition("D", "Wheel"), _dependency()])

    importer.import_elements([_part_definition(name="Motor")])

    assert _relations(gateway) == [("A", "D", "Dependency")]
    assert gateway.count_rows("elements") == 3


def test_reimported_relation_record_with_unknown_target_is_removed(
    gateway: DatabaseGateway,
) -> None:
    importer = _importer(gateway)
    importer.import_elements([_part_definition(), _part_definition("D", "Wheel"), _dependency()])

    summary = importer.import_elements([_dependency("ghost")])

    assert summary.dangling_references[0].missing_id == "ghost"
    assert _relations(gateway) == []
    assert gateway.count_rows("elements") == 3


class _FailingRelationsGateway(DatabaseGateway):
    def upsert_many(self, table, columns, rows):
        if table == "relations":
            raise DatabaseGatewayError("disk full")
        return super().upsert_many(table, columns, rows)


class _EveryIdKnownGateway(DatabaseGateway):
    def existing_keys(self, table, column, candidates):
        return set(candidates)


def _snapshot(gateway: DatabaseGateway) -> tuple[list, list]:
    return gateway.query('SELECT * FROM elements ORDER BY "@id"'), _relations(gateway)


def _foreign_keys_enabled(gateway: DatabaseGateway) -> bool:
    return gateway.query("PRAGMA foreign_keys") == [{"foreign_keys": 1}]


def test_failed_reimport_leaves_previous_snapshot_intact(
    gateway: DatabaseGateway, tmp_path: Path
) -> None:
    _importer(gateway).import_elements(
        [
            _part_definition(),
            _part_definition("D", "Wheel"),
            _part_usage("B", definition=[{"@id": "A"}]),
        ]
    )
    before = _snapshot(gateway)

    with _FailingRelationsGateway.open(tmp_path / "model.sqlite") as failing:
        with pytest.raises(DatabaseGatewayError, match="disk full"):
            _importer(failing, disable_foreign_key_checks=True).import_elements(
                [
                    _part_definition(name="Motor"),
                    _part_usage("B", definition=[{"@id": "D"}]),
                    _part_usage("E"),
                ]
            )

        assert failing.in_transaction is False
        assert _foreign_keys_enabled(failing)
    assert _snapshot(gateway) == before


def test_foreign_key_failure_at_commit_is_reported_and_rolled_back(tmp_path: Path) -> None:
    with _EveryIdKnownGateway.open(tmp_path / "ghost.sqlite") as gateway:
        gateway.execute_ddl(bundled_ddl())

        with pytest.raises(ForeignKeyViolationError, match="missing elements"):
            _importer(gateway).import_elements([_part_usage("B", owner={"@id": "ghost"})])

        assert gateway.count_rows("elements") == 0
        assert gateway.count_rows("relations") == 0


def test_disabled_foreign_key_checks_are_restored_after_import(tmp_path: Path) -> None:
    with _EveryIdKnownGateway.open(tmp_path / "ghost.sqlite") as gateway:
        gateway.execute_ddl(bundled_ddl())

        summary = _importer(gateway, disable_foreign_key_checks=True).import_elements(
            [_part_usage("B", owner={"@id": "ghost"})]
        )

        assert summary.relations_imported == 1
        assert _relations(gateway) == [("B", "ghost", "owner")]
        assert _foreign_keys_enabled(gateway)


def test_relation_record_without_single_source_is_malformed(gateway: DatabaseGateway) -> None:
    records = [
        _part_definition(),
        {"@id": "R", "@type": "Dependency", "source": [], "target": {"@id": "A"}},
    ]

    with pytest.raises(MalformedElementError, match="'source'"):
        _importer(gateway).import_elements(records)

    assert gateway.count_rows("elements") == 0


def test_record_without_identifier_aborts_before_writing(gateway: DatabaseGateway) -> None:
    records = [_part_definition(), {"@type": "PartUsage"}]

    with pytest.raises(MalformedElementError, match="#1"):
        _importer(gateway).import_elements(records)

    assert gateway.count_rows("elements") == 0


def test_identical_duplicates_collapse(gateway: DatabaseGateway) -> None:
    summary = _importer(gateway).import_elements([_part_definition(), _part_definition()])

    assert summary.elements_imported == 1


def test_conflicting_duplicates_are_rejected(gateway: DatabaseGateway) -> None:
    with pytest.raises(ConflictingElementError, match="'A'"):
        _importer(gateway).import_elements([_part_definition(), _part_definition(name="Other")])


def test_values_are_coerced_into_strict_columns(gateway: DatabaseGateway) -> None:
    records = [
        {
            "@id": "L",
            "@type": "LiteralInteger",
            "value": 7.0,
            "isLibraryElement": True,
            "aliasIds": ["b", "a"],
            "declaredName": 12,
        }
    ]

    _importer(gateway).import_elements(records)

    row = gateway.query(
        'SELECT "value", "isLibraryElement", "aliasIds", "declaredName" FROM elements'
    )[0]
    assert row == {
        "value": 7,
        "isLibraryElement": 1,
        "aliasIds": '["b","a"]',
        "declaredName": None,
    }


def test_tolerant_booleans_accept_strings(gateway: DatabaseGateway) -> None:
    record = {"@id": "A", "@type": "PartDefinition", "isLibraryElement": "true"}

    _importer(gateway, tolerant_booleans=True).import_elements([record])

    assert gateway.query('SELECT "isLibraryElement" FROM elements') == [{"isLibraryElement": 1}]


def test_boolean_strings_are_dropped_without_tolerance(gateway: DatabaseGateway) -> None:
    record = {"@id": "A", "@type": "PartDefinition", "isLibraryElement": "true"}

    _importer(gateway).import_elements([record])

    assert gateway.query('SELECT "isLibraryElement" FROM elements') == [
        {"isLibraryElement": None}
    ]


def test_unmapped_attributes_are_reported(gateway: DatabaseGateway) -> None:
    record = _part_definition()
    record["extraThing"] = "x"
    record["ownedRelationship"] = []

    summary = _importer(gateway).import_elements([record])

    assert summary.unmapped_attributes == ("extraThing",)


def test_reference_targets_recognizes_reference_shapes() -> None:
    assert reference_targets({"@id": "x"}) == ["x"]
    assert reference_targets([{"@id": "x"}, {"@id": "y"}]) == ["x", "y"]
    assert reference_targets([]) is None
    assert reference_targets({"@id": "x", "name": "y"}) is None
    assert reference_targets(["x"]) is None
