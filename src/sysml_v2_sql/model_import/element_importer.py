"""Element and relation import service."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sysml_v2_sql.configuration.runtime_settings import ImportSettings
from sysml_v2_sql.database_gateway import DatabaseGateway, IntegrityViolationError
from sysml_v2_sql.ddl_emission import (
    ELEMENTS_TABLE,
    ORIGIN_COLUMN,
    RELATION_NAME_COLUMN,
    RELATION_SOURCE_FIELD,
    RELATION_TARGET_FIELD,
    RELATIONS_TABLE,
    TARGET_COLUMN,
)
from sysml_v2_sql.schema_resolution import IDENTIFIER_PROPERTY, TYPE_TAG_PROPERTY

from .import_catalog import ImportCatalog
from .import_models import (
    ConflictingElementError,
    DanglingReference,
    Element,
    ForeignKeyViolationError,
    ImportSummary,
    MalformedElementError,
    Relation,
)

_LOGGER = logging.getLogger(__name__)

_ELEMENT_FRAMEWORK_COLUMNS = frozenset({IDENTIFIER_PROPERTY, TYPE_TAG_PROPERTY})
_RELATION_FRAMEWORK_COLUMNS = frozenset(
    {IDENTIFIER_PROPERTY, TYPE_TAG_PROPERTY, RELATION_NAME_COLUMN, ORIGIN_COLUMN, TARGET_COLUMN}
)
_TOLERATED_BOOLEANS = {"true": 1, "false": 0}
_LOWERED_ID_SEPARATOR = "/"


def parse_elements(records: Iterable[Any]) -> list[Element]:
    """Parse records into elements, collapsing identical duplicates.

    Raises:
      MalformedElementError: If a record has no usable `@id` or `@type`.
      ConflictingElementError: If an identifier repeats with different content.
    """
    by_id: dict[str, Element] = {}
    for position, record in enumerate(records):
        element = Element.from_record(record, position)
        existing = by_id.get(element.element_id)
        if existing is None:
            by_id[element.element_id] = element
        elif existing != element:
            raise ConflictingElementError(element.element_id)
        else:
            _LOGGER.debug("ignoring identical duplicate of element %s", element.element_id)
    return list(by_id.values())


def reference_targets(value: Any) -> list[str] | None:
    """Return target identifiers when `value` is reference-shaped, else None."""
    if _is_reference(value):
        return [value[IDENTIFIER_PROPERTY]]
    if isinstance(value, list) and value and all(_is_reference(item) for item in value):
        return [item[IDENTIFIER_PROPERTY] for item in value]
    return None


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class ElementImporter:
    """Write a collection of elements and their relations in one transaction."""

    def __init__(
        self,
        gateway: DatabaseGateway,
        catalog: ImportCatalog,
        settings: ImportSettings | None = None,
    ) -> None:
        self._gateway = gateway
        self._catalog = catalog
        self._settings = settings or ImportSettings()

    def import_elements(self, records: Iterable[Any]) -> ImportSummary:
        """Import records, replacing earlier rows and outgoing relations of the same elements."""
        elements = parse_elements(records)
        element_columns = self._gateway.column_types(ELEMENTS_TABLE)
        relation_columns = self._gateway.column_types(RELATIONS_TABLE)

        known_ids = self._known_ids(elements)
        relations, dangling = self._collect_relations(elements, known_ids)
        unmapped: set[str] = set()
        element_rows = [
            self._element_row(element, element_columns, relation_columns, unmapped)
            for element in elements
        ]
        relation_rows = [self._relation_row(relation, relation_columns) for relation in relations]

        for reference in dangling:
            _LOGGER.warning("%s", reference.describe())
        for type_tag in sorted({element.type_tag for element in elements}):
            if not self._catalog.is_known(type_tag):
                _LOGGER.warning("type '%s' is not described by the schema", type_tag)

        self._write(
            element_columns=list(element_columns),
            element_rows=element_rows,
            relation_columns=list(relation_columns),
            relation_rows=relation_rows,
            origin_ids=[element.element_id for element in elements],
            relation_record_ids=[
                element.element_id
                for element in elements
                if self._catalog.is_relation(element.type_tag)
            ],
        )
        summary = ImportSummary(
            elements_imported=len(element_rows),
            relations_imported=len(relation_rows),
            dangling_references=tuple(dangling),
            unmapped_attributes=tuple(sorted(unmapped)),
        )
        _LOGGER.info(
            "imported %d elements and %d relations",
            summary.elements_imported,
            summary.relations_imported,
        )
        return summary

    def _known_ids(self, elements: Sequence[Element]) -> set[str]:
        document_ids = {element.element_id for element in elements}
        outside_targets = {
            target_id
            for element in elements
            for value in element.attributes.values()
            for target_id in reference_targets(value) or ()
            if target_id not in document_ids
        }
        return document_ids | self._gateway.existing_keys(
            ELEMENTS_TABLE, IDENTIFIER_PROPERTY, sorted(outside_targets)
        )

    def _collect_relations(
        self, elements: Sequence[Element], known_ids: set[str]
    ) -> tuple[list[Relation], list[DanglingReference]]:
        relations: dict[str, Relation] = {}
        dangling: list[DanglingReference] = []
        for element in elements:
            is_relation_record = self._catalog.is_relation(element.type_tag)
            for name, value in element.attributes.items():
                if is_relation_record and name in (RELATION_SOURCE_FIELD, RELATION_TARGET_FIELD):
                    continue
                for target_id in reference_targets(value) or ():
                    relation = Relation(
                        relation_id=_LOWERED_ID_SEPARATOR.join(
                            (element.element_id, name, target_id)
                        ),
                        origin_id=element.element_id,
                        target_id=target_id,
                        name=name,
                        type_tag=self._catalog.referenced_type(element.type_tag, name),
                    )
                    if target_id not in known_ids:
                        dangling.append(_dangling(relation, target_id))
                        continue
                    relations[relation.relation_id] = relation
            if is_relation_record:
                relation = _relation_record(element)
                missing = [
                    endpoint
                    for endpoint in (relation.origin_id, relation.target_id)
                    if endpoint not in known_ids
                ]
                if missing:
                    dangling.append(_dangling(relation, missing[0]))
                    continue
                relations[relation.relation_id] = relation
        return list(relations.values()), dangling

    def _element_row(
        self,
        element: Element,
        element_columns: Mapping[str, str],
        relation_columns: Mapping[str, str],
        unmapped: set[str],
    ) -> list[Any]:
        values: dict[str, Any] = {
            IDENTIFIER_PROPERTY: element.element_id,
            TYPE_TAG_PROPERTY: element.type_tag,
        }
        is_relation_record = self._catalog.is_relation(element.type_tag)
        for name, value in element.attributes.items():
            if self._is_reference_attribute(element.type_tag, name, value):
                continue
            if name in element_columns and name not in _ELEMENT_FRAMEWORK_COLUMNS:
                values[name] = self._coerce(value, element_columns[name], element, name)
            elif not (is_relation_record and name in relation_columns):
                unmapped.add(name)
        return [values.get(column) for column in element_columns]

    def _relation_row(self, relation: Relation, relation_columns: Mapping[str, str]) -> list[Any]:
        values: dict[str, Any] = {
            IDENTIFIER_PROPERTY: relation.relation_id,
            TYPE_TAG_PROPERTY: relation.type_tag,
            RELATION_NAME_COLUMN: relation.name,
            ORIGIN_COLUMN: relation.origin_id,
            TARGET_COLUMN: relation.target_id,
        }
        for name, value in relation.attributes.items():
            if name in relation_columns and name not in _RELATION_FRAMEWORK_COLUMNS:
                if reference_targets(value) is None:
                    values[name] = self._coerce(value, relation_columns[name], relation, name)
        return [values.get(column) for column in relation_columns]

    def _is_reference_attribute(self, type_tag: str, name: str, value: Any) -> bool:
        if reference_targets(value) is not None:
            return True
        return self._catalog.is_reference_field(type_tag, name) and value in (None, [])

    def _coerce(self, value: Any, column_type: str, owner: Element | Relation, name: str) -> Any:
        if value is None:
            return None
        if column_type == "INTEGER":
            if isinstance(value, bool):
                return int(value)
            if isinstance(value, int):
                return value
            if isinstance(value, float) and value.is_integer():
                return int(value)
            if self._settings.tolerant_booleans and isinstance(value, str):
                tolerated = _TOLERATED_BOOLEANS.get(value.strip().lower())
                if tolerated is not None:
                    return tolerated
        elif column_type == "REAL":
            if isinstance(value, int | float) and not isinstance(value, bool):
                return float(value)
        elif column_type == "TEXT":
            if isinstance(value, str):
                return value
            if isinstance(value, list | dict):
                return canonical_json(value)
        owner_id = owner.element_id if isinstance(owner, Element) else owner.relation_id
        _LOGGER.warning(
            "storing NULL for '%s' of '%s': %r does not fit a %s column",
            name,
            owner_id,
            value,
            column_type,
        )
        return None

    def _write(
        self,
        *,
        element_columns: list[str],
        element_rows: list[list[Any]],
        relation_columns: list[str],
        relation_rows: list[list[Any]],
        origin_ids: list[str],
        relation_record_ids: list[str],
    ) -> None:
        if self._settings.disable_foreign_key_checks:
            _LOGGER.warning("foreign key checks are disabled for this import")
            self._gateway.set_foreign_keys(False)
        self._gateway.prepare_bulk_insert()
        try:
            with self._gateway.transaction():
                self._gateway.upsert_many(ELEMENTS_TABLE, element_columns, element_rows)
                self._gateway.delete_with_key_prefix(
                    RELATIONS_TABLE,
                    ORIGIN_COLUMN,
                    origin_ids,
                    key_column=IDENTIFIER_PROPERTY,
                    separator=_LOWERED_ID_SEPARATOR,
                )
                self._gateway.delete_matching(
                    RELATIONS_TABLE, IDENTIFIER_PROPERTY, relation_record_ids
                )
                self._gateway.upsert_many(RELATIONS_TABLE, relation_columns, relation_rows)
        except IntegrityViolationError as exc:
            raise ForeignKeyViolationError(
                f"Import rolled back, relations would reference missing elements: {exc}"
            ) from exc
        finally:
            if self._settings.disable_foreign_key_checks:
                self._gateway.set_foreign_keys(True)
        self._gateway.finish_bulk_insert(vacuum=self._settings.vacuum)


def _is_reference(value: Any) -> bool:
    return (
        isinstance(value, Mapping)
        and set(value) == {IDENTIFIER_PROPERTY}
        and isinstance(value[IDENTIFIER_PROPERTY], str)
    )


def _relation_record(element: Element) -> Relation:
    return Relation(
        relation_id=element.element_id,
        origin_id=_single_endpoint(element, RELATION_SOURCE_FIELD),
        target_id=_single_endpoint(element, RELATION_TARGET_FIELD),
        name=element.type_tag,
        type_tag=element.type_tag,
        attributes=element.attributes,
    )


def _single_endpoint(element: Element, field_name: str) -> str:
    targets = reference_targets(element.attributes.get(field_name))
    if targets is None or len(targets) != 1:
        raise MalformedElementError(
            f"Relationship '{element.element_id}' must reference exactly one '{field_name}'."
        )
    return targets[0]


def _dangling(relation: Relation, missing_id: str) -> DanglingReference:
    return DanglingReference(
        relation_id=relation.relation_id,
        origin_id=relation.origin_id,
        target_id=relation.target_id,
        name=relation.name,
        missing_id=missing_id,
    )
