"""Relational schema entities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ELEMENTS_TABLE = "elements"
RELATIONS_TABLE = "relations"
ORIGIN_COLUMN = "origin_id"
TARGET_COLUMN = "target_id"
RELATION_NAME_COLUMN = "name"


class ColumnType(str, Enum):
    """SQLite STRICT column types used by the generated tables."""

    TEXT = "TEXT"
    INTEGER = "INTEGER"
    REAL = "REAL"


@dataclass(frozen=True)
class RelationalColumn:
    """One column of a generated table."""

    name: str
    column_type: ColumnType
    nullable: bool = True
    primary_key: bool = False
    references: str | None = None


@dataclass(frozen=True)
class TableLayout:
    """Ordered columns and indexed columns of one table."""

    name: str
    columns: tuple[RelationalColumn, ...]
    indexed_columns: tuple[str, ...] = ()

    def column(self, name: str) -> RelationalColumn | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)


@dataclass(frozen=True)
class RelationalSchema:
    """The two tables every model database consists of."""

    elements: TableLayout
    relations: TableLayout


@dataclass(frozen=True)
class SchemaPartition:
    """Definition names split by the table their instances populate."""

    element_like: tuple[str, ...]
    relation_like: tuple[str, ...]
