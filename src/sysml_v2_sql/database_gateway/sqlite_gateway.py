"""SQLite access service used by schema initialization and model import."""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sysml_v2_sql.ddl_emission import quote_identifier

_LOGGER = logging.getLogger(__name__)

_KEY_LOOKUP_CHUNK = 500
_BULK_INSERT_PAGE_SIZE = 4096
_BULK_INSERT_CACHE_KIB = _BULK_INSERT_PAGE_SIZE * 2**15 // 1024


class DatabaseGatewayError(Exception):
    """Raised when a database operation fails."""


class IntegrityViolationError(DatabaseGatewayError):
    """Raised when committing would violate a table constraint."""


class DatabaseGateway:
    """Thin wrapper around one SQLite connection in autocommit mode.

    Transactions are opened explicitly with `begin_transaction` or the
    `transaction()` context manager so an import can span many statements.

    The import path only uses the batched methods (`upsert_many`, the deletes,
    `existing_keys`, `column_types`). `query`, `upsert`, `table_columns` and
    `count_rows` are conveniences for inspecting a database by hand and in tests.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: Path | str, *, foreign_keys: bool = True) -> DatabaseGateway:
        try:
            connection = sqlite3.connect(str(path), isolation_level=None, timeout=10)
        except sqlite3.Error as exc:
            raise DatabaseGatewayError(f"Cannot open database '{path}': {exc}") from exc
        gateway = cls(connection)
        gateway.set_foreign_keys(foreign_keys)
        _LOGGER.debug("opened database %s", path)
        return gateway

    def __enter__(self) -> DatabaseGateway:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def in_transaction(self) -> bool:
        return self._connection.in_transaction

    def close(self) -> None:
        self._connection.close()

    def execute_ddl(self, ddl: str) -> None:
        """Execute a script of DDL statements."""
        try:
            self._connection.executescript(ddl)
        except sqlite3.Error as exc:
            raise DatabaseGatewayError(
                f"Failed to execute DDL: {exc}; are there conflicting tables in the database?"
            ) from exc

    def query(self, sql: str, parameters: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute SQL and return rows as dicts."""
        try:
            rows = self._connection.execute(sql, tuple(parameters)).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseGatewayError(f"Query failed: {exc}") from exc
        return [dict(row) for row in rows]

    def table_columns(self, table: str) -> tuple[str, ...]:
        return tuple(self.column_types(table))

    def column_types(self, table: str) -> dict[str, str]:
        """Return declared column types of `table` in column order."""
        rows = self._execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()
        if not rows:
            raise DatabaseGatewayError(
                f"Table '{table}' does not exist; initialize the database first."
            )
        return {row["name"]: row["type"].upper() for row in rows}

    def count_rows(self, table: str) -> int:
        row = self._execute(f"SELECT COUNT(*) FROM {quote_identifier(table)}").fetchone()
        return int(row[0])

    def upsert(self, table: str, row: Mapping[str, Any]) -> None:
        self.upsert_many(table, list(row), [tuple(row.values())])

    def upsert_many(
        self, table: str, columns: Sequence[str], rows: Iterable[Sequence[Any]]
    ) -> int:
        """Insert rows, replacing any existing row with the same primary key."""
        column_list = ", ".join(quote_identifier(column) for column in columns)
        placeholders = ", ".join("?" for _ in columns)
        statement = (
            f"INSERT OR REPLACE INTO {quote_identifier(table)} ({column_list})"
            f" VALUES ({placeholders})"
        )
        materialized = [tuple(row) for row in rows]
        if materialized:
            self._executemany(statement, materialized)
        return len(materialized)

    def delete_matching(self, table: str, column: str, values: Iterable[Any]) -> None:
        statement = f"DELETE FROM {quote_identifier(table)} WHERE {quote_identifier(column)} = ?"
        self._executemany(statement, [(value,) for value in values])

    def delete_with_key_prefix(
        self,
        table: str,
        column: str,
        values: Iterable[str],
        *,
        key_column: str,
        separator: str,
    ) -> None:
        """Delete rows matching `column` whose `key_column` begins with `{value}{separator}`."""
        statement = (
            f"DELETE FROM {quote_identifier(table)} WHERE {quote_identifier(column)} = ?"
            f" AND substr({quote_identifier(key_column)}, 1, ?) = ?"
        )
        rows = []
        for value in values:
            prefix = f"{value}{separator}"
            rows.append((value, len(prefix), prefix))
        self._executemany(statement, rows)

    def existing_keys(self, table: str, column: str, candidates: Iterable[Any]) -> set[Any]:
        """Return the subset of `candidates` already stored in `table.column`."""
        pending = list(dict.fromkeys(candidates))
        found: set[Any] = set()
        for start in range(0, len(pending), _KEY_LOOKUP_CHUNK):
            chunk = pending[start : start + _KEY_LOOKUP_CHUNK]
            placeholders = ", ".join("?" for _ in chunk)
            rows = self._execute(
                f"SELECT {quote_identifier(column)} FROM {quote_identifier(table)}"
                f" WHERE {quote_identifier(column)} IN ({placeholders})",
                chunk,
            ).fetchall()
            found.update(row[0] for row in rows)
        return found

    def begin_transaction(self) -> None:
        self._execute("BEGIN")

    def commit(self) -> None:
        try:
            self._connection.execute("COMMIT")
        except sqlite3.IntegrityError as exc:
            raise IntegrityViolationError(f"Commit rejected: {exc}") from exc
        except sqlite3.Error as exc:
            raise DatabaseGatewayError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        if self._connection.in_transaction:
            self._execute("ROLLBACK")

    @contextmanager
    def transaction(self) -> Iterator[DatabaseGateway]:
        """Run the block in one transaction, rolling back on any exception."""
        self.begin_transaction()
        try:
            yield self
            self.commit()
        except BaseException:
            self.rollback()
            raise

    def set_foreign_keys(self, enabled: bool) -> None:
        self._execute(f"PRAGMA foreign_keys = {'ON' if enabled else 'OFF'}")

    def prepare_bulk_insert(self) -> None:
        """Apply pragmas that speed up large imports."""
        _LOGGER.info("applying bulk insert pragmas")
        self._execute(f"PRAGMA page_size = {_BULK_INSERT_PAGE_SIZE}")
        self._execute(f"PRAGMA cache_size = -{_BULK_INSERT_CACHE_KIB}")
        self._execute("PRAGMA synchronous = OFF")

    def finish_bulk_insert(self, *, vacuum: bool = False) -> None:
        """Reset bulk insert pragmas and refresh query planner statistics."""
        _LOGGER.info("resetting bulk insert pragmas")
        self._execute("PRAGMA synchronous = NORMAL")
        for operation in ("VACUUM", "ANALYZE") if vacuum else ("ANALYZE",):
            started = time.perf_counter()
            self._execute(operation)
            _LOGGER.info("%s took %.2fs", operation, time.perf_counter() - started)

    def _execute(self, statement: str, parameters: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(statement, tuple(parameters))
        except sqlite3.Error as exc:
            raise DatabaseGatewayError(f"Statement failed ({exc}): {statement}") from exc

    def _executemany(self, statement: str, rows: Sequence[Sequence[Any]]) -> None:
        try:
            self._connection.executemany(statement, rows)
        except sqlite3.Error as exc:
            raise DatabaseGatewayError(f"Statement failed ({exc}): {statement}") from exc
