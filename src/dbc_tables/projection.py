"""Project decoded records onto relational tables."""

from __future__ import annotations

import logging
import re
import sqlite3
import time
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dbc_tables.errors import ProjectionError
from dbc_tables.types import FieldDefinition, Schema, ValueKind

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000

# Column names that collide with SQL keywords and must be quoted
RESERVED_COLUMN_NAMES = frozenset(
    {"order", "group", "desc", "key", "name", "type", "index", "range"}
)

_NON_IDENTIFIER = re.compile(r"[^a-zA-Z0-9_]")

# Column type per value kind; the primary key is handled separately
COLUMN_TYPES: dict[ValueKind, str] = {
    ValueKind.INT32: "INT",
    ValueKind.UINT32: "INT UNSIGNED",
    ValueKind.FLOAT32: "FLOAT",
    ValueKind.UINT64: "BIGINT UNSIGNED",
    ValueKind.UINT8: "TINYINT UNSIGNED",
    ValueKind.STRING_REF: "VARCHAR(255)",
}

# SQLite integers are signed 64-bit
INT64_MAX = 2**63 - 1
UINT64_RANGE = 2**64


@dataclass(frozen=True)
class ColumnDefinition:
    """One column of a projected table."""

    key: str  # record key the column is filled from
    name: str  # sanitized, possibly quoted identifier
    kind: ValueKind
    primary_key: bool = False

    @property
    def sql_type(self) -> str:
        return COLUMN_TYPES[self.kind]

    def to_sql(self) -> str:
        if self.primary_key:
            return f"{self.name} INTEGER PRIMARY KEY"
        return f"{self.name} {self.sql_type}"


def sanitize_table_name(name: str) -> str:
    return _NON_IDENTIFIER.sub("_", name).lower()


def sanitize_column_name(name: str) -> str:
    sanitized = _NON_IDENTIFIER.sub("_", name)
    if sanitized.lower() in RESERVED_COLUMN_NAMES:
        return f"`{sanitized}`"
    return sanitized


def _field_columns(f: FieldDefinition) -> list[ColumnDefinition]:
    if f.name == "ID" and not f.is_array:
        return [ColumnDefinition(f.name, sanitize_column_name(f.name), f.kind, primary_key=True)]
    return [ColumnDefinition(key, sanitize_column_name(key), f.kind) for key in f.record_keys()]


def column_definitions(schema: Schema) -> list[ColumnDefinition]:
    """Return the table columns for a schema, in record key order."""
    columns: list[ColumnDefinition] = []
    for f in schema.fields:
        columns.extend(_field_columns(f))
    return columns


def create_table_sql(table_name: str, schema: Schema) -> str:
    columns = ",\n  ".join(c.to_sql() for c in column_definitions(schema))
    return f"CREATE TABLE IF NOT EXISTS {table_name} (\n  {columns}\n)"


def insert_sql(table_name: str, schema: Schema, or_ignore: bool = True) -> str:
    columns = column_definitions(schema)
    names = ", ".join(c.name for c in columns)
    placeholders = ", ".join("?" for _ in columns)
    verb = "INSERT OR IGNORE" if or_ignore else "INSERT"
    return f"{verb} INTO {table_name} ({names}) VALUES ({placeholders})"


def sqlite_value(kind: ValueKind, value: Any) -> Any:
    """Convert a decoded value into something SQLite can store.

    SQLite cannot hold unsigned 64-bit integers above 2**63 - 1, so those are
    stored as their two's complement (``value - 2**64``). The conversion is
    lossless: adding 2**64 to a negative stored value gives back the original.
    """
    if kind is ValueKind.UINT64 and isinstance(value, int) and value > INT64_MAX:
        return value - UINT64_RANGE
    return value


def iter_row_batches(
    schema: Schema,
    records: Iterable[Mapping[str, Any]],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[list[tuple[Any, ...]]]:
    """Group records into lists of row tuples in column order."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    columns = [(c.key, c.kind) for c in column_definitions(schema)]
    batch: list[tuple[Any, ...]] = []
    for record in records:
        batch.append(tuple(sqlite_value(kind, record.get(key)) for key, kind in columns))
        if len(batch) >= batch_size:
            yield batch
            batch = []
    if batch:
        yield batch


class SqliteExporter:
    """Writes decoded records into SQLite tables, one table per record type."""

    def __init__(
        self,
        database: Path | str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retries: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        self.database = database
        self.batch_size = batch_size
        self.retries = retries
        self.retry_delay = retry_delay
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if isinstance(self.database, Path):
                self.database.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.database))
        return self._conn

    def export(
        self,
        name: str,
        schema: Schema,
        records: Sequence[Mapping[str, Any]],
        progress: Callable[[int, int], None] | None = None,
    ) -> int:
        """Replace the table for `name` with the given records.

        The drop, create and inserts run in one transaction. On failure it is
        rolled back, so an existing table is left as it was and no empty
        table is left behind.

        Args:
            name: Record-type name; sanitized into the table name.
            schema: Schema the records were decoded with.
            records: Decoded records.
            progress: Optional callable receiving (rows_written, total).

        Returns:
            Number of rows actually inserted (duplicate keys are skipped).

        Raises:
            ProjectionError: If any statement fails; the transaction is
                rolled back first.
        """
        table_name = sanitize_table_name(name)
        try:
            conn = self.connection
        except (sqlite3.Error, OSError) as e:
            raise ProjectionError(f"cannot open {self.database}: {e}", table_name) from e

        try:
            self._execute_with_retry("BEGIN")
            self._execute_with_retry(f"DROP TABLE IF EXISTS {table_name}")
            self._execute_with_retry(create_table_sql(table_name, schema))

            statement = insert_sql(table_name, schema)
            written = 0
            inserted = 0
            for batch in iter_row_batches(schema, records, self.batch_size):
                before = conn.total_changes
                self._executemany_with_retry(statement, batch)
                inserted += conn.total_changes - before
                written += len(batch)
                if progress is not None:
                    progress(written, len(records))

            conn.commit()
        except (sqlite3.Error, OverflowError) as e:
            conn.rollback()
            LOGGER.error("Export into %s failed, rolled back: %s", table_name, e)
            raise ProjectionError(str(e), table_name) from e

        LOGGER.info("Exported %d rows into %s", inserted, table_name)
        return inserted

    def _execute_with_retry(self, sql: str) -> None:
        self._retry(lambda: self.connection.execute(sql))

    def _executemany_with_retry(self, sql: str, rows: list[tuple[Any, ...]]) -> None:
        self._retry(lambda: self.connection.executemany(sql, rows))

    def _retry(self, operation: Callable[[], Any]) -> None:
        # Only lock contention is transient; everything else propagates at once
        for attempt in range(self.retries + 1):
            try:
                operation()
                return
            except sqlite3.OperationalError as e:
                if "locked" not in str(e) or attempt == self.retries:
                    raise
                delay = self.retry_delay * (2**attempt)
                LOGGER.warning("Database busy (%s); retrying in %.1fs", e, delay)
                time.sleep(delay)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SqliteExporter:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
