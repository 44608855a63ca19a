"""Decode many DBC files, keeping one outcome per file."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dbc_tables.errors import DbcError
from dbc_tables.reader import WDBC_MAGIC, DbcReader
from dbc_tables.types import DecodeOptions, DecodeResult, Schema

LOGGER = logging.getLogger(__name__)

DBC_SUFFIX = ".dbc"


@dataclass
class FileOutcome:
    """Result of decoding one record type from one directory."""

    name: str
    path: Path | None
    result: DecodeResult | None = None
    error: str | None = None
    rows_inserted: int = 0

    @property
    def success(self) -> bool:
        return self.result is not None

    @property
    def records_returned(self) -> int:
        return self.result.metadata.records_returned if self.result is not None else 0

    def release_records(self) -> None:
        """Drop the decoded records, keeping the metadata counts."""
        if self.result is not None:
            self.result.records = []


@dataclass
class BatchSummary:
    """Aggregate counts over a set of file outcomes."""

    outcomes: list[FileOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def total_records(self) -> int:
        return sum(o.records_returned for o in self.outcomes)

    @property
    def total_inserted(self) -> int:
        return sum(o.rows_inserted for o in self.outcomes)


def find_dbc_files(directory: Path) -> dict[str, Path]:
    """Map record-type name to file path for every DBC file in a directory."""
    if not directory.is_dir():
        raise FileNotFoundError(f"DBC directory not found: {directory}")
    found: dict[str, Path] = {}
    for path in sorted(directory.iterdir()):
        if path.is_file() and path.suffix.lower() == DBC_SUFFIX:
            found.setdefault(path.stem, path)
    return found


def decode_one(
    name: str,
    schema: Schema | None,
    path: Path | None,
    options: DecodeOptions | None = None,
    magic: bytes = WDBC_MAGIC,
) -> FileOutcome:
    """Decode one file, turning any per-file failure into a failed outcome."""
    if schema is None:
        return FileOutcome(name=name, path=path, error=f"No schema found for {name}")
    if path is None or not path.exists():
        return FileOutcome(name=name, path=path, error=f"File not found for {name}")

    try:
        result = DbcReader(schema, magic).decode_file(path, options)
    except (DbcError, OSError) as e:
        LOGGER.warning("Failed to decode %s: %s", path, e)
        return FileOutcome(name=name, path=path, error=str(e))

    LOGGER.info(
        "Decoded %s: %d of %d records",
        name,
        result.metadata.records_returned,
        result.metadata.record_count,
    )
    return FileOutcome(name=name, path=path, result=result)


def iter_outcomes(
    schemas: Mapping[str, Schema],
    directory: Path,
    names: Iterable[str] | None = None,
    options: DecodeOptions | None = None,
    magic: bytes = WDBC_MAGIC,
) -> Iterator[FileOutcome]:
    """Decode the requested record types one file at a time.

    Each file is decoded only when the next outcome is requested, so a caller
    that consumes and releases outcomes holds one file's records at a time.

    Args:
        schemas: Schemas by record-type name.
        directory: Directory holding `<Name>.dbc` files.
        names: Record types to decode; defaults to every schema, in name order.
        options: Decoding options applied to each file.
        magic: Expected magic tag.

    Raises:
        FileNotFoundError: If `directory` does not exist. Raised before the
            first outcome is produced.
    """
    files = find_dbc_files(directory)
    return (
        decode_one(name, schemas.get(name), files.get(name), options, magic)
        for name in (sorted(schemas) if names is None else names)
    )


def decode_batch(
    schemas: Mapping[str, Schema],
    directory: Path,
    names: Iterable[str] | None = None,
    options: DecodeOptions | None = None,
    magic: bytes = WDBC_MAGIC,
) -> BatchSummary:
    """Decode every requested record type found in a directory.

    Returns:
        A summary with one outcome per requested name. No single file's
        failure stops the batch.
    """
    return BatchSummary(list(iter_outcomes(schemas, directory, names, options, magic)))
