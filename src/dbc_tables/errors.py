"""Exceptions and warnings raised by the dbc_tables library."""

from __future__ import annotations

from pathlib import Path


class DbcError(Exception):
    """Base class for all dbc_tables errors."""


class DescriptorParseError(DbcError):
    """A field declaration in descriptor source could not be parsed."""

    def __init__(self, message: str, lineno: int | None = None, unit: str | None = None) -> None:
        self.reason = message
        self.lineno = lineno
        self.unit = unit
        location = ""
        if unit is not None:
            location = f"{unit}:"
        if lineno is not None:
            location += f"{lineno}:"
        super().__init__(f"{location} {message}" if location else message)


class LayoutError(DbcError):
    """A set of field declarations does not describe a valid record layout."""


class SchemaDocumentError(DbcError):
    """A persisted schema document is malformed or inconsistent."""


class FormatError(DbcError):
    """A file is not a readable DBC file (wrong magic tag, truncated data)."""

    def __init__(self, message: str, found: bytes | None = None, path: Path | None = None) -> None:
        self.found = found
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class BoundsError(DbcError):
    """A field or string offset falls outside the data it addresses."""

    def __init__(
        self,
        message: str,
        field: str,
        record_index: int,
        path: Path | None = None,
    ) -> None:
        self.field = field
        self.record_index = record_index
        self.path = path
        context = f"record {record_index}, field '{field}'"
        if path is not None:
            context = f"{path}: {context}"
        super().__init__(f"{context}: {message}")


class LayoutMismatchWarning(UserWarning):
    """A schema's word count disagrees with the field count declared by a file."""


class ProjectionError(DbcError):
    """Decoded records of one record type could not be written to a table."""

    def __init__(self, message: str, table: str) -> None:
        self.table = table
        super().__init__(f"table '{table}': {message}")
