"""Schema-driven decoding of DBC binary record files."""

from __future__ import annotations

import logging
import mmap
import struct
import warnings
from collections.abc import Iterator
from pathlib import Path
from typing import Union

from dbc_tables.errors import BoundsError, FormatError, LayoutMismatchWarning
from dbc_tables.types import (
    Cell,
    DecodeMetadata,
    DecodeOptions,
    DecodeResult,
    FieldDefinition,
    FileHeader,
    Record,
    Schema,
    ValueKind,
)

LOGGER = logging.getLogger(__name__)

WDBC_MAGIC = b"WDBC"

# magic, record count, field count (words), record size, string table size
HEADER_FORMAT = "<4siIii"

Buffer = Union[bytes, bytearray, mmap.mmap]


def read_header(buffer: Buffer, magic: bytes = WDBC_MAGIC, path: Path | None = None) -> FileHeader:
    """Read and check the fixed file header.

    Raises:
        FormatError: If the magic tag is wrong, the header is truncated, a
            count is negative, or the record area and string table run past
            the end of the buffer.
    """
    if len(buffer) < FileHeader.SIZE:
        raise FormatError(
            f"file too short for a header ({len(buffer)} bytes)",
            found=bytes(buffer[:4]),
            path=path,
        )

    found, record_count, field_count, record_size, string_table_size = struct.unpack_from(
        HEADER_FORMAT, buffer, 0
    )
    if found != magic:
        raise FormatError(
            f"invalid DBC header: {found.decode('ascii', errors='replace')!r}",
            found=found,
            path=path,
        )

    for label, value in (
        ("record count", record_count),
        ("record size", record_size),
        ("string table size", string_table_size),
    ):
        if value < 0:
            raise FormatError(f"negative {label}: {value}", found=found, path=path)

    header = FileHeader(
        magic=found,
        record_count=record_count,
        field_count=field_count,
        record_size=record_size,
        string_table_size=string_table_size,
    )
    if header.end > len(buffer):
        raise FormatError(
            f"file truncated: header describes {header.end} bytes, got {len(buffer)}",
            found=found,
            path=path,
        )
    return header


class DbcReader:
    """Decodes DBC files of one record type using its schema.

    The reader holds only the schema and the expected magic tag, so one
    instance can decode any number of files, from any number of threads.
    """

    def __init__(self, schema: Schema, magic: bytes = WDBC_MAGIC) -> None:
        self.schema = schema
        self.magic = magic

    def decode(
        self,
        buffer: Buffer,
        options: DecodeOptions | None = None,
        path: Path | None = None,
    ) -> DecodeResult:
        """Decode a whole buffer.

        Either every requested record is returned or an exception is raised;
        a failed decode never yields a partial record list.
        """
        options = options or DecodeOptions()
        header = self._open(buffer, path)
        records = list(self._decode_records(buffer, header, options, path))
        metadata = DecodeMetadata(
            record_count=header.record_count,
            field_count=header.field_count,
            record_size=header.record_size,
            string_table_size=header.string_table_size,
            records_returned=len(records),
            layout_matches=header.field_count == self.schema.total_fields,
        )
        return DecodeResult(metadata=metadata, records=records)

    def iter_records(
        self,
        buffer: Buffer,
        options: DecodeOptions | None = None,
        path: Path | None = None,
    ) -> Iterator[Record]:
        """Lazily decode records one at a time.

        The header is checked when iteration starts, so format errors surface
        on the first `next()`.
        """
        options = options or DecodeOptions()
        header = self._open(buffer, path)
        yield from self._decode_records(buffer, header, options, path)

    def decode_file(self, path: Path, options: DecodeOptions | None = None) -> DecodeResult:
        """Decode a file through a read-only memory map held for this call only."""
        with open(path, "rb") as f:
            if path.stat().st_size == 0:
                raise FormatError("file is empty", found=b"", path=path)
            with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as view:
                return self.decode(view, options, path)

    def _open(self, buffer: Buffer, path: Path | None) -> FileHeader:
        header = read_header(buffer, self.magic, path)
        if header.field_count != self.schema.total_fields:
            where = f"{path}: " if path is not None else ""
            warnings.warn(
                LayoutMismatchWarning(
                    f"{where}{self.schema.name} schema spans {self.schema.total_fields} "
                    f"words, file declares {header.field_count}"
                ),
                stacklevel=3,
            )
        return header

    def _decode_records(
        self,
        buffer: Buffer,
        header: FileHeader,
        options: DecodeOptions,
        path: Path | None,
    ) -> Iterator[Record]:
        count = header.record_count
        if options.limit is not None:
            count = min(count, options.limit)

        LOGGER.debug("Decoding %d of %d %s records", count, header.record_count, self.schema.name)
        for index in range(count):
            yield self._decode_record(buffer, header, index, options, path)

    def _decode_record(
        self,
        buffer: Buffer,
        header: FileHeader,
        index: int,
        options: DecodeOptions,
        path: Path | None,
    ) -> Record:
        base = header.data_start + index * header.record_size
        record = Record(index)

        for f in self.schema.fields:
            if f.end_offset > header.record_size:
                raise BoundsError(
                    f"bytes {f.offset}-{f.end_offset - 1} exceed record size {header.record_size}",
                    field=f.name,
                    record_index=index,
                    path=path,
                )

            cells = self.read_elements(buffer, header, base, f, index, path)
            if not f.is_array:
                record.set_cell(f.name, cells[0])
            elif f.collapses_to_first:
                record.set_cell(f.name, cells[0])
                if options.include_locales:
                    record.locales[f.name] = tuple(c.value for c in cells[: f.string_count])
            else:
                for key, cell in zip(f.record_keys(), cells):
                    record.set_cell(key, cell)

        return record

    def read_elements(
        self,
        buffer: Buffer,
        header: FileHeader,
        base: int,
        f: FieldDefinition,
        index: int = 0,
        path: Path | None = None,
    ) -> list[Cell]:
        """Read every element of one field of the record starting at `base`.

        Elements past the field's string references (the flag word of a
        localized cell) are read as uint32.
        """
        cells: list[Cell] = []
        for i in range(f.count):
            kind = f.kind
            if kind is ValueKind.STRING_REF and i >= f.string_count:
                kind = ValueKind.UINT32
            offset = base + f.offset + i * f.bytes_per_field
            (value,) = struct.unpack_from(kind.struct_format, buffer, offset)
            if kind is ValueKind.STRING_REF:
                value = self._read_string(buffer, header, value, f, index, path)
            cells.append(Cell(kind, value))
        return cells

    def _read_string(
        self,
        buffer: Buffer,
        header: FileHeader,
        offset: int,
        f: FieldDefinition,
        index: int,
        path: Path | None,
    ) -> str:
        if offset == 0:
            return ""
        if offset >= header.string_table_size:
            raise BoundsError(
                f"string offset {offset} is outside the {header.string_table_size}-byte string table",
                field=f.name,
                record_index=index,
                path=path,
            )

        start = header.string_table_start + offset
        end = buffer.find(b"\x00", start, header.end)
        if end == -1:
            end = header.end
        return bytes(buffer[start:end]).decode("utf-8", errors="replace")


def decode_file(
    schema: Schema,
    path: Path,
    options: DecodeOptions | None = None,
    magic: bytes = WDBC_MAGIC,
) -> DecodeResult:
    """Decode one DBC file with the given schema."""
    return DbcReader(schema, magic).decode_file(path, options)
