"""Type definitions for the dbc_tables library."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Records are measured in 4-byte words when cross-checking against the header
WORD_SIZE = 4

# Localized string cells: 16 locale string references + 1 flag word
LOCALE_COUNT = 16
LOCALIZED_CELL_COUNT = LOCALE_COUNT + 1


class ValueKind(Enum):
    """Value types a DBC field can hold."""

    INT32 = "int32"
    UINT32 = "uint32"
    FLOAT32 = "float32"
    UINT64 = "uint64"
    UINT8 = "uint8"
    STRING_REF = "string"

    @property
    def size_bytes(self) -> int:
        """Return the size in bytes of one element of this kind."""
        sizes = {
            ValueKind.INT32: 4,
            ValueKind.UINT32: 4,
            ValueKind.FLOAT32: 4,
            ValueKind.UINT64: 8,
            ValueKind.UINT8: 1,
            ValueKind.STRING_REF: 4,  # uint32 offset into the string table
        }
        return sizes[self]

    @property
    def struct_format(self) -> str:
        """Return the little-endian struct format for one element."""
        formats = {
            ValueKind.INT32: "<i",
            ValueKind.UINT32: "<I",
            ValueKind.FLOAT32: "<f",
            ValueKind.UINT64: "<Q",
            ValueKind.UINT8: "<B",
            ValueKind.STRING_REF: "<I",
        }
        return formats[self]


# Mapping from persisted type names to ValueKind, including the names used by
# older unversioned schema documents
VALUE_KIND_NAMES: dict[str, ValueKind] = {vk.value: vk for vk in ValueKind}
VALUE_KIND_NAMES.update(
    {
        "int": ValueKind.INT32,
        "uint": ValueKind.UINT32,
        "float": ValueKind.FLOAT32,
        "ulong": ValueKind.UINT64,
        "byte": ValueKind.UINT8,
    }
)


@dataclass(frozen=True)
class FieldDefinition:
    """Layout of one named field inside a record."""

    name: str
    kind: ValueKind
    offset: int
    count: int = 1
    is_array: bool = False
    localized: bool = False
    cell_type: str = ""

    @property
    def bytes_per_field(self) -> int:
        """Return the width of one element in bytes."""
        return self.kind.size_bytes

    @property
    def size_bytes(self) -> int:
        """Return the total number of bytes the field occupies."""
        return self.count * self.bytes_per_field

    @property
    def end_offset(self) -> int:
        """Return the byte offset just past the field's data."""
        return self.offset + self.size_bytes

    @property
    def field_index(self) -> int:
        """Return the 4-byte word the field starts in."""
        return self.offset // WORD_SIZE

    @property
    def field_indices(self) -> tuple[int, ...] | None:
        """Return the word index of every element, or None for plain scalars.

        Byte arrays pack four elements per word, so consecutive elements can
        share an index. 8-byte scalars span two words.
        """
        if self.is_array:
            if self.bytes_per_field == 1:
                return tuple((self.offset + i) // WORD_SIZE for i in range(self.count))
            step = self.bytes_per_field // WORD_SIZE
            return tuple(self.field_index + i * step for i in range(self.count))
        if self.bytes_per_field == 8:
            return (self.field_index, self.field_index + 1)
        return None

    @property
    def byte_index_in_chunk(self) -> int | None:
        """Return the byte position inside its word for a lone byte field."""
        if not self.is_array and self.bytes_per_field == 1:
            return self.offset % WORD_SIZE
        return None

    @property
    def collapses_to_first(self) -> bool:
        """Return whether only element 0 is kept in decoded records."""
        return self.is_array and self.kind is ValueKind.STRING_REF and self.count > 1

    @property
    def string_count(self) -> int:
        """Return how many elements are string references."""
        if self.kind is not ValueKind.STRING_REF:
            return 0
        if self.localized:
            return min(self.count, LOCALE_COUNT)
        return self.count

    def record_keys(self) -> tuple[str, ...]:
        """Return the keys this field contributes to a decoded record."""
        if not self.is_array or self.collapses_to_first:
            return (self.name,)
        return tuple(f"{self.name}_{i}" for i in range(1, self.count + 1))


@dataclass(frozen=True)
class Schema:
    """Ordered field layout for one record type."""

    name: str
    fields: tuple[FieldDefinition, ...] = ()

    @property
    def record_width(self) -> int:
        """Return the number of bytes spanned by the declared fields."""
        return max((f.end_offset for f in self.fields), default=0)

    @property
    def total_fields(self) -> int:
        """Return the record width in 4-byte words, rounded up."""
        return -(-self.record_width // WORD_SIZE)

    @property
    def primary_key(self) -> FieldDefinition | None:
        """Return the ID field, if the record type declares one."""
        return self.get_field("ID")

    def get_field(self, name: str) -> FieldDefinition | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def column_keys(self) -> list[str]:
        """Return every key a decoded record of this schema carries, in order."""
        keys: list[str] = []
        for f in self.fields:
            keys.extend(f.record_keys())
        return keys

    def __len__(self) -> int:
        return len(self.fields)


@dataclass(frozen=True)
class Cell:
    """A decoded scalar tagged with the kind it was read as."""

    kind: ValueKind
    value: int | float | str


class Record(Mapping[str, Any]):
    """One decoded row: an ordered mapping of record key to plain value.

    The tagged cells stay available through `cell()`, and the full locale
    tuples of localized fields through `locales` when they were requested.
    """

    def __init__(self, index: int) -> None:
        self.index = index
        self._cells: dict[str, Cell] = {}
        self.locales: dict[str, tuple[str, ...]] = {}

    def set_cell(self, key: str, cell: Cell) -> None:
        self._cells[key] = cell

    def cell(self, key: str) -> Cell:
        return self._cells[key]

    def as_dict(self) -> dict[str, Any]:
        """Return a plain dict copy of the record values."""
        return {key: c.value for key, c in self._cells.items()}

    def __getitem__(self, key: str) -> Any:
        return self._cells[key].value

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"Record({self.index}, {self.as_dict()!r})"


@dataclass(frozen=True)
class FileHeader:
    """Fixed 20-byte header at the start of every DBC file."""

    magic: bytes
    record_count: int
    field_count: int
    record_size: int
    string_table_size: int

    SIZE = 20

    @property
    def data_start(self) -> int:
        return self.SIZE

    @property
    def string_table_start(self) -> int:
        return self.data_start + self.record_count * self.record_size

    @property
    def end(self) -> int:
        """Return the offset just past the string table."""
        return self.string_table_start + self.string_table_size


@dataclass(frozen=True)
class DecodeOptions:
    """Per-call decoding settings."""

    limit: int | None = None
    include_locales: bool = False

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be non-negative, got {self.limit}")


@dataclass(frozen=True)
class DecodeMetadata:
    """Header values of a decoded file plus how many records were returned."""

    record_count: int
    field_count: int
    record_size: int
    string_table_size: int
    records_returned: int
    layout_matches: bool = True


@dataclass
class DecodeResult:
    """Metadata and records produced by one decode call."""

    metadata: DecodeMetadata
    records: list[Record] = field(default_factory=list)
