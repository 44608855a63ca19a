"""Build validated record schemas from parsed cell declarations."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from dbc_tables.errors import LayoutError
from dbc_tables.parsing import CellDeclaration
from dbc_tables.scanner import ScanResult
from dbc_tables.types import LOCALIZED_CELL_COUNT, FieldDefinition, Schema, ValueKind

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CellClass:
    """What a cell type decodes to."""

    kind: ValueKind
    is_array: bool = False
    fixed_count: int | None = None
    localized: bool = False


@dataclass(frozen=True)
class ClassificationRule:
    """Maps cell type names containing any of `markers` to a CellClass."""

    markers: tuple[str, ...]
    cell_class: CellClass

    def matches(self, cell_type: str) -> bool:
        return any(marker in cell_type for marker in self.markers)


# Ordered most specific first; the first matching rule wins.
CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(("ULong",), CellClass(ValueKind.UINT64)),
    ClassificationRule(("ByteArray",), CellClass(ValueKind.UINT8, is_array=True)),
    ClassificationRule(("Byte",), CellClass(ValueKind.UINT8)),
    # Also catches UIntArray: unsigned cells are read as signed words
    ClassificationRule(("IntArray", "MultiArray"), CellClass(ValueKind.INT32, is_array=True)),
    ClassificationRule(("FloatArray",), CellClass(ValueKind.FLOAT32, is_array=True)),
    ClassificationRule(("Float",), CellClass(ValueKind.FLOAT32)),
    ClassificationRule(
        ("Loc",),
        CellClass(
            ValueKind.STRING_REF,
            is_array=True,
            fixed_count=LOCALIZED_CELL_COUNT,
            localized=True,
        ),
    ),
    ClassificationRule(("StringArray",), CellClass(ValueKind.STRING_REF, is_array=True)),
    ClassificationRule(("String",), CellClass(ValueKind.STRING_REF)),
    ClassificationRule(
        ("Bool", "Enum", "Flag", "Mask", "Pointer"), CellClass(ValueKind.INT32)
    ),
)

# Keys, signed and unsigned ints and anything unrecognised
DEFAULT_CELL_CLASS = CellClass(ValueKind.INT32)


def classify_cell(cell_type: str) -> CellClass:
    """Return the value class for a cell type name."""
    for rule in CLASSIFICATION_RULES:
        if rule.matches(cell_type):
            return rule.cell_class
    return DEFAULT_CELL_CLASS


def field_from_declaration(declaration: CellDeclaration) -> FieldDefinition:
    """Resolve one declaration into a field definition."""
    cell_class = classify_cell(declaration.cell_type)
    count = 1
    if cell_class.is_array:
        count = cell_class.fixed_count or declaration.array_size or 1

    return FieldDefinition(
        name=declaration.name,
        kind=cell_class.kind,
        offset=declaration.offset,
        count=count,
        is_array=cell_class.is_array,
        localized=cell_class.localized,
        cell_type=declaration.cell_type,
    )


def validate_layout(schema: Schema) -> None:
    """Check that a schema describes a consistent record layout.

    Raises:
        LayoutError: If fields are out of order, overlap, share a name, or the
            primary key is not a scalar 32-bit integer.
    """
    names: set[str] = set()
    previous: FieldDefinition | None = None
    for f in schema.fields:
        if f.name in names:
            raise LayoutError(f"{schema.name}: duplicate field name '{f.name}'")
        names.add(f.name)

        if f.offset < 0:
            raise LayoutError(f"{schema.name}: field '{f.name}' has negative offset {f.offset}")
        if f.count < 1:
            raise LayoutError(f"{schema.name}: field '{f.name}' has count {f.count}")

        if previous is not None:
            if f.offset < previous.offset:
                raise LayoutError(
                    f"{schema.name}: field '{f.name}' at offset {f.offset} is out of order"
                )
            if previous.end_offset > f.offset:
                raise LayoutError(
                    f"{schema.name}: field '{previous.name}' "
                    f"(bytes {previous.offset}-{previous.end_offset - 1}) overlaps "
                    f"field '{f.name}' at offset {f.offset}"
                )
        previous = f

    key = schema.primary_key
    if key is not None and (key.is_array or key.kind is not ValueKind.INT32):
        raise LayoutError(f"{schema.name}: primary key '{key.name}' must be a scalar int32")


def build_schema(name: str, declarations: Iterable[CellDeclaration]) -> Schema:
    """Build a validated schema from a record type's declarations.

    Fields are ordered by byte offset (then name), so the result does not
    depend on the order the declarations were found in.

    Raises:
        LayoutError: If there are no declarations or the layout is invalid.
    """
    fields = [field_from_declaration(d) for d in declarations]
    if not fields:
        raise LayoutError(f"{name}: no field declarations")

    fields.sort(key=lambda f: (f.offset, f.name))
    schema = Schema(name=name, fields=tuple(fields))
    validate_layout(schema)
    return schema


def build_schemas(
    results: Mapping[str, ScanResult],
) -> tuple[dict[str, Schema], dict[str, str]]:
    """Build schemas for a set of scanned units.

    Returns:
        Tuple of (schemas by name, failure reason by name). Units that yield no
        declarations or an invalid layout are reported, not raised.
    """
    schemas: dict[str, Schema] = {}
    failures: dict[str, str] = {}
    for name, result in results.items():
        if not result.is_schemaable:
            failures[name] = "no field declarations found"
            continue
        try:
            schemas[name] = build_schema(name, result.declarations)
        except LayoutError as e:
            LOGGER.warning("Cannot build schema for %s: %s", name, e)
            failures[name] = str(e)
    return schemas, failures
