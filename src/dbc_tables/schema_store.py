"""Persist record schemas as a versioned JSON document."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dbc_tables.builder import validate_layout
from dbc_tables.errors import LayoutError, SchemaDocumentError
from dbc_tables.types import VALUE_KIND_NAMES, FieldDefinition, Schema, ValueKind

SCHEMA_DOCUMENT_VERSION = 1

DEFAULT_SCHEMA_FILE = "dbc-schemas.json"


def serialize_field(f: FieldDefinition) -> dict[str, Any]:
    """Serialize one field definition to its document form."""
    entry: dict[str, Any] = {
        "name": f.name,
        "type": f.kind.value,
        "offset": f.offset,
        "isArray": f.is_array,
        "count": f.count,
        "bytesPerField": f.bytes_per_field,
        "fieldIndex": f.field_index,
    }
    if f.field_indices is not None:
        entry["fieldIndices"] = list(f.field_indices)
    if f.byte_index_in_chunk is not None:
        entry["byteIndexInChunk"] = f.byte_index_in_chunk
    if f.cell_type:
        entry["cellType"] = f.cell_type
    if f.localized:
        entry["localized"] = True
    return entry


def serialize_schema(schema: Schema) -> dict[str, Any]:
    """Serialize a schema to its document form."""
    return {
        "name": schema.name,
        "totalFields": schema.total_fields,
        "fields": [serialize_field(f) for f in schema.fields],
    }


def serialize_schemas(schemas: Mapping[str, Schema]) -> dict[str, Any]:
    """Build the full versioned document for a set of schemas."""
    return {
        "version": SCHEMA_DOCUMENT_VERSION,
        "schemas": {name: serialize_schema(schemas[name]) for name in sorted(schemas)},
    }


def _require(data: Mapping[str, Any], key: str, expected: type, where: str) -> Any:
    if key not in data:
        raise SchemaDocumentError(f"{where}: missing '{key}'")
    value = data[key]
    # bool is an int subclass; never accept it where a number is expected
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise SchemaDocumentError(f"{where}: '{key}' must be {expected.__name__}")
    return value


def _optional(data: Mapping[str, Any], key: str, expected: type, default: Any, where: str) -> Any:
    if key not in data:
        return default
    return _require(data, key, expected, where)


def deserialize_field(data: Mapping[str, Any], where: str) -> FieldDefinition:
    """Rebuild a field definition, checking derived values against the offsets."""
    if not isinstance(data, Mapping):
        raise SchemaDocumentError(f"{where}: field entry must be an object")
    name = _require(data, "name", str, where)
    where = f"{where}.{name}"

    type_name = _require(data, "type", str, where)
    kind = VALUE_KIND_NAMES.get(type_name)
    if kind is None:
        raise SchemaDocumentError(f"{where}: unknown type '{type_name}'")

    offset = _require(data, "offset", int, where)
    count = _optional(data, "count", int, 1, where)
    is_array = _optional(data, "isArray", bool, False, where)
    cell_type = _optional(data, "cellType", str, "", where)

    localized = _optional(data, "localized", bool, None, where)
    if localized is None:
        localized = kind is ValueKind.STRING_REF and is_array and "Loc" in cell_type

    f = FieldDefinition(
        name=name,
        kind=kind,
        offset=offset,
        count=count,
        is_array=is_array,
        localized=localized,
        cell_type=cell_type,
    )

    checks = {
        "bytesPerField": f.bytes_per_field,
        "fieldIndex": f.field_index,
        "byteIndexInChunk": f.byte_index_in_chunk,
    }
    for key, expected in checks.items():
        if key in data and (isinstance(data[key], bool) or data[key] != expected):
            raise SchemaDocumentError(f"{where}: '{key}' is {data[key]}, expected {expected}")
    if "fieldIndices" in data and f.field_indices is not None:
        if list(data["fieldIndices"]) != list(f.field_indices):
            raise SchemaDocumentError(f"{where}: 'fieldIndices' disagree with offset and count")
    return f


def deserialize_schema(name: str, data: Mapping[str, Any]) -> Schema:
    """Rebuild and validate one schema from its document form."""
    if not isinstance(data, Mapping):
        raise SchemaDocumentError(f"{name}: schema entry must be an object")
    raw_fields = data.get("fields")
    if not isinstance(raw_fields, list):
        raise SchemaDocumentError(f"{name}: 'fields' must be a list")

    fields = tuple(deserialize_field(entry, name) for entry in raw_fields)
    schema = Schema(name=data.get("name", name), fields=fields)
    try:
        validate_layout(schema)
    except LayoutError as e:
        raise SchemaDocumentError(str(e)) from e

    total_fields = data.get("totalFields")
    if total_fields is not None and total_fields != schema.total_fields:
        raise SchemaDocumentError(
            f"{name}: 'totalFields' is {total_fields}, fields span {schema.total_fields} words"
        )
    return schema


def deserialize_schemas(document: Mapping[str, Any]) -> dict[str, Schema]:
    """Rebuild every schema in a document.

    Documents without a "version" key are treated as the older unversioned
    form: a bare mapping of record-type name to schema.
    """
    if not isinstance(document, Mapping):
        raise SchemaDocumentError("schema document must be an object")

    if "version" in document:
        version = document["version"]
        if version != SCHEMA_DOCUMENT_VERSION:
            raise SchemaDocumentError(f"unsupported schema document version: {version}")
        entries = document.get("schemas", {})
        if not isinstance(entries, Mapping):
            raise SchemaDocumentError("'schemas' must be an object")
    else:
        entries = document

    return {name: deserialize_schema(name, entry) for name, entry in entries.items()}


def save_schemas(schemas: Mapping[str, Schema], path: Path) -> None:
    """Write schemas to a JSON document."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(serialize_schemas(schemas), f, indent=2)
        f.write("\n")


def load_schemas(path: Path) -> dict[str, Schema]:
    """Load and validate schemas from a JSON document.

    Raises:
        FileNotFoundError: If the document does not exist.
        SchemaDocumentError: If the document is not valid JSON or fails
            validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            document = json.load(f)
        except json.JSONDecodeError as e:
            raise SchemaDocumentError(f"{path}: invalid JSON: {e}") from e
    return deserialize_schemas(document)
