"""Tests for saving and loading schema documents."""

import json
from pathlib import Path

import pytest

from dbc_tables.builder import build_schema
from dbc_tables.errors import SchemaDocumentError
from dbc_tables.parsing import CellDeclaration
from dbc_tables.schema_store import (
    SCHEMA_DOCUMENT_VERSION,
    deserialize_schemas,
    load_schemas,
    save_schemas,
    serialize_schema,
)
from dbc_tables.types import ValueKind


@pytest.fixture
def spell_schema():
    return build_schema(
        "Spell",
        [
            CellDeclaration("ID", "DBCKeyCell", 0),
            CellDeclaration("Category", "DBCUIntCell", 4),
            CellDeclaration("Flags", "DBCByteArrayCell", 8, 3),
            CellDeclaration("School", "DBCByteCell", 11),
            CellDeclaration("Guid", "DBCULongCell", 12),
            CellDeclaration("Speed", "DBCFloatCell", 20),
            CellDeclaration("Name", "DBCLocStringCell", 24),
        ],
    )


def write_document(path: Path, document) -> Path:
    path.write_text(json.dumps(document))
    return path


class TestSaveLoad:
    """Tests for the schema document on disk."""

    def test_round_trip(self, tmp_path: Path, spell_schema):
        """Test that a saved schema loads back equal."""
        path = tmp_path / "schemas.json"
        save_schemas({"Spell": spell_schema}, path)

        assert load_schemas(path) == {"Spell": spell_schema}

    def test_document_shape(self, tmp_path: Path, spell_schema):
        """Test the persisted keys of the versioned document."""
        path = tmp_path / "out" / "schemas.json"
        save_schemas({"Spell": spell_schema}, path)
        document = json.loads(path.read_text())

        assert document["version"] == SCHEMA_DOCUMENT_VERSION
        entry = document["schemas"]["Spell"]
        assert entry["totalFields"] == 23
        fields = {f["name"]: f for f in entry["fields"]}
        assert fields["ID"] == {
            "name": "ID",
            "type": "int32",
            "offset": 0,
            "isArray": False,
            "count": 1,
            "bytesPerField": 4,
            "fieldIndex": 0,
            "cellType": "DBCKeyCell",
        }
        assert fields["Flags"]["fieldIndices"] == [2, 2, 2]
        assert fields["School"]["byteIndexInChunk"] == 3
        assert fields["Guid"]["fieldIndices"] == [3, 4]
        assert fields["Name"]["localized"] is True
        assert fields["Name"]["count"] == 17

    def test_missing_file(self, tmp_path: Path):
        """Test that loading a missing document raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_schemas(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path):
        """Test that a corrupt document raises SchemaDocumentError."""
        path = tmp_path / "schemas.json"
        path.write_text("{not json")

        with pytest.raises(SchemaDocumentError, match="invalid JSON"):
            load_schemas(path)


class TestDeserialize:
    """Tests for validating schema documents."""

    def test_legacy_document(self):
        """Test an unversioned document with the older type names."""
        document = {
            "Item": {
                "name": "Item",
                "totalFields": 20,
                "fields": [
                    {"name": "ID", "type": "int", "offset": 0, "isArray": False, "count": 1},
                    {"name": "Price", "type": "float", "offset": 4},
                    {
                        "name": "Name",
                        "type": "string",
                        "offset": 8,
                        "isArray": True,
                        "count": 17,
                        "cellType": "DBCLocStringCell",
                    },
                    {"name": "Quality", "type": "byte", "offset": 76},
                ],
            }
        }
        schemas = deserialize_schemas(document)
        item = schemas["Item"]

        assert item.get_field("Price").kind is ValueKind.FLOAT32
        assert item.get_field("Name").localized
        assert item.get_field("Quality").kind is ValueKind.UINT8

    def test_serialized_schema_is_accepted(self, spell_schema):
        """Test that the serialized form passes its own validation."""
        document = {"version": 1, "schemas": {"Spell": serialize_schema(spell_schema)}}

        assert deserialize_schemas(document)["Spell"] == spell_schema

    def test_unsupported_version(self):
        """Test that an unknown version is rejected."""
        with pytest.raises(SchemaDocumentError, match="version"):
            deserialize_schemas({"version": 99, "schemas": {}})

    def test_unknown_type(self):
        """Test that an unknown type name is rejected."""
        document = {"T": {"fields": [{"name": "A", "type": "double", "offset": 0}]}}

        with pytest.raises(SchemaDocumentError, match="unknown type"):
            deserialize_schemas(document)

    def test_overlap_rejected(self):
        """Test that overlapping fields are rejected on load."""
        document = {
            "T": {
                "fields": [
                    {"name": "A", "type": "int32", "offset": 0},
                    {"name": "B", "type": "int32", "offset": 2},
                ]
            }
        }

        with pytest.raises(SchemaDocumentError, match="overlaps"):
            deserialize_schemas(document)

    def test_offsets_out_of_order_rejected(self):
        """Test that fields must appear in offset order."""
        document = {
            "T": {
                "fields": [
                    {"name": "A", "type": "int32", "offset": 4},
                    {"name": "B", "type": "int32", "offset": 0},
                ]
            }
        }

        with pytest.raises(SchemaDocumentError, match="out of order"):
            deserialize_schemas(document)

    def test_field_index_mismatch(self):
        """Test that a stored fieldIndex must agree with the offset."""
        document = {
            "T": {"fields": [{"name": "A", "type": "int32", "offset": 8, "fieldIndex": 3}]}
        }

        with pytest.raises(SchemaDocumentError, match="fieldIndex"):
            deserialize_schemas(document)

    def test_bytes_per_field_mismatch(self):
        """Test that a stored element width must agree with the type."""
        document = {
            "T": {"fields": [{"name": "A", "type": "uint8", "offset": 0, "bytesPerField": 4}]}
        }

        with pytest.raises(SchemaDocumentError, match="bytesPerField"):
            deserialize_schemas(document)

    def test_total_fields_mismatch(self):
        """Test that totalFields must match the field span."""
        document = {
            "T": {"totalFields": 5, "fields": [{"name": "A", "type": "int32", "offset": 0}]}
        }

        with pytest.raises(SchemaDocumentError, match="totalFields"):
            deserialize_schemas(document)

    def test_missing_offset(self):
        """Test that a field without an offset is rejected."""
        document = {"T": {"fields": [{"name": "A", "type": "int32"}]}}

        with pytest.raises(SchemaDocumentError, match="offset"):
            deserialize_schemas(document)

    @pytest.mark.parametrize("flag", ["isArray", "localized"])
    @pytest.mark.parametrize("value", ["false", 0, 1, None])
    def test_flags_must_be_bool(self, flag, value):
        """Test that array and localized flags only accept true or false."""
        document = {
            "T": {"fields": [{"name": "A", "type": "int32", "offset": 0, flag: value}]}
        }

        with pytest.raises(SchemaDocumentError, match=f"'{flag}' must be bool"):
            deserialize_schemas(document)

    def test_byte_index_in_chunk_mismatch(self):
        """Test that a stored byte position must agree with the offset."""
        document = {
            "T": {
                "fields": [
                    {"name": "A", "type": "int32", "offset": 0},
                    {"name": "B", "type": "uint8", "offset": 6, "byteIndexInChunk": 1},
                ]
            }
        }

        with pytest.raises(SchemaDocumentError, match="byteIndexInChunk"):
            deserialize_schemas(document)

    def test_byte_index_on_word_field_rejected(self):
        """Test that a byte position on a word-sized field is rejected."""
        document = {
            "T": {"fields": [{"name": "A", "type": "int32", "offset": 0, "byteIndexInChunk": 0}]}
        }

        with pytest.raises(SchemaDocumentError, match="byteIndexInChunk"):
            deserialize_schemas(document)
