"""DBC Tables - Schema-driven decoding of DBC binary record files."""

from dbc_tables.batch import BatchSummary, FileOutcome, decode_batch, iter_outcomes
from dbc_tables.builder import build_schema, build_schemas, classify_cell
from dbc_tables.errors import (
    BoundsError,
    DbcError,
    DescriptorParseError,
    FormatError,
    LayoutError,
    LayoutMismatchWarning,
    ProjectionError,
    SchemaDocumentError,
)
from dbc_tables.parsing import CellDeclaration, DescriptorParser
from dbc_tables.reader import DbcReader, decode_file, read_header
from dbc_tables.scanner import DescriptorScanner, ScanResult, scan_descriptor, scan_directory
from dbc_tables.schema_store import load_schemas, save_schemas
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

__all__ = [
    # Main API
    "scan_descriptor",
    "scan_directory",
    "build_schema",
    "build_schemas",
    "classify_cell",
    "load_schemas",
    "save_schemas",
    "DbcReader",
    "decode_file",
    "decode_batch",
    "iter_outcomes",
    "read_header",
    # Scanning
    "CellDeclaration",
    "DescriptorParser",
    "DescriptorScanner",
    "ScanResult",
    # Data model
    "Cell",
    "DecodeMetadata",
    "DecodeOptions",
    "DecodeResult",
    "FieldDefinition",
    "FileHeader",
    "Record",
    "Schema",
    "ValueKind",
    "BatchSummary",
    "FileOutcome",
    # Errors
    "DbcError",
    "DescriptorParseError",
    "LayoutError",
    "SchemaDocumentError",
    "FormatError",
    "BoundsError",
    "LayoutMismatchWarning",
    "ProjectionError",
]

__version__ = "0.1.0"
