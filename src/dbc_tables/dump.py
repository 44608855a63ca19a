"""Tool for dumping decoded DBC records to the console."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dbc_tables.errors import DbcError
from dbc_tables.reader import DbcReader
from dbc_tables.schema_store import load_schemas
from dbc_tables.types import DecodeOptions, DecodeResult, Schema


def format_value(value: Any) -> str:
    """Format a decoded value for display."""
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def dump_result_json(name: str, schema: Schema, result: DecodeResult) -> None:
    """Print a decode result as a JSON document."""
    records = []
    for record in result.records:
        entry = record.as_dict()
        for field_name, values in record.locales.items():
            entry[f"{field_name}_locales"] = list(values)
        records.append(entry)

    meta = result.metadata
    print(
        json.dumps(
            {
                "dbcName": name,
                "schema": {"totalFields": schema.total_fields, "namedFields": len(schema)},
                "metadata": {
                    "recordCount": meta.record_count,
                    "fieldCount": meta.field_count,
                    "recordSize": meta.record_size,
                    "stringSize": meta.string_table_size,
                    "recordsShown": meta.records_returned,
                },
                "records": records,
            },
            indent=2,
            ensure_ascii=False,
        )
    )


def dump_result(name: str, schema: Schema, result: DecodeResult) -> None:
    """Print a decode result as readable text."""
    meta = result.metadata
    print(f"=== {name} ({meta.records_returned} of {meta.record_count} records) ===")
    print(
        f"fields: {meta.field_count} declared, {schema.total_fields} in schema; "
        f"record size: {meta.record_size}; string table: {meta.string_table_size} bytes"
    )
    print()

    for record in result.records:
        values = ", ".join(f"{key}={format_value(value)}" for key, value in record.items())
        print(f"[{record.index}] {values}")
        for field_name, locales in record.locales.items():
            shown = ", ".join(format_value(v) for v in locales if v)
            print(f"    {field_name} locales: {shown}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Decode a DBC file with its schema and print the records"
    )
    parser.add_argument(
        "schemas",
        type=Path,
        help="Path to the schema document (dbc-schemas.json)",
    )
    parser.add_argument(
        "dbc_file",
        type=Path,
        help="Path to the .dbc file to decode",
    )
    parser.add_argument(
        "--name",
        default=None,
        help="Record type name (default: the file name without extension)",
    )
    parser.add_argument(
        "-n", "--limit",
        type=int,
        default=None,
        help="Limit number of records to display",
    )
    parser.add_argument(
        "-j", "--json",
        action="store_true",
        help="Output as JSON",
    )
    parser.add_argument(
        "--locales",
        action="store_true",
        help="Also show every locale of localized string fields",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if not args.dbc_file.exists():
        print(f"Error: DBC file not found: {args.dbc_file}", file=sys.stderr)
        return 1

    try:
        schemas = load_schemas(args.schemas)
    except (OSError, DbcError) as e:
        print(f"Error loading schemas: {e}", file=sys.stderr)
        return 1

    name = args.name or args.dbc_file.stem
    schema = schemas.get(name)
    if schema is None:
        print(f"Error: No schema found for {name}", file=sys.stderr)
        available = ", ".join(sorted(schemas)[:20])
        print(f"\nAvailable schemas: {available}", file=sys.stderr)
        return 1

    try:
        options = DecodeOptions(limit=args.limit, include_locales=args.locales)
        result = DbcReader(schema).decode_file(args.dbc_file, options)
    except (ValueError, OSError, DbcError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        dump_result_json(name, schema, result)
    else:
        dump_result(name, schema, result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
