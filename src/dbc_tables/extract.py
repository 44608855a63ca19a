"""Tool for extracting DBC schemas from descriptor source files.

Usage:
    dbc-schema path/to/dbc/descriptors                 # writes dbc-schemas.json
    dbc-schema path/to/dbc/descriptors -o out.json
    dbc-schema --config config.json                    # uses descriptorDir/schemaPath
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dbc_tables.builder import build_schemas
from dbc_tables.config import ConfigError, load_config
from dbc_tables.errors import DbcError
from dbc_tables.scanner import scan_directory
from dbc_tables.schema_store import DEFAULT_SCHEMA_FILE, save_schemas

# Number of schemas listed individually before the rest are summarized
PREVIEW_COUNT = 5


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Extract DBC record schemas from descriptor source files"
    )
    parser.add_argument(
        "descriptor_dir",
        type=Path,
        nargs="?",
        default=None,
        help="Directory of descriptor (.ts) files (default: descriptorDir from config)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help=f"Schema file to write (default: {DEFAULT_SCHEMA_FILE})",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Configuration file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log each skipped declaration",
    )

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    descriptor_dir = args.descriptor_dir
    output = args.output
    if args.config is not None:
        try:
            config = load_config(args.config)
        except (OSError, ConfigError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        descriptor_dir = descriptor_dir or config.descriptor_dir
        output = output or config.schema_path

    if descriptor_dir is None:
        print("Error: No descriptor directory given", file=sys.stderr)
        return 1
    output = output or Path(DEFAULT_SCHEMA_FILE)

    print("Parsing DBC descriptors...\n")
    try:
        results = scan_directory(descriptor_dir)
    except (OSError, DbcError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    schemas, failures = build_schemas(results)

    for i, name in enumerate(sorted(schemas)):
        if i >= PREVIEW_COUNT:
            print(f"  ... and {len(schemas) - PREVIEW_COUNT} more")
            break
        schema = schemas[name]
        print(f"  {name}: {len(schema)} fields ({schema.total_fields} words)")

    for name, reason in sorted(failures.items()):
        print(f"  skipped {name}: {reason}", file=sys.stderr)

    print(f"\nParsed: {len(schemas)} schemas")
    print(f"Skipped: {len(failures)} files")

    save_schemas(schemas, output)
    print(f"\nSchemas saved to: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
