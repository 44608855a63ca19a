"""Tool for exporting directories of DBC files into SQLite tables.

Usage:
    dbc-export --config config.json
    dbc-export --schemas dbc-schemas.json --source path/to/dbc --database dbc.sqlite
    dbc-export --config config.json --dbc Spell --limit 100 --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

from dbc_tables.batch import BatchSummary, FileOutcome, iter_outcomes
from dbc_tables.config import ConfigError, ExportConfig, SourceConfig, load_config
from dbc_tables.errors import DbcError, ProjectionError
from dbc_tables.projection import SqliteExporter, sanitize_table_name
from dbc_tables.schema_store import load_schemas
from dbc_tables.types import DecodeOptions, Schema

RULE = "=" * 60


def database_for_source(database: Path, source: SourceConfig, source_count: int) -> Path:
    """Return the SQLite file a source is exported into.

    A single source uses the configured file; several sources each get their
    own file, suffixed with the source name.
    """
    if source_count == 1:
        return database
    return database.with_name(f"{database.stem}_{source.name}{database.suffix}")


def _progress(label: str) -> Callable[[int, int], None]:
    def report(written: int, total: int) -> None:
        print(f"\r{label} Inserted {written}/{total} records...", end="", flush=True)

    return report


def export_source(
    source: SourceConfig,
    outcomes: Iterable[FileOutcome],
    database: Path,
    batch_size: int,
    dry_run: bool,
    schemas: Mapping[str, Schema],
) -> BatchSummary:
    """Write every successfully decoded file of one source into its database.

    Files are exported as they are decoded and their records are released
    straight after. A file whose table cannot be written becomes a failed
    outcome; the remaining files are still exported.

    Returns:
        A summary with one outcome per file, carrying the rows inserted.
    """
    summary = BatchSummary()
    exporter = None if dry_run else SqliteExporter(database, batch_size=batch_size)
    try:
        for outcome in outcomes:
            if outcome.result is not None:
                outcome = _export_outcome(source, outcome, exporter, schemas)
            summary.outcomes.append(outcome)
    finally:
        if exporter is not None:
            exporter.close()
    return summary


def _export_outcome(
    source: SourceConfig,
    outcome: FileOutcome,
    exporter: SqliteExporter | None,
    schemas: Mapping[str, Schema],
) -> FileOutcome:
    label = f"[{source.name}.{outcome.name}]"
    if exporter is None:
        print(
            f"{label} DRY RUN - would create table "
            f"{sanitize_table_name(outcome.name)} and insert {outcome.records_returned} records"
        )
        outcome.release_records()
        return outcome

    records = outcome.result.records
    try:
        outcome.rows_inserted = exporter.export(
            outcome.name, schemas[outcome.name], records, progress=_progress(label)
        )
    except ProjectionError as e:
        if records:
            print()
        print(f"{label} Failed - {e}", file=sys.stderr)
        return FileOutcome(name=outcome.name, path=outcome.path, error=str(e))
    finally:
        outcome.release_records()

    if records:
        print()
    print(f"{label} Complete - {outcome.rows_inserted} records inserted")
    return outcome


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Decode DBC files and export them into SQLite tables"
    )
    parser.add_argument("-c", "--config", type=Path, default=None, help="Configuration file")
    parser.add_argument("--schemas", type=Path, default=None, help="Schema document")
    parser.add_argument(
        "--source",
        type=Path,
        action="append",
        default=None,
        help="Directory of .dbc files (repeatable; overrides config sources)",
    )
    parser.add_argument("--database", type=Path, default=None, help="SQLite database file")
    parser.add_argument("--dbc", default=None, help="Export only this record type")
    parser.add_argument(
        "-n", "--limit",
        type=int,
        default=None,
        help="Limit number of records per file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Decode files and report what would be written, without writing",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable info logging")

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_config(args.config) if args.config is not None else ExportConfig()
    except (OSError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    schema_path = args.schemas or config.schema_path
    database = args.database or config.database
    sources = config.sources
    if args.source:
        sources = [SourceConfig(name=path.name, path=path) for path in args.source]
    limit = args.limit if args.limit is not None else config.limit

    if not sources:
        print("Error: No DBC source directories given", file=sys.stderr)
        return 1

    try:
        schemas = load_schemas(schema_path)
        options = DecodeOptions(limit=limit)
    except (OSError, ValueError, DbcError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    names = None
    if args.dbc is not None:
        if args.dbc not in schemas:
            print(f"Error: No schema found for {args.dbc}", file=sys.stderr)
            return 1
        names = [args.dbc]

    print("=== DBC Export ===\n")
    print(f"Schemas: {len(schemas)} ({schema_path})")
    print(f"Sources: {', '.join(s.name for s in sources)}")
    if limit is not None:
        print(f"Record limit: {limit} per DBC")
    if args.dry_run:
        print("*** DRY RUN MODE ***")

    start = time.monotonic()
    summaries: list[tuple[SourceConfig, BatchSummary]] = []
    for source in sources:
        print(f"\n{RULE}")
        print(f"Exporting from: {source.name} ({source.path})")
        print(RULE)

        try:
            decoded = iter_outcomes(schemas, source.path, names, options, config.magic)
        except OSError as e:
            print(f"Warning: {e}", file=sys.stderr)
            continue

        db_path = database_for_source(database, source, len(sources))
        summary = export_source(source, decoded, db_path, config.batch_size, args.dry_run, schemas)
        summaries.append((source, summary))

    elapsed = time.monotonic() - start
    outcomes = [(source, o) for source, summary in summaries for o in summary.outcomes]
    failed = [(source, o) for source, o in outcomes if not o.success]

    print(f"\n{RULE}")
    print("=== Export Summary ===")
    print(f"Total DBCs processed: {len(outcomes)}")
    print(f"Successful: {len(outcomes) - len(failed)}")
    print(f"Failed: {len(failed)}")
    if args.dry_run:
        total_records = sum(s.total_records for _, s in summaries)
    else:
        total_records = sum(s.total_inserted for _, s in summaries)
    print(f"Total records: {total_records}")
    print(f"Time: {elapsed:.1f}s")

    if failed:
        print("\nFailed DBCs:")
        for source, outcome in failed:
            print(f"  - {source.name}.{outcome.name}: {outcome.error or 'Unknown error'}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
