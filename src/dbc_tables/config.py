"""Configuration file for schema extraction and export runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dbc_tables.projection import DEFAULT_BATCH_SIZE
from dbc_tables.reader import WDBC_MAGIC
from dbc_tables.schema_store import DEFAULT_SCHEMA_FILE

DEFAULT_CONFIG_FILE = "config.json"


class ConfigError(ValueError):
    """A configuration file is missing required values or has bad ones."""


@dataclass(frozen=True)
class SourceConfig:
    """A named directory of DBC files exported into its own database."""

    name: str
    path: Path


@dataclass
class ExportConfig:
    """Settings shared by the extraction and export tools.

    Relative paths in the file are resolved against the file's directory.
    """

    schema_path: Path = Path(DEFAULT_SCHEMA_FILE)
    descriptor_dir: Path | None = None
    sources: list[SourceConfig] = field(default_factory=list)
    database: Path = Path("dbc.sqlite")
    magic: bytes = WDBC_MAGIC
    limit: int | None = None
    batch_size: int = DEFAULT_BATCH_SIZE

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path) -> ExportConfig:
        def resolve(value: str) -> Path:
            path = Path(value)
            return path if path.is_absolute() else base_dir / path

        config = cls()
        if "schemaPath" in data:
            config.schema_path = resolve(data["schemaPath"])
        else:
            config.schema_path = base_dir / DEFAULT_SCHEMA_FILE
        if "descriptorDir" in data:
            config.descriptor_dir = resolve(data["descriptorDir"])
        if "database" in data:
            config.database = resolve(data["database"])

        sources = data.get("sources", [])
        if not isinstance(sources, list):
            raise ConfigError("'sources' must be a list")
        for entry in sources:
            if not isinstance(entry, dict) or "path" not in entry:
                raise ConfigError(f"Invalid source entry: {entry!r}")
            path = resolve(entry["path"])
            config.sources.append(SourceConfig(name=entry.get("name", path.name), path=path))

        magic = data.get("magic", WDBC_MAGIC.decode("ascii"))
        if not isinstance(magic, str) or not magic.isascii() or len(magic) != 4:
            raise ConfigError(f"'magic' must be a 4-character string, got {magic!r}")
        config.magic = magic.encode("ascii")

        limit = data.get("limit")
        if limit is not None and (not isinstance(limit, int) or limit < 0):
            raise ConfigError(f"'limit' must be a non-negative integer, got {limit!r}")
        config.limit = limit

        batch_size = data.get("batchSize", DEFAULT_BATCH_SIZE)
        if not isinstance(batch_size, int) or batch_size < 1:
            raise ConfigError(f"'batchSize' must be a positive integer, got {batch_size!r}")
        config.batch_size = batch_size
        return config


def load_config(path: Path) -> ExportConfig:
    """Load an ExportConfig from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the file is not valid JSON or has invalid values.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{path}: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be an object")
    return ExportConfig.from_dict(data, path.parent)
