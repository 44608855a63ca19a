"""Shared fixtures for building DBC files in tests."""

import struct
from collections.abc import Callable
from pathlib import Path

import pytest


def build_dbc(
    records: list[bytes],
    strings: bytes = b"\x00",
    field_count: int | None = None,
    record_size: int | None = None,
    magic: bytes = b"WDBC",
) -> bytes:
    """Assemble a DBC file from raw record bytes and a string table."""
    if record_size is None:
        record_size = len(records[0]) if records else 0
    if field_count is None:
        field_count = record_size // 4
    header = struct.pack("<4siIii", magic, len(records), field_count, record_size, len(strings))
    return header + b"".join(records) + strings


@pytest.fixture
def make_dbc() -> Callable[..., bytes]:
    return build_dbc


@pytest.fixture
def write_dbc(tmp_path: Path) -> Callable[..., Path]:
    """Write a DBC file into tmp_path and return its path."""

    def write(name: str, *args, **kwargs) -> Path:
        path = tmp_path / f"{name}.dbc"
        path.write_bytes(build_dbc(*args, **kwargs))
        return path

    return write
