"""Extract field declarations from descriptor source files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import ply.lex as lex

from dbc_tables.errors import DescriptorParseError
from dbc_tables.parsing import CellDeclaration, DescriptorLexer, DescriptorParser

LOGGER = logging.getLogger(__name__)

# Descriptor files that declare shared helpers rather than a record type
SKIPPED_UNITS = frozenset({"Types"})

PRIMARY_KEY_NAME = "ID"


@dataclass
class ScanResult:
    """Declarations found in one descriptor unit, plus the ones that failed."""

    unit: str
    declarations: list[CellDeclaration] = field(default_factory=list)
    errors: list[DescriptorParseError] = field(default_factory=list)

    @property
    def is_schemaable(self) -> bool:
        return bool(self.declarations)


class DescriptorScanner:
    """Finds cell accessor declarations in descriptor source text.

    The source is tokenized once. Every `get Name() {...}` getter is cut out by
    brace matching; getters whose body constructs a `...Cell` are parsed with
    the declaration grammar, all other getters are ignored.
    """

    def __init__(self) -> None:
        self.lexer = DescriptorLexer()
        self.lexer.build()
        self.parser = DescriptorParser()

    def scan(self, source: str, unit: str = "<string>") -> ScanResult:
        """Scan descriptor source and return its field declarations."""
        tokens = self.lexer.tokenize(source)
        result = ScanResult(unit=unit)
        seen_primary_key = False

        for segment in self._candidate_segments(tokens):
            try:
                declaration = self.parser.parse(segment)
            except DescriptorParseError as e:
                error = DescriptorParseError(
                    e.reason, lineno=e.lineno or segment[0].lineno, unit=unit
                )
                LOGGER.debug("Skipping malformed declaration: %s", error)
                result.errors.append(error)
                continue

            if declaration.name == PRIMARY_KEY_NAME:
                if seen_primary_key:
                    continue
                seen_primary_key = True
            result.declarations.append(declaration)

        return result

    def _candidate_segments(self, tokens: list[lex.LexToken]) -> list[list[lex.LexToken]]:
        """Cut field-like getter declarations out of the token list."""
        segments: list[list[lex.LexToken]] = []
        i = 0
        while i < len(tokens):
            if not self._starts_getter(tokens, i):
                i += 1
                continue

            body_start = self._find_body_start(tokens, i + 4)
            if body_start is None:
                i += 1
                continue

            body_end = self._find_body_end(tokens, body_start)
            if self._constructs_cell(tokens, body_start):
                end = len(tokens) if body_end is None else body_end + 1
                segments.append(tokens[i:end])
            if body_end is None:
                break
            i = body_end + 1
        return segments

    @staticmethod
    def _starts_getter(tokens: list[lex.LexToken], i: int) -> bool:
        kinds = [t.type for t in tokens[i : i + 4]]
        return kinds == ["GET", "IDENTIFIER", "LPAREN", "RPAREN"]

    @staticmethod
    def _find_body_start(tokens: list[lex.LexToken], i: int) -> int | None:
        # A return type annotation may sit between `()` and `{`
        while i < len(tokens):
            kind = tokens[i].type
            if kind == "LBRACE":
                return i
            if kind in ("SEMI", "RBRACE", "GET"):
                return None
            i += 1
        return None

    @staticmethod
    def _find_body_end(tokens: list[lex.LexToken], body_start: int) -> int | None:
        depth = 0
        for j in range(body_start, len(tokens)):
            kind = tokens[j].type
            if kind == "LBRACE":
                depth += 1
            elif kind == "RBRACE":
                depth -= 1
                if depth == 0:
                    return j
        return None

    @staticmethod
    def _constructs_cell(tokens: list[lex.LexToken], body_start: int) -> bool:
        head = tokens[body_start + 1 : body_start + 4]
        if [t.type for t in head] != ["RETURN", "NEW", "IDENTIFIER"]:
            return False
        return head[2].value.endswith("Cell")


def scan_descriptor(source: str, unit: str = "<string>") -> ScanResult:
    """Scan one descriptor source text."""
    return DescriptorScanner().scan(source, unit)


def scan_directory(directory: Path) -> dict[str, ScanResult]:
    """Scan every descriptor (`*.ts`) file in a directory.

    Returns:
        Mapping of record-type name (the file stem) to its scan result, in
        name order. Units without declarations are included so callers can
        report them.
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"Descriptor directory not found: {directory}")

    scanner = DescriptorScanner()
    results: dict[str, ScanResult] = {}
    for path in sorted(directory.glob("*.ts")):
        if path.stem in SKIPPED_UNITS:
            continue
        result = scanner.scan(path.read_text(encoding="utf-8"), unit=path.stem)
        if result.errors:
            LOGGER.info("%s: skipped %d malformed declaration(s)", path.stem, len(result.errors))
        results[path.stem] = result
    return results
