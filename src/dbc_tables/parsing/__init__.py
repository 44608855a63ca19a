"""Parsing module for descriptor source."""

from dbc_tables.parsing.descriptor_lexer import DescriptorLexer
from dbc_tables.parsing.descriptor_parser import CellDeclaration, DescriptorParser

__all__ = [
    "CellDeclaration",
    "DescriptorLexer",
    "DescriptorParser",
]
