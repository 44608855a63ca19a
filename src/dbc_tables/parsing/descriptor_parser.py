"""Parser for cell accessor declarations in descriptor source."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

import ply.lex as lex
import ply.yacc as yacc

from dbc_tables.errors import DescriptorParseError
from dbc_tables.parsing.descriptor_lexer import DescriptorLexer


@dataclass(frozen=True)
class CellDeclaration:
    """One parsed field accessor: `get Name() { return new XCell(...) }`."""

    name: str
    cell_type: str
    offset: int
    array_size: int | None = None
    lineno: int = 0


@dataclass(frozen=True)
class CellArguments:
    """Constructor arguments of a cell, before they are attached to a name."""

    offset: int
    array_size: int | None = None


class _TokenStream:
    """Feeds an already-lexed token slice to the parser."""

    def __init__(self, tokens: Iterable[lex.LexToken]) -> None:
        self._tokens: Iterator[lex.LexToken] = iter(tokens)

    def token(self) -> lex.LexToken | None:
        return next(self._tokens, None)


class DescriptorParser:
    """Parser for a single cell accessor declaration.

    The scanner cuts candidate declarations out of the token stream; each one
    is parsed on its own so that a malformed declaration only loses itself.
    """

    tokens = DescriptorLexer.tokens
    start = "accessor"

    def __init__(self) -> None:
        self.parser: yacc.LRParser = None  # type: ignore

    def p_accessor(self, p: yacc.YaccProduction) -> None:
        """accessor : GET IDENTIFIER LPAREN RPAREN return_annotation LBRACE RETURN NEW IDENTIFIER LPAREN cell_arguments RPAREN statement_end RBRACE"""
        args: CellArguments = p[11]
        p[0] = CellDeclaration(
            name=p[2],
            cell_type=p[9],
            offset=args.offset,
            array_size=args.array_size,
            lineno=p.lineno(1),
        )

    def p_return_annotation(self, p: yacc.YaccProduction) -> None:
        """return_annotation : COLON type_expr
                             | empty"""
        p[0] = None

    def p_type_expr_simple(self, p: yacc.YaccProduction) -> None:
        """type_expr : IDENTIFIER"""
        p[0] = p[1]

    def p_type_expr_generic(self, p: yacc.YaccProduction) -> None:
        """type_expr : IDENTIFIER LT type_arg_list GT"""
        p[0] = p[1]

    def p_type_arg_list(self, p: yacc.YaccProduction) -> None:
        """type_arg_list : type_arg
                         | type_arg_list COMMA type_arg"""
        p[0] = None

    def p_type_arg(self, p: yacc.YaccProduction) -> None:
        """type_arg : type_expr
                    | THIS"""
        p[0] = p[1]

    def p_statement_end(self, p: yacc.YaccProduction) -> None:
        """statement_end : SEMI
                         | empty"""
        p[0] = None

    def p_cell_arguments_scalar(self, p: yacc.YaccProduction) -> None:
        """cell_arguments : THIS COMMA member COMMA offset_expr"""
        p[0] = CellArguments(offset=p[5])

    def p_cell_arguments_array(self, p: yacc.YaccProduction) -> None:
        """cell_arguments : THIS COMMA INTEGER COMMA member COMMA offset_expr"""
        p[0] = CellArguments(offset=p[7], array_size=p[3])

    def p_member(self, p: yacc.YaccProduction) -> None:
        """member : THIS DOT IDENTIFIER"""
        p[0] = p[3]

    def p_offset_expr_base(self, p: yacc.YaccProduction) -> None:
        """offset_expr : member"""
        p[0] = 0

    def p_offset_expr_plus(self, p: yacc.YaccProduction) -> None:
        """offset_expr : member PLUS INTEGER"""
        p[0] = p[3]

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        p[0] = None

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise DescriptorParseError(f"unexpected '{p.value}'", lineno=p.lineno)
        raise DescriptorParseError("unexpected end of declaration")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse(self, tokens: Iterable[lex.LexToken]) -> CellDeclaration:
        """Parse the tokens of one accessor declaration."""
        if self.parser is None:
            self.build(debug=False, write_tables=False, errorlog=yacc.NullLogger())

        result = self.parser.parse(lexer=_TokenStream(tokens))
        if result is None:
            raise DescriptorParseError("empty declaration")
        return result
