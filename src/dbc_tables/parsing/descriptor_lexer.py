"""Lexer for descriptor source files (TypeScript row classes)."""

import ply.lex as lex


class DescriptorLexer:
    """Lexer for tokenizing descriptor source text.

    Descriptor files are full TypeScript modules, so the lexer has to accept
    anything. Characters that no rule matches come out as OTHER tokens, which
    keeps brace counting correct without understanding the whole language.
    """

    # Keywords the declaration grammar needs; everything else is an identifier
    reserved = {
        "get": "GET",
        "return": "RETURN",
        "new": "NEW",
        "this": "THIS",
    }

    # Token types produced, including the catch-all OTHER
    tokens = [
        "IDENTIFIER",
        "INTEGER",
        "NUMBER",
        "STRING",
        "LBRACE",
        "RBRACE",
        "LPAREN",
        "RPAREN",
        "LT",
        "GT",
        "COLON",
        "SEMI",
        "COMMA",
        "DOT",
        "PLUS",
        "OTHER",
    ] + list(reserved.values())

    # Punctuation
    t_LBRACE = r"\{"
    t_RBRACE = r"\}"
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_LT = r"<"
    t_GT = r">"
    t_COLON = r":"
    t_SEMI = r";"
    t_COMMA = r","
    t_DOT = r"\."
    t_PLUS = r"\+"

    # Ignored characters (spaces, tabs, carriage returns)
    t_ignore = " \t\r"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_BLOCK_COMMENT(self, t: lex.LexToken) -> None:
        r"/\*(.|\n)*?\*/"
        t.lexer.lineno += t.value.count("\n")

    def t_LINE_COMMENT(self, t: lex.LexToken) -> None:
        r"//[^\n]*"

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"\"([^\"\\\n]|\\.)*\"|'([^'\\\n]|\\.)*'|`([^`\\]|\\(.|\n))*`"
        t.lexer.lineno += t.value.count("\n")
        return t

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+\.\d+([eE][-+]?\d+)?"
        return t

    def t_INTEGER(self, t: lex.LexToken) -> lex.LexToken:
        r"0[xX][0-9a-fA-F]+|\d+"
        t.value = int(t.value, 0) if t.value[:2].lower() == "0x" else int(t.value)
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_$][a-zA-Z0-9_$]*"
        # Keywords share the identifier pattern
        t.type = self.reserved.get(t.value, "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)
        # Newlines only advance the line count

    def t_error(self, t: lex.LexToken) -> lex.LexToken:
        t.type = "OTHER"
        t.value = t.value[0]
        t.lexer.skip(1)
        return t

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.lineno = 1
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
