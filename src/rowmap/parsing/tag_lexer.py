"""Lexer for the column annotation mini-language."""

import ply.lex as lex


class TagLexer:
    """Lexer for tokenizing ``db`` field annotations such as ``user_id,fk=users.id``."""

    # Token list
    tokens = [
        "IDENTIFIER",
        "COMMA",
        "EQUALS",
        "DOT",
    ]

    # Simple tokens
    t_COMMA = r","
    t_EQUALS = r"="
    t_DOT = r"\."

    # Ignored characters (spaces and tabs)
    t_ignore = " \t"

    def __init__(self) -> None:
        self.lexer: lex.LexToken = None  # type: ignore

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[^,=.\s]+"
        return t

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
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
