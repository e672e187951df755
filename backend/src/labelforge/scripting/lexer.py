"""Lexer/tokenizer for the LabelForge label-scripting language.

Converts script source into a stream of tokens. The language is a small
VBScript-like dialect: keywords are case-insensitive, identifiers keep their
case, and a newline is a statement separator rather than whitespace.

Token types:
- Keywords: IF, THEN, ELSE, ELSEIF, END, DIM, AS, FOR, TO, NEXT, RETURN,
  AND, OR, ANDALSO, NOT, MOD, REM
- Literals: NUMBER, STRING
- Identifiers: IDENTIFIER
- Operators: comparison, arithmetic, concatenation (&)
- Punctuation: LPAREN, RPAREN, COMMA, DOT
- Structure: NEWLINE, EOF

Comments (REM or an apostrophe, running to end of line) produce no tokens.
Characters that match no rule are skipped and recorded as LexicalAnomaly
diagnostics, or raise LexerError when the lexer is strict.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator

from labelforge.scripting.errors import LexerError


class TokenType(Enum):
    """Types of tokens in the scripting language."""

    # Keywords
    IF = auto()
    THEN = auto()
    ELSE = auto()
    ELSEIF = auto()
    END = auto()
    DIM = auto()
    AS = auto()
    FOR = auto()
    TO = auto()
    NEXT = auto()
    RETURN = auto()
    AND = auto()
    OR = auto()
    ANDALSO = auto()
    NOT = auto()
    MOD = auto()
    REM = auto()

    # Literals
    NUMBER = auto()
    STRING = auto()

    # Identifiers
    IDENTIFIER = auto()

    # Comparison operators
    EQ = auto()          # =
    NEQ = auto()         # <>
    LT = auto()          # <
    LTE = auto()         # <=
    GT = auto()          # >
    GTE = auto()         # >=

    # Arithmetic and string operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    MULTIPLY = auto()    # *
    DIVIDE = auto()      # /
    CONCAT = auto()      # &

    # Punctuation
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    COMMA = auto()       # ,
    DOT = auto()         # .

    # Statement separator and end of input
    NEWLINE = auto()
    EOF = auto()


@dataclass(frozen=True)
class Token:
    """A single token from the lexer.

    Attributes:
        type: The token type
        value: The literal text (string content without quotes for STRING)
        position: Character offset in the source string
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    type: TokenType
    value: str
    position: int
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


@dataclass(frozen=True)
class LexicalAnomaly:
    """A character the lexer could not classify and skipped."""

    character: str
    position: int
    line: int
    column: int

    @property
    def message(self) -> str:
        return (
            f"Unrecognized character {self.character!r} "
            f"at line {self.line}, column {self.column}"
        )


# Token patterns (order matters - longer matches first)
TOKEN_PATTERNS = [
    # Whitespace other than newlines (skip)
    (r"[ \t\f\v]+", None),

    # Newlines are statement separators
    (r"\r\n|\r|\n", TokenType.NEWLINE),

    # Comments run to end of line (skip)
    (r"'[^\r\n]*", None),
    (r"(?<![A-Za-z0-9_.])(?i:rem)(?![A-Za-z0-9_])[^\r\n]*", None),

    # Two-character operators (before single character)
    (r"<>", TokenType.NEQ),
    (r"<=", TokenType.LTE),
    (r">=", TokenType.GTE),

    # Single character operators
    (r"=", TokenType.EQ),
    (r"<", TokenType.LT),
    (r">", TokenType.GT),
    (r"\+", TokenType.PLUS),
    (r"-", TokenType.MINUS),
    (r"\*", TokenType.MULTIPLY),
    (r"/", TokenType.DIVIDE),
    (r"&", TokenType.CONCAT),

    # Punctuation
    (r"\(", TokenType.LPAREN),
    (r"\)", TokenType.RPAREN),
    (r",", TokenType.COMMA),

    # Numbers (decimal before integer, and before DOT)
    (r"\d+\.\d+", TokenType.NUMBER),
    (r"\d+", TokenType.NUMBER),

    (r"\.", TokenType.DOT),

    # Strings: no escapes, no multi-line strings; an unterminated string
    # ends at the end of the line
    (r'"[^"\r\n]*"?', TokenType.STRING),

    # Keywords and identifiers
    (r"[A-Za-z_][A-Za-z0-9_]*", TokenType.IDENTIFIER),
]

KEYWORDS = {
    "if": TokenType.IF,
    "then": TokenType.THEN,
    "else": TokenType.ELSE,
    "elseif": TokenType.ELSEIF,
    "end": TokenType.END,
    "dim": TokenType.DIM,
    "as": TokenType.AS,
    "for": TokenType.FOR,
    "to": TokenType.TO,
    "next": TokenType.NEXT,
    "return": TokenType.RETURN,
    "and": TokenType.AND,
    "or": TokenType.OR,
    "andalso": TokenType.ANDALSO,
    "not": TokenType.NOT,
    "mod": TokenType.MOD,
    "rem": TokenType.REM,
}

_COMPILED_PATTERNS = [
    (re.compile(pattern), token_type) for pattern, token_type in TOKEN_PATTERNS
]


class Lexer:
    """Tokenizer for the scripting language.

    Usage:
        lexer = Lexer('return "Order " & Shipment.OrderNo')
        for token in lexer:
            print(token)

    With strict=False (the default) unrecognized characters are skipped and
    collected in ``anomalies``; with strict=True the first one raises
    LexerError.
    """

    def __init__(self, source: str, strict: bool = False):
        self.source = source
        self.strict = strict
        self.position = 0
        self.line = 1
        self.column = 1
        self.anomalies: list[LexicalAnomaly] = []

    def __iter__(self) -> Iterator[Token]:
        """Iterate over all tokens in the source."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def next_token(self) -> Token:
        """Get the next token from the source."""
        while self.position < len(self.source):
            token = self._match_token()
            if token is not None:
                return token
        return Token(TokenType.EOF, "", self.position, self.line, self.column)

    def _match_token(self) -> Token | None:
        """Match one rule at the current position.

        Returns None when the match produced no token (whitespace, comments,
        skipped characters).
        """
        for pattern, token_type in _COMPILED_PATTERNS:
            match = pattern.match(self.source, self.position)
            if not match:
                continue

            value = match.group()
            start_pos = self.position
            start_line = self.line
            start_column = self.column
            self._advance(value)

            if token_type is None:
                return None

            if token_type == TokenType.STRING:
                value = value[1:-1] if len(value) > 1 and value.endswith('"') else value[1:]

            elif token_type == TokenType.IDENTIFIER:
                token_type = KEYWORDS.get(value.lower(), TokenType.IDENTIFIER)

            return Token(token_type, value, start_pos, start_line, start_column)

        self._skip_unrecognized()
        return None

    def _skip_unrecognized(self) -> None:
        anomaly = LexicalAnomaly(
            self.source[self.position], self.position, self.line, self.column
        )
        if self.strict:
            raise LexerError(anomaly.message, line=anomaly.line, column=anomaly.column)
        self.anomalies.append(anomaly)
        self._advance(self.source[self.position])

    def _advance(self, text: str) -> None:
        """Advance past text, updating line/column."""
        self.position += len(text)
        for index, char in enumerate(text):
            if char == "\n" or (char == "\r" and text[index + 1:index + 2] != "\n"):
                self.line += 1
                self.column = 1
            elif char != "\r":
                self.column += 1

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source and return list of tokens."""
        return list(self)


def tokenize(source: str, strict: bool = False) -> list[Token]:
    """Convenience function to tokenize script source.

    The returned list always ends with an EOF token.
    """
    return Lexer(source, strict=strict).tokenize()
