"""hoaretree Lexer — tokenizer with line/column tracking.

One token stream serves both the infix assertion syntax (``x + 1 > 0 ∧ b``)
and the parenthesized prefix syntax used for the oracle (``(and (> x 0) b)``),
as well as the statement syntax (``x := x + 1; while x < 10 do x := x + 1``).
Unicode connectives are accepted alongside their ASCII spellings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from hoaretree.errors import SourceLocation, syntax_error, HoareTreeError


class TokenType(Enum):
    # Keywords
    SKIP = auto()
    IF = auto()
    THEN = auto()
    ELSE = auto()
    WHILE = auto()
    DO = auto()
    TRUE = auto()
    FALSE = auto()

    # Literals
    INT_LIT = auto()
    FLOAT_LIT = auto()

    # Identifier
    IDENT = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    EQ = auto()
    GTE = auto()
    LTE = auto()
    GT = auto()
    LT = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    ASSIGN = auto()

    # Delimiters
    LPAREN = auto()
    RPAREN = auto()
    SEMICOLON = auto()

    # Special
    EOF = auto()


KEYWORDS: dict[str, TokenType] = {
    "skip": TokenType.SKIP,
    "if": TokenType.IF,
    "then": TokenType.THEN,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "do": TokenType.DO,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "and": TokenType.AND,
    "or": TokenType.OR,
    "not": TokenType.NOT,
}

# Single-character symbols, including the unicode connectives.
_SINGLE: dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "∧": TokenType.AND,
    "∨": TokenType.OR,
    "¬": TokenType.NOT,
    "≤": TokenType.LTE,
    "≥": TokenType.GTE,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ";": TokenType.SEMICOLON,
}


@dataclass
class Token:
    type: TokenType
    value: str
    location: SourceLocation

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.location})"


class Lexer:
    """Tokenizer for assertion and statement text."""

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1

    def _loc(self) -> SourceLocation:
        return SourceLocation(self.line, self.column, self.filename)

    def _peek(self) -> Optional[str]:
        if self.pos < len(self.source):
            return self.source[self.pos]
        return None

    def _peek_ahead(self, offset: int = 1) -> Optional[str]:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return None

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos] in (" ", "\t", "\r", "\n"):
            self._advance()

    def _read_number(self) -> Token:
        loc = self._loc()
        value = ""
        is_float = False
        while self.pos < len(self.source) and (self.source[self.pos].isdigit() or self.source[self.pos] == "."):
            if self.source[self.pos] == ".":
                if is_float:
                    break
                if self._peek_ahead() and self._peek_ahead().isdigit():
                    is_float = True
                else:
                    break
            value += self._advance()
        # Exponent, as printed by repr(float): 1e+20, 2.5e-05
        if self._peek() in ("e", "E"):
            sign = self._peek_ahead()
            offset = 2 if sign in ("+", "-") else 1
            digit = self._peek_ahead(offset)
            if digit is not None and digit.isascii() and digit.isdigit():
                for _ in range(offset):
                    value += self._advance()
                while self.pos < len(self.source) and self.source[self.pos].isdigit():
                    value += self._advance()
                is_float = True
        token_type = TokenType.FLOAT_LIT if is_float else TokenType.INT_LIT
        return Token(token_type, value, loc)

    def _read_identifier(self) -> Token:
        loc = self._loc()
        value = ""
        while self.pos < len(self.source) and (self._is_ident_char(self.source[self.pos])):
            value += self._advance()
        token_type = KEYWORDS.get(value, TokenType.IDENT)
        return Token(token_type, value, loc)

    @staticmethod
    def _is_ident_char(ch: str) -> bool:
        return ch.isascii() and (ch.isalnum() or ch == "_")

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while self.pos < len(self.source):
            self._skip_whitespace()
            if self.pos >= len(self.source):
                break

            ch = self._peek()
            loc = self._loc()

            if ch.isascii() and ch.isdigit():
                tokens.append(self._read_number())
            elif ch.isascii() and (ch.isalpha() or ch == "_"):
                tokens.append(self._read_identifier())
            elif ch in _SINGLE:
                self._advance()
                tokens.append(Token(_SINGLE[ch], ch, loc))
            elif ch == "=":
                self._advance()
                if self._peek() == "=":
                    self._advance()
                    tokens.append(Token(TokenType.EQ, "==", loc))
                else:
                    tokens.append(Token(TokenType.EQ, "=", loc))
            elif ch == ":":
                self._advance()
                if self._peek() == "=":
                    self._advance()
                    tokens.append(Token(TokenType.ASSIGN, ":=", loc))
                else:
                    raise HoareTreeError(syntax_error("Expected ':=' after ':'", loc))
            elif ch == "!":
                self._advance()
                tokens.append(Token(TokenType.NOT, "!", loc))
            elif ch == ">":
                self._advance()
                if self._peek() == "=":
                    self._advance()
                    tokens.append(Token(TokenType.GTE, ">=", loc))
                else:
                    tokens.append(Token(TokenType.GT, ">", loc))
            elif ch == "<":
                self._advance()
                if self._peek() == "=":
                    self._advance()
                    tokens.append(Token(TokenType.LTE, "<=", loc))
                else:
                    tokens.append(Token(TokenType.LT, "<", loc))
            elif ch == "&":
                self._advance()
                if self._peek() == "&":
                    self._advance()
                    tokens.append(Token(TokenType.AND, "&&", loc))
                else:
                    raise HoareTreeError(syntax_error("Unexpected character '&'", loc))
            elif ch == "|":
                self._advance()
                if self._peek() == "|":
                    self._advance()
                    tokens.append(Token(TokenType.OR, "||", loc))
                else:
                    raise HoareTreeError(syntax_error("Unexpected character '|'", loc))
            else:
                self._advance()
                raise HoareTreeError(syntax_error(f"Unexpected character '{ch}'", loc))

        tokens.append(Token(TokenType.EOF, "", self._loc()))
        return tokens


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Convenience function to tokenize assertion or statement text."""
    return Lexer(source, filename).tokenize()
