"""hoaretree Statements — the while-language the triples talk about.

  S ::= skip | x := e | S1; S2 | if b then S1 else S2 | while b do S

Complete statements are immutable and always carry complete assertions.
Interactive construction works on *drafts* (``DraftAssign``,
``DraftSequence``, ``DraftConditional``, ``DraftWhile``) whose parts may still
be missing; ``finalize`` turns a draft into a complete statement or returns
None while any hole remains.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from hoaretree.errors import syntax_error, HoareTreeError
from hoaretree.expressions import (
    Expression, ExpressionParser, expr_to_string, is_complete, HUMAN,
)
from hoaretree.lexer import TokenType, tokenize


# ---------------------------------------------------------------------------
# Complete statements
# ---------------------------------------------------------------------------

class Statement:
    """Base class for complete statements."""

    def __str__(self) -> str:
        return stmt_to_string(self)


@dataclass(frozen=True)
class Skip(Statement):
    pass


@dataclass(frozen=True)
class Assign(Statement):
    var: str
    expr: Expression


@dataclass(frozen=True)
class Sequence(Statement):
    s1: Statement
    s2: Statement


@dataclass(frozen=True)
class Conditional(Statement):
    cond: Expression
    s1: Statement
    s2: Statement


@dataclass(frozen=True)
class While(Statement):
    cond: Expression
    body: Statement


# ---------------------------------------------------------------------------
# Drafts (statements under construction)
# ---------------------------------------------------------------------------

class DraftStatement:
    """Base class for statements with possibly missing parts."""

    def __str__(self) -> str:
        return draft_to_string(self)


@dataclass(frozen=True)
class DraftAssign(DraftStatement):
    var: str = ""
    expr: Optional[Expression] = None


@dataclass(frozen=True)
class DraftSequence(DraftStatement):
    s1: Optional[AnyStatement] = None
    s2: Optional[AnyStatement] = None


@dataclass(frozen=True)
class DraftConditional(DraftStatement):
    cond: Optional[Expression] = None
    s1: Optional[AnyStatement] = None
    s2: Optional[AnyStatement] = None


@dataclass(frozen=True)
class DraftWhile(DraftStatement):
    cond: Optional[Expression] = None
    body: Optional[AnyStatement] = None


AnyStatement = Union[Statement, DraftStatement]


def finalize(draft: Optional[AnyStatement]) -> Optional[Statement]:
    """Convert a draft (or a mix of drafts and statements) to a complete statement.

    Returns None if any statement, guard or right-hand side is missing or
    incomplete. Both branches of a sequence/conditional must finalize.
    """
    if draft is None:
        return None
    if isinstance(draft, Skip):
        return draft
    if isinstance(draft, (Assign, DraftAssign)):
        if not draft.var or not is_complete(draft.expr):
            return None
        return Assign(draft.var, draft.expr)
    if isinstance(draft, (Sequence, DraftSequence)):
        s1 = finalize(draft.s1)
        s2 = finalize(draft.s2)
        if s1 is None or s2 is None:
            return None
        return Sequence(s1, s2)
    if isinstance(draft, (Conditional, DraftConditional)):
        if not is_complete(draft.cond):
            return None
        s1 = finalize(draft.s1)
        s2 = finalize(draft.s2)
        if s1 is None or s2 is None:
            return None
        return Conditional(draft.cond, s1, s2)
    if isinstance(draft, (While, DraftWhile)):
        if not is_complete(draft.cond):
            return None
        body = finalize(draft.body)
        if body is None:
            return None
        return While(draft.cond, body)
    return None


# ---------------------------------------------------------------------------
# Printing
# ---------------------------------------------------------------------------

def _branch(stmt: Optional[AnyStatement]) -> str:
    # A sequence nested under if/while/';' is bracketed so the text re-parses
    # to the same tree.
    if isinstance(stmt, (Sequence, DraftSequence)):
        return f"({draft_to_string(stmt)})"
    return draft_to_string(stmt)


def draft_to_string(stmt: Optional[AnyStatement]) -> str:
    """Render a statement or draft; holes print as ``?``."""
    if stmt is None:
        return "?"
    if isinstance(stmt, Skip):
        return "skip"
    if isinstance(stmt, (Assign, DraftAssign)):
        return f"{stmt.var or '?'} := {expr_to_string(stmt.expr, HUMAN)}"
    if isinstance(stmt, (Sequence, DraftSequence)):
        return f"{_branch(stmt.s1)}; {draft_to_string(stmt.s2)}"
    if isinstance(stmt, (Conditional, DraftConditional)):
        return (f"if {expr_to_string(stmt.cond, HUMAN)} "
                f"then {_branch(stmt.s1)} else {_branch(stmt.s2)}")
    if isinstance(stmt, (While, DraftWhile)):
        return f"while {expr_to_string(stmt.cond, HUMAN)} do {_branch(stmt.body)}"
    return "?"


def stmt_to_string(stmt: Statement) -> str:
    return draft_to_string(stmt)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class StatementParser(ExpressionParser):
    """Recursive-descent parser for statements.

      statement ::= simple [';' statement]
      simple    ::= 'skip' | IDENT ':=' expr
                  | 'if' expr 'then' simple 'else' simple
                  | 'while' expr 'do' simple
                  | '(' statement ')'

    ';' binds loosest, so ``while b do x := 1; y := 2`` is a sequence whose
    first half is the loop.
    """

    def parse_statement(self) -> Statement:
        first = self._parse_simple()
        if self._peek() == TokenType.SEMICOLON:
            self._advance()
            return Sequence(first, self.parse_statement())
        return first

    def _parse_simple(self) -> Statement:
        tok = self._current()
        tt = tok.type
        if tt == TokenType.SKIP:
            self._advance()
            return Skip()
        if tt == TokenType.IDENT:
            self._advance()
            self._expect(TokenType.ASSIGN)
            return Assign(tok.value, self.parse_expression())
        if tt == TokenType.IF:
            self._advance()
            cond = self.parse_expression()
            self._expect(TokenType.THEN)
            s1 = self._parse_simple()
            self._expect(TokenType.ELSE)
            s2 = self._parse_simple()
            return Conditional(cond, s1, s2)
        if tt == TokenType.WHILE:
            self._advance()
            cond = self.parse_expression()
            self._expect(TokenType.DO)
            return While(cond, self._parse_simple())
        if tt == TokenType.LPAREN:
            self._advance()
            inner = self.parse_statement()
            self._expect(TokenType.RPAREN)
            return inner
        raise HoareTreeError(syntax_error(
            f"Expected a statement, got '{tok.value or tt.name}'",
            tok.location,
        ))


def parse_statement(text: str) -> Optional[Statement]:
    """Parse statement text. Returns None on any malformed input."""
    try:
        parser = StatementParser(tokenize(text))
        stmt = parser.parse_statement()
    except (HoareTreeError, RecursionError):
        return None
    if parser._peek() != TokenType.EOF:
        return None
    return stmt
