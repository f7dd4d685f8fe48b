"""hoaretree Expressions — assertion language for Hoare triples.

Assertions are immutable trees over integer arithmetic and boolean
connectives:

    Var(name) | Const(value) | TrueLit | FalseLit
    BinOp(op, left, right)      op ∈ {+, -, *, ==, <, >, <=, >=, &&, ||}
    UnOp(op, operand)           op ∈ {!}

Operator spellings are canonicalized on construction, so ``∧``, ``and`` and
``&&`` all become ``&&`` and an assertion typed by the user compares equal to
one composed by a proof rule.

Two concrete syntaxes are supported:

  HUMAN (infix):  ((x + 1) > 0) ∧ (¬b)
  ORACLE (prefix, SMT-LIB flavoured):  (and (> (+ x 1) 0) (not b))

A BinOp/UnOp may have a missing (None) branch while an assertion is being
built interactively. Such an assertion is *incomplete*: it prints with ``?``
holes and must never reach the validator (see ``is_complete``).

Equality used by the validator is purely syntactic (``structurally_equal``):
``x + y`` and ``y + x`` are different assertions.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional, Set, Union

from hoaretree.errors import syntax_error, HoareTreeError
from hoaretree.lexer import Token, TokenType, tokenize


Number = Union[int, float]

HUMAN = "human"
ORACLE = "oracle"
INFIX = "infix"
PREFIX = "prefix"


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

_CANONICAL_OPS: dict[str, str] = {
    "∧": "&&", "and": "&&", "&&": "&&",
    "∨": "||", "or": "||", "||": "||",
    "¬": "!", "not": "!", "!": "!",
    "≤": "<=", "<=": "<=",
    "≥": ">=", ">=": ">=",
    "=": "==", "==": "==",
}

BINARY_OPS = frozenset({"+", "-", "*", "==", "<", ">", "<=", ">=", "&&", "||"})
UNARY_OPS = frozenset({"!"})

_HUMAN_SPELLING = {"&&": "∧", "||": "∨", "!": "¬", "<=": "≤", ">=": "≥"}
_ORACLE_SPELLING = {"==": "=", "&&": "and", "||": "or", "!": "not"}


def canonical_op(op: str) -> str:
    """Map any accepted spelling of an operator to its canonical token."""
    return _CANONICAL_OPS.get(op, op)


# ---------------------------------------------------------------------------
# Expression nodes
# ---------------------------------------------------------------------------

class Expression:
    """Base class for assertion nodes."""

    def __str__(self) -> str:
        return expr_to_string(self, HUMAN)


@dataclass(frozen=True)
class Var(Expression):
    name: str


@dataclass(frozen=True)
class Const(Expression):
    value: Number


@dataclass(frozen=True)
class TrueLit(Expression):
    pass


@dataclass(frozen=True)
class FalseLit(Expression):
    pass


@dataclass(frozen=True)
class BinOp(Expression):
    op: str
    left: Optional[Expression] = None
    right: Optional[Expression] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "op", canonical_op(self.op))


@dataclass(frozen=True)
class UnOp(Expression):
    op: str
    operand: Optional[Expression] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "op", canonical_op(self.op))


# ---------------------------------------------------------------------------
# Constructors used by the proof rules
# ---------------------------------------------------------------------------

# No simplification here: the validator compares exact tree shape, so
# E_AND(P, TrueLit()) must stay a conjunction.

def E_AND(left: Expression, right: Expression) -> BinOp:
    return BinOp("&&", left, right)

def E_OR(left: Expression, right: Expression) -> BinOp:
    return BinOp("||", left, right)

def E_NOT(operand: Expression) -> UnOp:
    return UnOp("!", operand)


# ---------------------------------------------------------------------------
# Structural queries
# ---------------------------------------------------------------------------

def structurally_equal(a: Optional[Expression], b: Optional[Expression]) -> bool:
    """Same variant, same operator, recursively equal (or both missing) branches."""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, Var):
        return isinstance(b, Var) and a.name == b.name
    if isinstance(a, Const):
        return isinstance(b, Const) and a.value == b.value
    if isinstance(a, TrueLit):
        return isinstance(b, TrueLit)
    if isinstance(a, FalseLit):
        return isinstance(b, FalseLit)
    if isinstance(a, BinOp):
        return (isinstance(b, BinOp) and a.op == b.op
                and structurally_equal(a.left, b.left)
                and structurally_equal(a.right, b.right))
    if isinstance(a, UnOp):
        return (isinstance(b, UnOp) and a.op == b.op
                and structurally_equal(a.operand, b.operand))
    return False


def is_complete(expr: Optional[Expression]) -> bool:
    """True iff no branch anywhere in the tree is missing and every operator is known."""
    if expr is None:
        return False
    if isinstance(expr, (Var, Const, TrueLit, FalseLit)):
        return True
    if isinstance(expr, BinOp):
        return (expr.op in BINARY_OPS
                and is_complete(expr.left) and is_complete(expr.right))
    if isinstance(expr, UnOp):
        return expr.op in UNARY_OPS and is_complete(expr.operand)
    return False


# ---------------------------------------------------------------------------
# Substitution: Q[x/e]
# ---------------------------------------------------------------------------

def substitute(expr: Optional[Expression], var: str, replacement: Expression) -> Optional[Expression]:
    """Replace every occurrence of Var(var) in expr with replacement.

    This is the assignment axiom of Hoare logic:
      {Q[x/e]} x := e {Q}

    The assertion language has no binders, so no capture can occur. Missing
    branches stay missing.
    """
    if expr is None:
        return None
    if isinstance(expr, Var):
        return replacement if expr.name == var else expr
    if isinstance(expr, BinOp):
        return BinOp(expr.op,
                     substitute(expr.left, var, replacement),
                     substitute(expr.right, var, replacement))
    if isinstance(expr, UnOp):
        return UnOp(expr.op, substitute(expr.operand, var, replacement))
    return expr


def collect_free_vars(expr: Optional[Expression]) -> Set[str]:
    """Collect all variable names in an assertion."""
    if expr is None:
        return set()
    if isinstance(expr, Var):
        return {expr.name}
    if isinstance(expr, BinOp):
        return collect_free_vars(expr.left) | collect_free_vars(expr.right)
    if isinstance(expr, UnOp):
        return collect_free_vars(expr.operand)
    return set()


# ---------------------------------------------------------------------------
# Printing
# ---------------------------------------------------------------------------

def _number_text(value: Number) -> str:
    if isinstance(value, float):
        return repr(value)
    return str(value)


def expr_to_string(expr: Optional[Expression], dialect: str = HUMAN) -> str:
    """Render an assertion; every application is parenthesized.

    HUMAN:  ((x + 1) > 0) ∧ ... with ∧ ∨ ¬ ≤ ≥
    ORACLE: (and (> (+ x 1) 0) ...) with = and or not
    Missing branches render as ``?``.
    """
    if expr is None:
        return "?"
    if isinstance(expr, Var):
        return expr.name
    if isinstance(expr, Const):
        if dialect == ORACLE and math.copysign(1, expr.value) < 0:
            return f"(- {_number_text(-expr.value)})"
        return _number_text(expr.value)
    if isinstance(expr, TrueLit):
        return "true"
    if isinstance(expr, FalseLit):
        return "false"
    if isinstance(expr, BinOp):
        left = expr_to_string(expr.left, dialect)
        right = expr_to_string(expr.right, dialect)
        if dialect == ORACLE:
            return f"({_ORACLE_SPELLING.get(expr.op, expr.op)} {left} {right})"
        return f"({left} {_HUMAN_SPELLING.get(expr.op, expr.op)} {right})"
    if isinstance(expr, UnOp):
        operand = expr_to_string(expr.operand, dialect)
        if dialect == ORACLE:
            return f"({_ORACLE_SPELLING.get(expr.op, expr.op)} {operand})"
        return f"({_HUMAN_SPELLING.get(expr.op, expr.op)}{operand})"
    return "?"


def normalize_condition_text(text: str) -> str:
    """Whitespace/connective canonicalization of printed assertions.

    Strips whitespace, unifies ``¬``/``not`` and ``∧``/``and`` and removes one
    level of parentheses around parenthesis-free groups. Only the validator's
    opt-in ``normalized`` boundary mode uses this; it is not an equivalence.
    """
    s = re.sub(r"\s+", "", text)
    s = re.sub(r"¬|not|!", "not", s)
    s = re.sub(r"∧|\band\b|&&", "and", s)
    s = re.sub(r"\(([^()]+)\)", r"\1", s)
    return s


# ---------------------------------------------------------------------------
# Infix parser (recursive descent)
# ---------------------------------------------------------------------------

_COMPARISONS = {
    TokenType.EQ: "==",
    TokenType.LT: "<",
    TokenType.GT: ">",
    TokenType.LTE: "<=",
    TokenType.GTE: ">=",
}


class ExpressionParser:
    """Recursive-descent parser for infix assertions.

    Precedence, loosest first: ∨, ∧, ¬, comparison (non-associative),
    + and -, *. Stops at the first token that cannot continue an assertion,
    so the statement parser can reuse it for guards and right-hand sides.
    """

    def __init__(self, tokens: list[Token], pos: int = 0):
        self.tokens = tokens
        self.pos = pos

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self) -> TokenType:
        return self._current().type

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, tt: TokenType) -> Token:
        tok = self._current()
        if tok.type != tt:
            raise HoareTreeError(syntax_error(
                f"Expected {tt.name}, got {tok.type.name} ('{tok.value}')",
                tok.location,
            ))
        return self._advance()

    def parse_expression(self) -> Expression:
        return self._parse_or()

    def _parse_or(self) -> Expression:
        left = self._parse_and()
        while self._peek() == TokenType.OR:
            self._advance()
            left = BinOp("||", left, self._parse_and())
        return left

    def _parse_and(self) -> Expression:
        left = self._parse_not()
        while self._peek() == TokenType.AND:
            self._advance()
            left = BinOp("&&", left, self._parse_not())
        return left

    def _parse_not(self) -> Expression:
        if self._peek() == TokenType.NOT:
            self._advance()
            return UnOp("!", self._parse_not())
        return self._parse_comparison()

    def _parse_comparison(self) -> Expression:
        left = self._parse_additive()
        op = _COMPARISONS.get(self._peek())
        if op is not None:
            self._advance()
            left = BinOp(op, left, self._parse_additive())
        return left

    def _parse_additive(self) -> Expression:
        left = self._parse_multiplicative()
        while self._peek() in (TokenType.PLUS, TokenType.MINUS):
            op = self._advance().value
            left = BinOp(op, left, self._parse_multiplicative())
        return left

    def _parse_multiplicative(self) -> Expression:
        left = self._parse_atom()
        while self._peek() == TokenType.STAR:
            self._advance()
            left = BinOp("*", left, self._parse_atom())
        return left

    def _parse_atom(self) -> Expression:
        tok = self._current()
        tt = tok.type
        if tt == TokenType.INT_LIT:
            self._advance()
            return Const(int(tok.value))
        if tt == TokenType.FLOAT_LIT:
            self._advance()
            return Const(float(tok.value))
        if tt == TokenType.MINUS:
            # Only numeric literals take a sign; there is no unary minus.
            self._advance()
            num = self._current()
            if num.type == TokenType.INT_LIT:
                self._advance()
                return Const(-int(num.value))
            if num.type == TokenType.FLOAT_LIT:
                self._advance()
                return Const(-float(num.value))
            raise HoareTreeError(syntax_error("Expected a number after '-'", num.location))
        if tt == TokenType.TRUE:
            self._advance()
            return TrueLit()
        if tt == TokenType.FALSE:
            self._advance()
            return FalseLit()
        if tt == TokenType.IDENT:
            self._advance()
            return Var(tok.value)
        if tt == TokenType.LPAREN:
            self._advance()
            inner = self._parse_or()
            self._expect(TokenType.RPAREN)
            return inner
        raise HoareTreeError(syntax_error(
            f"Unexpected token '{tok.value or tt.name}' in assertion",
            tok.location,
        ))


# ---------------------------------------------------------------------------
# Prefix (S-expression) parser
# ---------------------------------------------------------------------------

_PREFIX_HEADS = {
    TokenType.EQ: "==",
    TokenType.LT: "<",
    TokenType.GT: ">",
    TokenType.LTE: "<=",
    TokenType.GTE: ">=",
    TokenType.PLUS: "+",
    TokenType.MINUS: "-",
    TokenType.STAR: "*",
    TokenType.AND: "&&",
    TokenType.OR: "||",
    TokenType.NOT: "!",
}

_FOLDABLE = frozenset({"&&", "||", "+", "*", "-"})


class PrefixParser:
    """Parser for the oracle dialect: ``(op arg ...)``."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def _current(self) -> Token:
        return self.tokens[min(self.pos, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def parse_term(self) -> Expression:
        tok = self._advance()
        tt = tok.type
        if tt == TokenType.INT_LIT:
            return Const(int(tok.value))
        if tt == TokenType.FLOAT_LIT:
            return Const(float(tok.value))
        if tt == TokenType.TRUE:
            return TrueLit()
        if tt == TokenType.FALSE:
            return FalseLit()
        if tt == TokenType.IDENT:
            return Var(tok.value)
        if tt != TokenType.LPAREN:
            raise HoareTreeError(syntax_error(
                f"Unexpected token '{tok.value or tt.name}'", tok.location))

        head = self._advance()
        op = _PREFIX_HEADS.get(head.type)
        if op is None:
            raise HoareTreeError(syntax_error(
                f"Unknown operator '{head.value}'", head.location))
        args: list[Expression] = []
        while self._current().type not in (TokenType.RPAREN, TokenType.EOF):
            args.append(self.parse_term())
        if self._advance().type != TokenType.RPAREN:
            raise HoareTreeError(syntax_error("Unbalanced parentheses", head.location))
        return self._build(op, args, head)

    @staticmethod
    def _build(op: str, args: list[Expression], head: Token) -> Expression:
        if op == "!":
            if len(args) == 1:
                return UnOp("!", args[0])
        elif op == "-" and len(args) == 1:
            if isinstance(args[0], Const):
                return Const(-args[0].value)
        elif len(args) == 2:
            return BinOp(op, args[0], args[1])
        elif len(args) > 2 and op in _FOLDABLE:
            result: Expression = BinOp(op, args[0], args[1])
            for arg in args[2:]:
                result = BinOp(op, result, arg)
            return result
        raise HoareTreeError(syntax_error(
            f"Wrong number of arguments ({len(args)}) for '{head.value}'",
            head.location,
        ))


# ---------------------------------------------------------------------------
# Public parse entry point
# ---------------------------------------------------------------------------

def parse_expression(text: str, dialect: str = INFIX) -> Optional[Expression]:
    """Parse an assertion. Returns None on any malformed input."""
    try:
        tokens = tokenize(text)
        if dialect == PREFIX:
            prefix = PrefixParser(tokens)
            expr = prefix.parse_term()
            end = prefix._current()
        else:
            parser = ExpressionParser(tokens)
            expr = parser.parse_expression()
            end = parser._current()
    except (HoareTreeError, RecursionError):
        return None
    if end.type != TokenType.EOF:
        return None
    return expr
