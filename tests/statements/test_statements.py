"""hoaretree Statement Tests — STMT-001 through STMT-004."""

import pytest

from hoaretree.expressions import Var, Const, BinOp, E_NOT
from hoaretree.statements import (
    Skip, Assign, Sequence, Conditional, While,
    DraftAssign, DraftSequence, DraftConditional, DraftWhile,
    finalize, draft_to_string, stmt_to_string, parse_statement,
)


x, y = Var("x"), Var("y")
INC = Assign("x", BinOp("+", x, Const(1)))


class TestFinalize:
    """STMT-001: Drafts become statements only when complete."""

    def test_skip_is_already_complete(self):
        assert finalize(Skip()) == Skip()

    def test_complete_draft(self):
        draft = DraftSequence(Skip(), DraftAssign("x", Const(1)))
        assert finalize(draft) == Sequence(Skip(), Assign("x", Const(1)))

    def test_nested_drafts(self):
        draft = DraftWhile(
            BinOp("<", x, Const(10)),
            DraftConditional(BinOp(">", y, Const(0)), DraftAssign("x", y), Skip()),
        )
        assert finalize(draft) == While(
            BinOp("<", x, Const(10)),
            Conditional(BinOp(">", y, Const(0)), Assign("x", y), Skip()),
        )

    def test_missing_child(self):
        assert finalize(DraftSequence(Skip(), None)) is None
        assert finalize(DraftConditional(x, Skip(), None)) is None
        assert finalize(DraftWhile(x, None)) is None

    def test_missing_variable(self):
        assert finalize(DraftAssign("", Const(1))) is None

    def test_incomplete_expression(self):
        assert finalize(DraftAssign("x", BinOp("+", x, None))) is None
        assert finalize(DraftWhile(BinOp("<", x, None), Skip())) is None
        assert finalize(DraftConditional(None, Skip(), Skip())) is None

    def test_none(self):
        assert finalize(None) is None


class TestPrinting:
    """STMT-002: Statement rendering."""

    def test_basic_forms(self):
        assert stmt_to_string(Skip()) == "skip"
        assert stmt_to_string(INC) == "x := (x + 1)"
        assert stmt_to_string(Sequence(Skip(), INC)) == "skip; x := (x + 1)"

    def test_conditional_and_while(self):
        cond = Conditional(BinOp(">", x, Const(0)), Assign("y", Const(1)), Skip())
        assert stmt_to_string(cond) == "if (x > 0) then y := 1 else skip"
        loop = While(BinOp("<", x, Const(10)), INC)
        assert stmt_to_string(loop) == "while (x < 10) do x := (x + 1)"

    def test_nested_sequence_is_bracketed(self):
        left = Sequence(Sequence(Skip(), INC), Skip())
        assert stmt_to_string(left) == "(skip; x := (x + 1)); skip"
        body = While(x, Sequence(INC, Skip()))
        assert stmt_to_string(body) == "while x do (x := (x + 1); skip)"

    def test_draft_holes(self):
        assert draft_to_string(DraftAssign("x")) == "x := ?"
        assert draft_to_string(DraftAssign()) == "? := ?"
        assert draft_to_string(DraftConditional()) == "if ? then ? else ?"
        assert draft_to_string(DraftWhile(x)) == "while x do ?"


class TestParser:
    """STMT-003: Statement grammar."""

    def test_assign(self):
        assert parse_statement("x := x + 1") == INC

    def test_sequence_is_right_nested(self):
        parsed = parse_statement("x := 1; y := 2; skip")
        assert parsed == Sequence(Assign("x", Const(1)), Sequence(Assign("y", Const(2)), Skip()))

    def test_semicolon_binds_loosest(self):
        parsed = parse_statement("while x < 10 do x := x + 1; y := 0")
        assert parsed == Sequence(While(BinOp("<", x, Const(10)), INC), Assign("y", Const(0)))

    def test_conditional(self):
        parsed = parse_statement("if x > 0 then y := 1 else y := 2")
        assert parsed == Conditional(BinOp(">", x, Const(0)), Assign("y", Const(1)), Assign("y", Const(2)))

    def test_parenthesized_branch(self):
        parsed = parse_statement("if ¬x then (x := 1; skip) else skip")
        assert parsed == Conditional(E_NOT(x), Sequence(Assign("x", Const(1)), Skip()), Skip())

    @pytest.mark.parametrize("text", [
        "", "x :=", "x + 1", "skip;", "if x then skip", "while do skip", "(skip", "skip skip",
    ])
    def test_malformed_returns_none(self, text):
        assert parse_statement(text) is None


class TestRoundTrip:
    """STMT-004: Printed statements re-parse to the same tree."""

    @pytest.mark.parametrize("stmt", [
        Skip(),
        INC,
        Sequence(Sequence(Skip(), INC), Skip()),
        Conditional(BinOp(">", x, Const(0)), Sequence(INC, Skip()), Skip()),
        While(BinOp("<", x, Const(10)), Sequence(INC, Assign("y", x))),
    ])
    def test_round_trip(self, stmt):
        assert parse_statement(stmt_to_string(stmt)) == stmt
