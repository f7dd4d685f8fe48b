"""hoaretree Oracle Tests — ORACLE-001 through ORACLE-005."""

import time

import pytest

import hoaretree.oracle as oracle_mod
from hoaretree.expressions import parse_expression
from hoaretree.oracle import (
    HAS_Z3, Obligation, OracleResult, OracleStatus, Z3Oracle,
    consequence_obligations, describe_outcome, interpret_results,
    obligation_lines, prove_node, split_blocks,
)
from hoaretree.proof_tree import ProofNode, Rule, apply_rule
from hoaretree.statements import parse_statement


def e(text):
    return parse_expression(text)


def consequence(pre, new_pre, new_post, post, stmt="x := x + 1"):
    root = ProofNode(e(pre), parse_statement(stmt), e(post))
    return apply_rule(root, (), Rule.CONSEQUENCE, new_pre=e(new_pre), new_post=e(new_post))


class TestObligations:
    """ORACLE-001: Side conditions of the consequence rule."""

    def test_names_and_directions(self):
        node = consequence("x > 0", "x + 1 > 0", "x > 0", "x ≥ 0")
        strengthen, weaken = consequence_obligations(node)
        assert strengthen == Obligation("P_to_Pp", e("x > 0"), e("x + 1 > 0"))
        assert weaken == Obligation("Qp_to_Q", e("x > 0"), e("x ≥ 0"))

    def test_other_rules_have_none(self):
        node = apply_rule(ProofNode(e("x > 0"), parse_statement("skip"), e("x > 0")), (), Rule.SKIP)
        assert consequence_obligations(node) == []
        assert consequence_obligations(ProofNode(e("x > 0"), parse_statement("skip"), e("x > 0"))) == []


class TestScript:
    """ORACLE-002: SMT-LIB rendering."""

    def test_closed_formula_blocks(self):
        node = consequence("x > 0", "x + 1 > 0", "x > 0", "x ≥ 0")
        assert obligation_lines(consequence_obligations(node)) == [
            "; P_to_Pp",
            "(assert (forall ((x Int)) (or (> (+ x 1) 0) (not (> x 0)))))",
            "(check-sat)",
            "; Qp_to_Q",
            "(assert (forall ((x Int)) (or (>= x 0) (not (> x 0)))))",
            "(check-sat)",
        ]

    def test_variables_sorted(self):
        ob = Obligation("P_to_Pp", e("y > x"), e("x < y ∧ z == z"))
        assert ob.formula().startswith("(forall ((x Int) (y Int) (z Int)) ")

    def test_ground_formula_has_no_binder(self):
        ob = Obligation("Qp_to_Q", e("true"), e("1 < 2"))
        assert ob.formula() == "(or (< 1 2) (not true))"

    def test_split_blocks(self):
        lines = ["; a", "(assert true)", "(check-sat)", "; b", "(assert false)", "(check-sat)"]
        assert split_blocks(lines) == ["; a\n(assert true)", "; b\n(assert false)"]

    def test_trailing_lines_without_check_are_ignored(self):
        assert split_blocks(["(assert true)"]) == []


class TestInterpretation:
    """ORACLE-003: Folding per-block answers."""

    @pytest.mark.parametrize("results, status", [
        (["sat", "sat"], OracleStatus.VALID),
        (["sat", "unsat"], OracleStatus.INVALID),
        (["unknown", "unsat"], OracleStatus.INVALID),
        (["sat", "unknown"], OracleStatus.UNKNOWN),
        ([], OracleStatus.UNKNOWN),
    ])
    def test_interpret(self, results, status):
        assert interpret_results(results) == status

    def test_only_valid_proves(self):
        assert OracleResult(OracleStatus.VALID).proved
        for status in OracleStatus:
            if status != OracleStatus.VALID:
                assert not OracleResult(status).proved

    def test_status_values(self):
        assert [s.value for s in OracleStatus] == [
            "Valid", "Invalid", "Unknown", "NoSolver", "Timeout", "Error",
        ]


class TestDescriptions:
    """ORACLE-004: User-facing outcome strings."""

    def test_valid(self):
        assert describe_outcome(OracleResult(OracleStatus.VALID)) == "All obligations proved (Valid)"

    def test_error_carries_message(self):
        text = describe_outcome(OracleResult(OracleStatus.ERROR, errors=["bad script"]))
        assert text == "Solver error: bad script"

    def test_every_status_described(self):
        for status in OracleStatus:
            assert describe_outcome(OracleResult(status))

    def test_no_solver(self, monkeypatch):
        monkeypatch.setattr(oracle_mod, "HAS_Z3", False)
        result = Z3Oracle().check(["(assert true)", "(check-sat)"])
        assert result.status == OracleStatus.NO_SOLVER
        assert not result.proved


@pytest.mark.skipif(not HAS_Z3, reason="z3-solver not installed")
class TestZ3:
    """ORACLE-005: Real solver round trips."""

    def test_valid_weakening(self):
        node = consequence("x > 0", "x + 1 > 0", "x > 0", "x ≥ 0")
        result = prove_node(node)
        assert result.status == OracleStatus.VALID
        assert result.results == ["sat", "sat"]

    def test_invalid_strengthening(self):
        node = consequence("x ≥ 0", "x > 0", "x > 0", "x > 0")
        result = prove_node(node)
        assert result.status == OracleStatus.INVALID
        assert result.results[0] == "unsat"

    def test_multiple_variables(self):
        node = consequence("x > y ∧ y > 0", "x > 1", "x > 1", "x ≥ 2")
        assert prove_node(node).status == OracleStatus.VALID

    def test_hard_obligation_times_out(self):
        # Fermat n = 4: nonlinear, z3 cannot settle it quickly.
        ob = Obligation(
            "P_to_Pp",
            e("x > 0 ∧ y > 0 ∧ z > 0"),
            e("¬(x * x * x * x + y * y * y * y == z * z * z * z)"),
        )
        started = time.monotonic()
        result = Z3Oracle(timeout_ms=300).check(obligation_lines([ob]))
        elapsed = time.monotonic() - started
        assert result.status == OracleStatus.TIMEOUT
        assert not result.proved
        assert elapsed < 5.0

    def test_per_call_timeout_overrides_default(self):
        ob = Obligation(
            "P_to_Pp",
            e("x > 0 ∧ y > 0 ∧ z > 0"),
            e("¬(x * x * x * x + y * y * y * y == z * z * z * z)"),
        )
        started = time.monotonic()
        result = Z3Oracle(timeout_ms=60000).check(obligation_lines([ob]), timeout_ms=300)
        assert result.status == OracleStatus.TIMEOUT
        assert time.monotonic() - started < 5.0

    def test_malformed_script_is_error(self):
        result = Z3Oracle().check(["(assert (> x", "(check-sat)"])
        assert result.status == OracleStatus.ERROR
        assert result.errors

    def test_empty_script_is_error(self):
        assert Z3Oracle().check([]).status == OracleStatus.ERROR

    def test_not_a_consequence_node(self):
        node = ProofNode(e("x > 0"), parse_statement("skip"), e("x > 0"))
        assert prove_node(node).status == OracleStatus.ERROR
