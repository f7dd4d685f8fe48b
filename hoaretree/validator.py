"""hoaretree Validator — per-node soundness of a Hoare-logic derivation.

``is_valid(node)`` decides whether a node and its whole subtree form a
derivation in the proof system below. It recurses structurally with no
memoization; trees are small and any edit may invalidate every ancestor.

  SKIP          ─────────────
                {P} skip {P}

  ASSIGN        ─────────────────────
                {Q[x/e]} x := e {Q}

  SEQUENCE      {P} S1 {R}    {R} S2 {Q}
                ─────────────────────────
                     {P} S1; S2 {Q}

  CONDITIONAL   {P ∧ b} S1 {Q}    {P ∧ ¬b} S2 {Q}
                ─────────────────────────────────
                    {P} if b then S1 else S2 {Q}

  WHILE              {I ∧ b} S {I}
                ──────────────────────────
                {I} while b do S {I ∧ ¬b}

  CONSEQUENCE   P ⇒ P'    {P'} S {Q'}    Q' ⇒ Q
                ────────────────────────────────
                           {P} S {Q}

Premise boundaries are compared with ``structurally_equal``: exact AST
shape, so ``¬b ∧ P`` does not stand in for ``P ∧ ¬b``. The two implications
of CONSEQUENCE are not decidable by shape; they are discharged by the oracle
(``hoaretree.oracle``) and cached on the node as ``obligations_proved``.

For WHILE the conclusion's postcondition is not compared with ``I ∧ ¬b``
unless ``ValidationOptions.check_loop_exit`` is set.

``is_valid`` never raises. Anything malformed is simply invalid at that node
and therefore at every ancestor. ``find_failures`` reports where.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from hoaretree.errors import ProofError, invalid_step
from hoaretree.expressions import (
    Expression, E_AND, E_NOT, expr_to_string, normalize_condition_text,
    structurally_equal, substitute, HUMAN,
)
from hoaretree.proof_tree import (
    ProofNode, Rule, RULE_ARITY, iter_nodes, rule_applies,
)
from hoaretree.statements import Skip, Assign, stmt_to_string

STRUCTURAL = "structural"
NORMALIZED = "normalized"


@dataclass(frozen=True)
class ValidationOptions:
    """Knobs for the two places where the checker's strictness is a choice.

    boundary_equality: "structural" compares premise boundaries of the
        conditional and while rules by AST shape; "normalized" compares
        their printed text after ``normalize_condition_text``.
    check_loop_exit: also require the while conclusion's postcondition to be
        ``I ∧ ¬b`` (or ``¬b ∧ I``).
    """
    boundary_equality: str = STRUCTURAL
    check_loop_exit: bool = False


DEFAULT_OPTIONS = ValidationOptions()


def _boundary_equal(a: Expression, b: Expression, options: ValidationOptions) -> bool:
    if options.boundary_equality == NORMALIZED:
        return (normalize_condition_text(expr_to_string(a, HUMAN))
                == normalize_condition_text(expr_to_string(b, HUMAN)))
    return structurally_equal(a, b)


# ---------------------------------------------------------------------------
# Axioms
# ---------------------------------------------------------------------------

def is_axiom(node: ProofNode) -> bool:
    """A leaf whose triple is an instance of the skip or assignment axiom."""
    if node.children:
        return False
    if isinstance(node.stmt, Skip):
        return structurally_equal(node.pre, node.post)
    if isinstance(node.stmt, Assign):
        wp = substitute(node.post, node.stmt.var, node.stmt.expr)
        return structurally_equal(node.pre, wp)
    return False


# ---------------------------------------------------------------------------
# Local checks — one per rule. Each returns None when the step is sound
# (premises aside) or a reason string when it is not.
# ---------------------------------------------------------------------------

Check = Callable[[ProofNode, ValidationOptions], Optional[str]]


def _check_skip(node: ProofNode, options: ValidationOptions) -> Optional[str]:
    if not structurally_equal(node.pre, node.post):
        return "skip axiom needs identical pre- and postcondition"
    return None


def _check_assign(node: ProofNode, options: ValidationOptions) -> Optional[str]:
    stmt = node.stmt
    wp = substitute(node.post, stmt.var, stmt.expr)
    if not structurally_equal(node.pre, wp):
        return (f"assignment axiom needs precondition "
                f"{expr_to_string(wp, HUMAN)}")
    return None


def _check_sequence(node: ProofNode, options: ValidationOptions) -> Optional[str]:
    c1, c2 = node.children
    stmt = node.stmt
    if c1.stmt != stmt.s1 or c2.stmt != stmt.s2:
        return "sequence premises must be about S1 and S2"
    if not structurally_equal(c1.pre, node.pre):
        return "first premise must start from the precondition"
    if not structurally_equal(c1.post, c2.pre):
        return "premises must share the intermediate assertion"
    if not structurally_equal(c2.post, node.post):
        return "second premise must end in the postcondition"
    return None


def _check_conditional(node: ProofNode, options: ValidationOptions) -> Optional[str]:
    c1, c2 = node.children
    stmt = node.stmt
    if c1.stmt != stmt.s1 or c2.stmt != stmt.s2:
        return "conditional premises must be about the two branches"
    if not _boundary_equal(c1.pre, E_AND(node.pre, stmt.cond), options):
        return "then-branch precondition must be P ∧ b"
    if not _boundary_equal(c2.pre, E_AND(node.pre, E_NOT(stmt.cond)), options):
        return "else-branch precondition must be P ∧ ¬b"
    if not (_boundary_equal(c1.post, node.post, options)
            and _boundary_equal(c2.post, node.post, options)):
        return "both branches must end in the postcondition"
    return None


def _check_while(node: ProofNode, options: ValidationOptions) -> Optional[str]:
    (child,) = node.children
    stmt = node.stmt
    if child.stmt != stmt.body:
        return "while premise must be about the loop body"
    if not _boundary_equal(child.pre, E_AND(node.pre, stmt.cond), options):
        return "loop body precondition must be I ∧ b"
    if not _boundary_equal(child.post, node.pre, options):
        return "loop body must re-establish the invariant"
    if options.check_loop_exit:
        exit_cond = E_NOT(stmt.cond)
        if not (_boundary_equal(node.post, E_AND(node.pre, exit_cond), options)
                or _boundary_equal(node.post, E_AND(exit_cond, node.pre), options)):
            return "loop postcondition must be I ∧ ¬b"
    return None


def _check_consequence(node: ProofNode, options: ValidationOptions) -> Optional[str]:
    (child,) = node.children
    if child.stmt != node.stmt:
        return "consequence premise must be about the same statement"
    if not node.obligations_proved:
        return "side conditions P ⇒ P' and Q' ⇒ Q are not proved"
    return None


_CHECKS: Dict[Rule, Check] = {
    Rule.SKIP: _check_skip,
    Rule.ASSIGN: _check_assign,
    Rule.SEQUENCE: _check_sequence,
    Rule.CONDITIONAL: _check_conditional,
    Rule.WHILE: _check_while,
    Rule.CONSEQUENCE: _check_consequence,
}

if set(_CHECKS) != set(Rule):
    raise RuntimeError("every Rule needs a validity check")


def local_failure(node: ProofNode, options: Optional[ValidationOptions] = None) -> Optional[str]:
    """Why this single step is unsound (premise validity not considered)."""
    options = options or DEFAULT_OPTIONS
    rule = node.rule
    if rule is None:
        return "no rule applied"
    if not isinstance(rule, Rule) or rule not in _CHECKS:
        return f"unknown rule {rule!r}"
    if not rule_applies(rule, node.stmt):
        return f"{rule.value} rule does not apply to '{stmt_to_string(node.stmt)}'"
    if len(node.children) != RULE_ARITY[rule]:
        return (f"{rule.value} rule needs {RULE_ARITY[rule]} premise(s), "
                f"found {len(node.children)}")
    return _CHECKS[rule](node, options)


def _is_valid(node: ProofNode, options: ValidationOptions) -> bool:
    if local_failure(node, options) is not None:
        return False
    return all(_is_valid(child, options) for child in node.children)


def is_valid(node: ProofNode, options: Optional[ValidationOptions] = None) -> bool:
    """True iff node and its entire subtree form a valid derivation."""
    try:
        return _is_valid(node, options or DEFAULT_OPTIONS)
    except (AttributeError, TypeError, ValueError, RecursionError):
        return False


def find_failures(
    root: ProofNode,
    options: Optional[ValidationOptions] = None,
) -> List[ProofError]:
    """Every node whose own step is unsound, in pre-order, with a reason."""
    failures: List[ProofError] = []
    for path, node in iter_nodes(root):
        try:
            reason = local_failure(node, options)
        except (AttributeError, TypeError, ValueError):
            reason = "malformed proof node"
        if reason is not None:
            rule = node.rule.value if isinstance(node.rule, Rule) else None
            failures.append(invalid_step(path, rule, reason, node.triple()))
    return failures
