"""hoaretree Proof Trees — persistent, path-addressed derivations.

A proof is a tree of Hoare triples. Each node records the rule the user
claims justifies it; its children are the premises that rule produced:

  Rule          premises (children)
  ───────────   ───────────────────────────────────────────────
  skip          —
  assign        —
  sequence      {P} S1 {R},  {R} S2 {Q}
  conditional   {P ∧ b} S1 {Q},  {P ∧ ¬b} S2 {Q}
  while         {I ∧ b} S {I}
  consequence   {P'} S {Q'}      (side conditions P ⇒ P', Q' ⇒ Q)

Nodes are immutable. Every edit rebuilds the spine from the root to the
edited node and returns a new root, so earlier snapshots stay valid (undo,
and dropping oracle answers that arrive after the tree has moved on).
Edits that do not fit (wrong statement shape, missing input, a path that no
longer resolves) are rejected silently: the original root comes back.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, Optional, Tuple

from hoaretree.expressions import (
    Expression, E_AND, E_NOT, expr_to_string, is_complete, HUMAN,
)
from hoaretree.statements import (
    AnyStatement, Statement, Skip, Assign, Sequence, Conditional, While,
    finalize, stmt_to_string,
)

logger = logging.getLogger("hoaretree.proof_tree")

Path = Tuple[int, ...]


class Rule(str, Enum):
    """Inference rules of partial-correctness Hoare logic."""
    SKIP = "skip"
    ASSIGN = "assign"
    SEQUENCE = "sequence"
    CONDITIONAL = "conditional"
    WHILE = "while"
    CONSEQUENCE = "consequence"


RULE_ARITY: Dict[Rule, int] = {
    Rule.SKIP: 0,
    Rule.ASSIGN: 0,
    Rule.SEQUENCE: 2,
    Rule.CONDITIONAL: 2,
    Rule.WHILE: 1,
    Rule.CONSEQUENCE: 1,
}

# Statement shape each rule applies to; consequence applies to any.
RULE_STATEMENT: Dict[Rule, Optional[type]] = {
    Rule.SKIP: Skip,
    Rule.ASSIGN: Assign,
    Rule.SEQUENCE: Sequence,
    Rule.CONDITIONAL: Conditional,
    Rule.WHILE: While,
    Rule.CONSEQUENCE: None,
}


def rule_applies(rule: Rule, stmt: Statement) -> bool:
    """True iff the rule's conclusion can be about this statement."""
    shape = RULE_STATEMENT[rule]
    return shape is None or isinstance(stmt, shape)


def coerce_rule(rule: Rule | str | None) -> Optional[Rule]:
    """Accept a Rule or its tag; None for anything unknown."""
    if rule is None or isinstance(rule, Rule):
        return rule
    try:
        return Rule(str(rule).strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class ProofNode:
    """One Hoare triple {pre} stmt {post} and the rule claimed for it."""
    pre: Expression
    stmt: Statement
    post: Expression
    children: Tuple[ProofNode, ...] = ()
    rule: Optional[Rule] = None
    obligations_proved: bool = False

    def triple(self) -> str:
        return (f"{{{expr_to_string(self.pre, HUMAN)}}} "
                f"{stmt_to_string(self.stmt)} "
                f"{{{expr_to_string(self.post, HUMAN)}}}")

    def __str__(self) -> str:
        return self.triple()


# ---------------------------------------------------------------------------
# Path addressing
# ---------------------------------------------------------------------------

def node_at(root: Optional[ProofNode], path: Path) -> Optional[ProofNode]:
    """Follow child indices from the root; None if the path does not resolve."""
    node = root
    for index in path:
        if node is None or index < 0 or index >= len(node.children):
            return None
        node = node.children[index]
    return node


def replace_at(root: ProofNode, path: Path, new: ProofNode) -> Optional[ProofNode]:
    """Return a new root with the subtree at path replaced, or None if stale."""
    if not path:
        return new
    index = path[0]
    if index < 0 or index >= len(root.children):
        return None
    new_child = replace_at(root.children[index], path[1:], new)
    if new_child is None:
        return None
    children = root.children[:index] + (new_child,) + root.children[index + 1:]
    return dataclasses.replace(root, children=children)


def update_node(
    root: ProofNode,
    path: Path,
    updater: Callable[[ProofNode], ProofNode],
) -> ProofNode:
    """Apply a pure transformation to the node at path; stale paths are dropped."""
    target = node_at(root, path)
    if target is None:
        logger.debug("update_node: path %s no longer resolves", path)
        return root
    new_root = replace_at(root, path, updater(target))
    return new_root if new_root is not None else root


def iter_nodes(root: ProofNode, path: Path = ()) -> Iterator[Tuple[Path, ProofNode]]:
    """Pre-order walk yielding (path, node)."""
    yield path, root
    for i, child in enumerate(root.children):
        yield from iter_nodes(child, path + (i,))


# ---------------------------------------------------------------------------
# Rule application — one expander per rule
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleInput:
    """User-supplied assertions some rules need before they can expand."""
    intermediate: Optional[Expression] = None   # sequence: R
    new_pre: Optional[Expression] = None        # consequence: P'
    new_post: Optional[Expression] = None       # consequence: Q'


Premises = Optional[Tuple[ProofNode, ...]]


def _expand_axiom(node: ProofNode, given: RuleInput) -> Premises:
    return ()


def _expand_sequence(node: ProofNode, given: RuleInput) -> Premises:
    r = given.intermediate
    if not is_complete(r):
        return None
    stmt = node.stmt
    return (
        ProofNode(pre=node.pre, stmt=stmt.s1, post=r),
        ProofNode(pre=r, stmt=stmt.s2, post=node.post),
    )


def _expand_conditional(node: ProofNode, given: RuleInput) -> Premises:
    stmt = node.stmt
    return (
        ProofNode(pre=E_AND(node.pre, stmt.cond), stmt=stmt.s1, post=node.post),
        ProofNode(pre=E_AND(node.pre, E_NOT(stmt.cond)), stmt=stmt.s2, post=node.post),
    )


def _expand_while(node: ProofNode, given: RuleInput) -> Premises:
    stmt = node.stmt
    return (
        ProofNode(pre=E_AND(node.pre, stmt.cond), stmt=stmt.body, post=node.pre),
    )


def _expand_consequence(node: ProofNode, given: RuleInput) -> Premises:
    if not is_complete(given.new_pre) or not is_complete(given.new_post):
        return None
    return (
        ProofNode(pre=given.new_pre, stmt=node.stmt, post=given.new_post),
    )


_EXPANDERS: Dict[Rule, Callable[[ProofNode, RuleInput], Premises]] = {
    Rule.SKIP: _expand_axiom,
    Rule.ASSIGN: _expand_axiom,
    Rule.SEQUENCE: _expand_sequence,
    Rule.CONDITIONAL: _expand_conditional,
    Rule.WHILE: _expand_while,
    Rule.CONSEQUENCE: _expand_consequence,
}

if set(_EXPANDERS) != set(Rule) or set(RULE_ARITY) != set(Rule):
    raise RuntimeError("every Rule needs an expander and an arity")


def apply_rule(
    root: ProofNode,
    path: Path,
    rule: Rule | str,
    *,
    intermediate: Optional[Expression] = None,
    new_pre: Optional[Expression] = None,
    new_post: Optional[Expression] = None,
) -> ProofNode:
    """Apply an inference rule to the node at path and return the new root.

    The node's previous subtree is discarded and replaced by the rule's
    premises. Returns the unchanged root when the rule does not fit the
    node's statement, required input is missing or incomplete, or the path
    no longer resolves.
    """
    node = node_at(root, path)
    if node is None:
        logger.debug("apply_rule: stale path %s", path)
        return root
    tag = coerce_rule(rule)
    if tag is None:
        logger.debug("apply_rule: unknown rule %r", rule)
        return root
    if not rule_applies(tag, node.stmt):
        logger.debug("apply_rule: %s does not apply to '%s'", tag.value, stmt_to_string(node.stmt))
        return root

    given = RuleInput(intermediate=intermediate, new_pre=new_pre, new_post=new_post)
    premises = _EXPANDERS[tag](node, given)
    if premises is None:
        logger.debug("apply_rule: %s at %s is missing input", tag.value, path)
        return root

    expanded = dataclasses.replace(
        node, children=premises, rule=tag, obligations_proved=False,
    )
    new_root = replace_at(root, path, expanded)
    return new_root if new_root is not None else root


def create_root(
    pre: Optional[Expression],
    stmt: Optional[AnyStatement],
    post: Optional[Expression],
) -> Optional[ProofNode]:
    """Start a proof from a fully built triple; None while anything is missing."""
    complete = finalize(stmt)
    if complete is None or not is_complete(pre) or not is_complete(post):
        return None
    return ProofNode(pre=pre, stmt=complete, post=post)
