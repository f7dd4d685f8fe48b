"""hoaretree Session — the mutable handle around an immutable proof tree.

A session owns the current root, an undo history and a small worker pool for
oracle queries. All edits go through the persistent operations in
``hoaretree.proof_tree``; the session only swaps the root under a lock.

Oracle answers arrive asynchronously. When one comes back the session looks
the path up again in the *current* tree and sets ``obligations_proved`` only
if the node there still carries the same triple and premise the query was
about. An answer for a node that was edited, re-expanded or removed in the
meantime is dropped.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from hoaretree.errors import HoareTreeError, oracle_error
from hoaretree.expressions import Expression
from hoaretree.oracle import (
    OracleResult, OracleStatus, Z3Oracle, consequence_obligations,
    obligation_lines,
)
from hoaretree.proof_tree import (
    Path, ProofNode, Rule, apply_rule, create_root, node_at, update_node,
)
from hoaretree.statements import AnyStatement
from hoaretree.validator import ValidationOptions, find_failures, is_valid

logger = logging.getLogger("hoaretree.session")


class ProofSession:
    """Interactive proof state: current root, undo stack, oracle workers."""

    def __init__(
        self,
        root: Optional[ProofNode] = None,
        oracle: Optional[Z3Oracle] = None,
        options: Optional[ValidationOptions] = None,
        max_workers: int = 2,
    ):
        self._root = root
        self._history: List[ProofNode] = []
        self._lock = threading.Lock()
        self.oracle = oracle or Z3Oracle()
        self.options = options or ValidationOptions()
        self._pool = ThreadPoolExecutor(max_workers=max_workers,
                                        thread_name_prefix="hoaretree-oracle")

    @property
    def root(self) -> Optional[ProofNode]:
        return self._root

    def _swap(self, new_root: Optional[ProofNode]) -> bool:
        # Caller holds the lock.
        if new_root is self._root:
            return False
        if self._root is not None:
            self._history.append(self._root)
        self._root = new_root
        return True

    def create_root(
        self,
        pre: Optional[Expression],
        stmt: Optional[AnyStatement],
        post: Optional[Expression],
    ) -> Optional[ProofNode]:
        """Start a new proof; keeps the current one if the triple is incomplete."""
        root = create_root(pre, stmt, post)
        if root is None:
            logger.debug("create_root: triple is incomplete")
            return None
        with self._lock:
            self._swap(root)
        return root

    def apply_rule(self, path: Path, rule: Rule | str, **inputs: Optional[Expression]) -> bool:
        """Apply a rule at path. Returns True if the tree changed."""
        with self._lock:
            if self._root is None:
                return False
            return self._swap(apply_rule(self._root, path, rule, **inputs))

    def update_node(self, path: Path, updater: Callable[[ProofNode], ProofNode]) -> bool:
        with self._lock:
            if self._root is None:
                return False
            return self._swap(update_node(self._root, path, updater))

    def undo(self) -> bool:
        with self._lock:
            if not self._history:
                return False
            self._root = self._history.pop()
            return True

    def is_valid(self) -> bool:
        root = self._root
        return root is not None and is_valid(root, self.options)

    def failures(self) -> list:
        root = self._root
        return find_failures(root, self.options) if root is not None else []

    # -- oracle -------------------------------------------------------------

    def prove_obligations(self, path: Path) -> Future:
        """Send the consequence side conditions at path to the oracle.

        Returns a Future resolving to the OracleResult. The tree is updated
        when the answer arrives, provided the node is still the one asked
        about.
        """
        with self._lock:
            node = node_at(self._root, path) if self._root is not None else None
        if node is None:
            raise HoareTreeError(oracle_error("Error", [f"no node at {path}"], path))
        obligations = consequence_obligations(node)
        if not obligations:
            raise HoareTreeError(oracle_error(
                "Error", ["node is not a consequence step"], path,
            ))
        lines = obligation_lines(obligations)
        logger.debug("prove_obligations %s:\n%s", path, "\n".join(lines))

        return self._pool.submit(self._query, path, node, lines)

    def _query(self, path: Path, asked: ProofNode, lines: List[str]) -> OracleResult:
        result = self.oracle.check(lines)
        self._record(path, asked, result)
        return result

    def _record(self, path: Path, asked: ProofNode, result: OracleResult) -> None:
        if result.status != OracleStatus.VALID:
            logger.info("obligations at %s not proved: %s", path, result.status.value)
            return
        with self._lock:
            current = node_at(self._root, path) if self._root is not None else None
            if current is None or not _same_question(current, asked):
                logger.info("dropping oracle answer for %s: node changed", path)
                return
            self._swap(update_node(
                self._root, path,
                lambda n: dataclasses.replace(n, obligations_proved=True),
            ))

    def close(self) -> None:
        self._pool.shutdown(wait=True)

    def __enter__(self) -> ProofSession:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _same_question(current: ProofNode, asked: ProofNode) -> bool:
    """Would the oracle have been asked the same thing about current?"""
    return (
        current.rule == asked.rule
        and consequence_obligations(current) == consequence_obligations(asked)
        and current.stmt == asked.stmt
    )
