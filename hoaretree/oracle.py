"""hoaretree Oracle — discharge consequence-rule side conditions with Z3.

The consequence rule
    P ⇒ P'    {P'} S {Q'}    Q' ⇒ Q
    ───────────────────────────────
               {P} S {Q}
has two first-order side conditions that shape comparison cannot decide.
They are rendered to SMT-LIB text, one block per obligation:

    ; P_to_Pp
    (assert (forall ((x Int)) (or (>= x 0) (not (> x 0)))))
    (check-sat)

The asserted formula is the universally closed implication, so ``sat`` means
the implication holds for every integer assignment and ``unsat`` means it
fails for some. Every variable is an ``Int``.

Outcome of a whole query:
  Valid     every block answered sat
  Invalid   some block answered unsat
  Unknown   otherwise (solver gave up on some block)
  Timeout   the query did not finish within the time budget
  NoSolver  the z3 package is not importable
  Error     the text did not parse or the solver raised

Only ``Valid`` lets a caller set ``obligations_proved``. Every other outcome
leaves the node unproved.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

try:
    import z3
    HAS_Z3 = True
except ImportError:
    z3 = None
    HAS_Z3 = False

from hoaretree.expressions import Expression, collect_free_vars, expr_to_string, ORACLE
from hoaretree.proof_tree import ProofNode, Rule

logger = logging.getLogger("hoaretree.oracle")

DEFAULT_TIMEOUT_MS = 6000
CHECK_SAT = "(check-sat)"


class OracleStatus(str, Enum):
    """Outcome of an oracle query."""
    VALID = "Valid"
    INVALID = "Invalid"
    UNKNOWN = "Unknown"
    NO_SOLVER = "NoSolver"
    TIMEOUT = "Timeout"
    ERROR = "Error"


@dataclass
class OracleResult:
    """Aggregate status plus the raw per-block answers ("sat"/"unsat"/"unknown")."""
    status: OracleStatus
    results: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def proved(self) -> bool:
        return self.status == OracleStatus.VALID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "results": list(self.results),
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class Obligation:
    """A named implication lhs ⇒ rhs."""
    name: str
    lhs: Expression
    rhs: Expression

    def formula(self) -> str:
        """Closed SMT-LIB formula whose satisfiability means lhs ⇒ rhs holds."""
        body = f"(or {expr_to_string(self.rhs, ORACLE)} (not {expr_to_string(self.lhs, ORACLE)}))"
        names = sorted(collect_free_vars(self.lhs) | collect_free_vars(self.rhs))
        if not names:
            return body
        binders = " ".join(f"({name} Int)" for name in names)
        return f"(forall ({binders}) {body})"

    def __str__(self) -> str:
        return f"{self.name}: {self.lhs} ⇒ {self.rhs}"


# ---------------------------------------------------------------------------
# Obligation generation
# ---------------------------------------------------------------------------

def consequence_obligations(node: ProofNode) -> List[Obligation]:
    """Side conditions of a consequence step; empty for any other node."""
    if node.rule != Rule.CONSEQUENCE or len(node.children) != 1:
        return []
    child = node.children[0]
    return [
        Obligation("P_to_Pp", node.pre, child.pre),
        Obligation("Qp_to_Q", child.post, node.post),
    ]


def obligation_lines(obligations: List[Obligation]) -> List[str]:
    """SMT-LIB script for the oracle: comment, assertion, check-sat per obligation."""
    lines: List[str] = []
    for ob in obligations:
        lines.append(f"; {ob.name}")
        lines.append(f"(assert {ob.formula()})")
        lines.append(CHECK_SAT)
    return lines


def split_blocks(lines: List[str]) -> List[str]:
    """Group script lines into blocks, each ending at a ``(check-sat)``."""
    blocks: List[str] = []
    current: List[str] = []
    for line in lines:
        if line.strip() == CHECK_SAT:
            blocks.append("\n".join(current))
            current = []
        else:
            current.append(line)
    return blocks


def interpret_results(results: List[str]) -> OracleStatus:
    """Fold per-block answers into one status."""
    if results and all(r == "sat" for r in results):
        return OracleStatus.VALID
    if any(r == "unsat" for r in results):
        return OracleStatus.INVALID
    return OracleStatus.UNKNOWN


# ---------------------------------------------------------------------------
# Z3 backend
# ---------------------------------------------------------------------------

class Z3Oracle:
    """Runs obligation scripts through the z3 Python bindings.

    Each query gets its own ``z3.Context`` so concurrent queries do not share
    solver state, and each block is checked by a fresh solver. The query runs
    on a worker thread; when the budget runs out the context is interrupted
    and the outcome is ``Timeout``.
    """

    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.timeout_ms = timeout_ms

    def check(self, lines: List[str], timeout_ms: Optional[int] = None) -> OracleResult:
        if not HAS_Z3:
            logger.warning("z3 is not installed; obligations left unproved")
            return OracleResult(OracleStatus.NO_SOLVER, errors=["z3 not available"])

        budget = self.timeout_ms if timeout_ms is None else timeout_ms
        blocks = split_blocks(lines)
        if not blocks:
            return OracleResult(OracleStatus.ERROR, errors=["no (check-sat) in script"])

        ctx = z3.Context()
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hoaretree-z3")
        future = pool.submit(self._run_blocks, ctx, blocks, budget)
        try:
            results, timed_out = future.result(timeout=budget / 1000.0)
        except FutureTimeout:
            logger.info("oracle query exceeded %d ms; interrupting", budget)
            ctx.interrupt()
            return OracleResult(OracleStatus.TIMEOUT, errors=[f"timeout after {budget} ms"])
        except z3.Z3Exception as exc:
            logger.info("oracle rejected script: %s", exc)
            return OracleResult(OracleStatus.ERROR, errors=[str(exc)])
        except Exception as exc:
            logger.exception("oracle query failed")
            return OracleResult(OracleStatus.ERROR, errors=[f"{type(exc).__name__}: {exc}"])
        finally:
            pool.shutdown(wait=False)

        if timed_out:
            return OracleResult(OracleStatus.TIMEOUT, results=results,
                                errors=[f"timeout after {budget} ms"])
        status = interpret_results(results)
        logger.debug("oracle answers %s -> %s", results, status.value)
        return OracleResult(status, results=results)

    @staticmethod
    def _run_blocks(ctx: Any, blocks: List[str], budget: int) -> tuple[List[str], bool]:
        results: List[str] = []
        timed_out = False
        for block in blocks:
            solver = z3.Solver(ctx=ctx)
            solver.set("timeout", budget)
            solver.from_string(block)
            answer = solver.check()
            if answer == z3.sat:
                results.append("sat")
            elif answer == z3.unsat:
                results.append("unsat")
            else:
                results.append("unknown")
                if solver.reason_unknown() in ("timeout", "canceled"):
                    timed_out = True
        return results, timed_out


def prove_node(node: ProofNode, oracle: Optional[Z3Oracle] = None) -> OracleResult:
    """Check both side conditions of a consequence node in one query."""
    obligations = consequence_obligations(node)
    if not obligations:
        return OracleResult(OracleStatus.ERROR, errors=["node is not a consequence step"])
    return (oracle or Z3Oracle()).check(obligation_lines(obligations))


_DESCRIPTIONS = {
    OracleStatus.VALID: "All obligations proved (Valid)",
    OracleStatus.INVALID: "At least one obligation is invalid",
    OracleStatus.UNKNOWN: "Solver returned unknown",
    OracleStatus.NO_SOLVER: "Solver not available (install z3-solver)",
    OracleStatus.TIMEOUT: "Solver timed out",
}


def describe_outcome(result: OracleResult) -> str:
    """One-line human summary of an oracle result."""
    if result.status == OracleStatus.ERROR:
        detail = "; ".join(result.errors) or "unknown failure"
        return f"Solver error: {detail}"
    return _DESCRIPTIONS[result.status]
