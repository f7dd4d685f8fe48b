"""hoaretree Output Formatters — human-friendly terminal output.

Output modes:
    pretty — the derivation as an indented tree, one icon per node
    json   — machine-readable check report
"""

from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List, Optional

from hoaretree.errors import ProofError, format_path
from hoaretree.oracle import OracleResult, describe_outcome
from hoaretree.proof_tree import ProofNode, Path
from hoaretree.validator import ValidationOptions, is_valid, local_failure


# ── ANSI color helpers ───────────────────────────────────────────────────

_NO_COLOR = os.environ.get("NO_COLOR") is not None or not sys.stdout.isatty()


def _c(code: str, text: str) -> str:
    if _NO_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def red(t: str) -> str:
    return _c("31", t)


def yellow(t: str) -> str:
    return _c("33", t)


def green(t: str) -> str:
    return _c("32", t)


def bold(t: str) -> str:
    return _c("1", t)


def dim(t: str) -> str:
    return _c("2", t)


ICON_ERROR = red("✖")
ICON_OK = green("✔")
ICON_OPEN = yellow("○")


# ── Tree ────────────────────────────────────────────────────────────────

def _node_icon(node: ProofNode, options: Optional[ValidationOptions]) -> str:
    if node.rule is None and not node.children:
        return ICON_OPEN
    return ICON_OK if is_valid(node, options) else ICON_ERROR


def format_tree(root: ProofNode, options: Optional[ValidationOptions] = None) -> str:
    """Indented derivation: conclusion first, premises below it."""
    lines: List[str] = []

    def walk(node: ProofNode, path: Path, depth: int) -> None:
        indent = "   " * depth
        rule = dim(f"[{node.rule.value}]") if node.rule is not None else dim("[open]")
        lines.append(f" {indent}{_node_icon(node, options)}  {dim(format_path(path))} "
                     f"{node.triple()}  {rule}")
        reason = local_failure(node, options)
        if reason is not None and node.rule is not None:
            lines.append(f" {indent}      {red(reason)}")
        for i, child in enumerate(node.children):
            walk(child, path + (i,), depth + 1)

    walk(root, (), 0)
    return "\n".join(lines)


def format_pretty(
    root: ProofNode,
    failures: List[ProofError],
    options: Optional[ValidationOptions] = None,
    filepath: Optional[str] = None,
) -> str:
    valid = is_valid(root, options)
    lines: List[str] = []
    header = filepath or root.triple()
    lines.append(f"\n {ICON_OK if valid else ICON_ERROR}  {bold(header)}")
    lines.append(f" {dim('─' * 50)}")
    lines.append(format_tree(root, options))
    lines.append(f" {dim('─' * 50)}")
    if valid:
        lines.append(f"   {green('Proof complete.')}\n")
    else:
        count = len(failures)
        lines.append(f"   {red(f'{count} unjustified step' + ('s' if count != 1 else ''))}\n")
    return "\n".join(lines)


def format_oracle(path: Path, result: OracleResult) -> str:
    icon = ICON_OK if result.proved else ICON_ERROR
    return f" {icon}  {dim(format_path(path))} {describe_outcome(result)}"


# ── JSON ────────────────────────────────────────────────────────────────

def check_report(
    root: ProofNode,
    failures: List[ProofError],
    options: Optional[ValidationOptions] = None,
    oracle: Optional[Dict[str, OracleResult]] = None,
) -> Dict[str, Any]:
    report: Dict[str, Any] = {
        "valid": is_valid(root, options),
        "root": root.triple(),
        "failures": [f.to_dict() for f in failures],
    }
    if oracle:
        report["oracle"] = {path: result.to_dict() for path, result in oracle.items()}
    return report


def format_json(report: Dict[str, Any]) -> str:
    return json.dumps(report, indent=2, ensure_ascii=False)
