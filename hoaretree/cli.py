"""hoaretree CLI — command-line front end for proof files.

Commands:
  hoaretree check <proof.json>                   — validate every step
  hoaretree check <proof.json> --prove           — also send consequence side conditions to Z3
  hoaretree obligations <proof.json> --path 0.1  — print the SMT-LIB script for a node
  hoaretree parse "<text>"                       — show human and oracle forms
  hoaretree apply <proof.json> --path P --rule R — expand a node and write the tree back
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, Optional

from hoaretree import __version__
from hoaretree.config import HoareTreeConfig, load_config
from hoaretree.errors import HoareTreeError, ProofError, ErrorKind, format_path
from hoaretree.expressions import (
    expr_to_string, parse_expression, HUMAN, INFIX, ORACLE, PREFIX,
)
from hoaretree.formatters import (
    check_report, format_json, format_oracle, format_pretty, red,
)
from hoaretree.oracle import (
    OracleResult, Z3Oracle, consequence_obligations, obligation_lines,
)
from hoaretree.proof_tree import Path, ProofNode, Rule, apply_rule, iter_nodes, node_at
from hoaretree.serialization import dump_tree, load_tree
from hoaretree.session import ProofSession
from hoaretree.statements import parse_statement, stmt_to_string
from hoaretree.validator import NORMALIZED, ValidationOptions, find_failures

logger = logging.getLogger("hoaretree.cli")


def parse_path(text: str) -> Path:
    """'0.1' -> (0, 1); '' or '.' -> the root."""
    text = text.strip()
    if text in ("", "."):
        return ()
    try:
        return tuple(int(part) for part in text.split("."))
    except ValueError:
        raise HoareTreeError(ProofError(
            kind=ErrorKind.SYNTAX_ERROR,
            message=f"Malformed path '{text}' (expected e.g. 0.1)",
        ))


def _report_error(exc: HoareTreeError, fmt: str) -> int:
    if fmt == "json":
        print(exc.to_json())
    else:
        for err in exc.errors:
            print(red(str(err)), file=sys.stderr)
    return 1


def _options(args: argparse.Namespace, config: HoareTreeConfig) -> ValidationOptions:
    options = config.validation_options()
    if getattr(args, "lenient", False):
        options = ValidationOptions(NORMALIZED, options.check_loop_exit)
    if getattr(args, "check_loop_exit", False):
        options = ValidationOptions(options.boundary_equality, True)
    return options


def _load(args: argparse.Namespace) -> ProofNode:
    return load_tree(args.file)


def cmd_check(args: argparse.Namespace) -> int:
    """Validate a proof file, optionally discharging consequence obligations."""
    config: HoareTreeConfig = args.config
    fmt = args.format or config.output_format
    try:
        root = _load(args)
    except HoareTreeError as exc:
        return _report_error(exc, fmt)

    options = _options(args, config)
    oracle_results: Dict[str, OracleResult] = {}

    if args.prove:
        timeout = args.timeout or config.oracle_timeout_ms
        with ProofSession(root, Z3Oracle(timeout), options, config.max_workers) as session:
            pending = {
                path: session.prove_obligations(path)
                for path, node in iter_nodes(root)
                if node.rule == Rule.CONSEQUENCE and len(node.children) == 1
            }
            for path, future in pending.items():
                oracle_results[format_path(path)] = future.result()
            root = session.root

    failures = find_failures(root, options)
    if fmt == "json":
        print(format_json(check_report(root, failures, options, oracle_results)))
    else:
        for key, result in oracle_results.items():
            print(format_oracle(parse_path(key), result))
        print(format_pretty(root, failures, options, args.file))
    return 0 if not failures else 1


def cmd_obligations(args: argparse.Namespace) -> int:
    """Print the SMT-LIB script the oracle would receive for one node."""
    try:
        root = _load(args)
        path = parse_path(args.path)
    except HoareTreeError as exc:
        return _report_error(exc, "pretty")
    node = node_at(root, path)
    if node is None:
        print(red(f"No node at {format_path(path)}"), file=sys.stderr)
        return 1
    obligations = consequence_obligations(node)
    if not obligations:
        print(red(f"Node {format_path(path)} is not a consequence step"), file=sys.stderr)
        return 1
    print("\n".join(obligation_lines(obligations)))
    return 0


def cmd_parse(args: argparse.Namespace) -> int:
    """Parse an assertion or statement and echo its canonical forms."""
    if args.statement:
        stmt = parse_statement(args.text)
        if stmt is None:
            print(red(f"Cannot parse statement: {args.text}"), file=sys.stderr)
            return 1
        print(stmt_to_string(stmt))
        return 0

    expr = parse_expression(args.text, PREFIX if args.prefix else INFIX)
    if expr is None:
        print(red(f"Cannot parse assertion: {args.text}"), file=sys.stderr)
        return 1
    print(f"human:  {expr_to_string(expr, HUMAN)}")
    print(f"oracle: {expr_to_string(expr, ORACLE)}")
    return 0


def _assertion(text: Optional[str], what: str):
    if text is None:
        return None
    expr = parse_expression(text)
    if expr is None:
        raise HoareTreeError(ProofError(
            kind=ErrorKind.SYNTAX_ERROR,
            message=f"Cannot parse {what} '{text}'",
        ))
    return expr


def cmd_apply(args: argparse.Namespace) -> int:
    """Apply a rule to one node of a proof file and write the result."""
    try:
        root = _load(args)
        path = parse_path(args.path)
        new_root = apply_rule(
            root, path, args.rule,
            intermediate=_assertion(args.intermediate, "intermediate assertion"),
            new_pre=_assertion(args.pre, "precondition"),
            new_post=_assertion(args.post, "postcondition"),
        )
        if new_root is root:
            raise HoareTreeError(ProofError(
                kind=ErrorKind.RULE_MISMATCH,
                message=f"Rule '{args.rule}' cannot be applied at {format_path(path)}",
                path=path,
            ))
        dump_tree(new_root, args.output or args.file)
    except HoareTreeError as exc:
        return _report_error(exc, "pretty")
    print(f"Applied {args.rule} at {format_path(path)} -> {args.output or args.file}")
    return 0


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="hoaretree",
        description="hoaretree — build and check Hoare-logic proof trees",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", dest="log_level", default=None,
                        help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--config", dest="config_path", default=None,
                        help="Config file (default: nearest .hoaretreerc.yml)")
    subparsers = parser.add_subparsers(dest="command")

    # check
    p_check = subparsers.add_parser("check", help="Validate a proof file")
    p_check.add_argument("file", help="Proof file (.json)")
    p_check.add_argument("--prove", action="store_true",
                         help="Discharge consequence side conditions with Z3")
    p_check.add_argument("--timeout", type=int, default=None,
                         help="Oracle timeout in milliseconds")
    p_check.add_argument("--format", choices=["pretty", "json"], default=None,
                         help="Output format (default: pretty)")
    p_check.add_argument("--lenient", action="store_true",
                         help="Compare conditional/while boundaries by normalized text")
    p_check.add_argument("--check-loop-exit", action="store_true", dest="check_loop_exit",
                         help="Require while postconditions to be I ∧ ¬b")
    p_check.set_defaults(func=cmd_check)

    # obligations
    p_obl = subparsers.add_parser("obligations", help="Print SMT-LIB obligations for a node")
    p_obl.add_argument("file", help="Proof file (.json)")
    p_obl.add_argument("--path", default=".", help="Node path, e.g. 0.1 (default: root)")
    p_obl.set_defaults(func=cmd_obligations)

    # parse
    p_parse = subparsers.add_parser("parse", help="Parse an assertion or statement")
    p_parse.add_argument("text", help="Text to parse")
    p_parse.add_argument("--statement", action="store_true", help="Parse a statement")
    p_parse.add_argument("--prefix", action="store_true", help="Assertion is in prefix form")
    p_parse.set_defaults(func=cmd_parse)

    # apply
    p_apply = subparsers.add_parser("apply", help="Apply a rule at a node")
    p_apply.add_argument("file", help="Proof file (.json)")
    p_apply.add_argument("--path", default=".", help="Node path, e.g. 0.1 (default: root)")
    p_apply.add_argument("--rule", required=True, choices=[r.value for r in Rule])
    p_apply.add_argument("--intermediate", help="Intermediate assertion R (sequence)")
    p_apply.add_argument("--pre", help="Strengthened precondition P' (consequence)")
    p_apply.add_argument("--post", help="Weakened postcondition Q' (consequence)")
    p_apply.add_argument("-o", "--output", help="Write here instead of overwriting FILE")
    p_apply.set_defaults(func=cmd_apply)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    args.config = load_config(args.config_path)
    level = (args.log_level or args.config.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
