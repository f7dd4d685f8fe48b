"""hoaretree Serialization — proof trees as JSON documents.

A node is stored with its assertions and statement as infix text:

    {
      "pre": "x ≥ 0",
      "stmt": "x := x + 1",
      "post": "x > 0",
      "rule": "consequence",
      "obligations_proved": false,
      "children": [ ... ]
    }

``rule``, ``obligations_proved`` and ``children`` are optional. Loading
re-parses every field, so a file can be written by hand.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Sequence

from hoaretree.errors import HoareTreeError, file_error, format_path
from hoaretree.expressions import expr_to_string, parse_expression, HUMAN
from hoaretree.proof_tree import ProofNode, coerce_rule
from hoaretree.statements import parse_statement, stmt_to_string


def tree_to_dict(node: ProofNode) -> Dict[str, Any]:
    return {
        "pre": expr_to_string(node.pre, HUMAN),
        "stmt": stmt_to_string(node.stmt),
        "post": expr_to_string(node.post, HUMAN),
        "rule": node.rule.value if node.rule is not None else None,
        "obligations_proved": node.obligations_proved,
        "children": [tree_to_dict(child) for child in node.children],
    }


def tree_from_dict(data: Any, filename: str = "<input>", path: Sequence[int] = ()) -> ProofNode:
    """Rebuild a node from its dict form; raises HoareTreeError on bad input."""
    where = f"node {format_path(path)}"

    def fail(message: str) -> HoareTreeError:
        return HoareTreeError(file_error(f"{where}: {message}", filename))

    if not isinstance(data, dict):
        raise fail("expected an object")

    fields = {}
    for key, parse in (("pre", parse_expression), ("post", parse_expression),
                       ("stmt", parse_statement)):
        text = data.get(key)
        if not isinstance(text, str):
            raise fail(f"missing '{key}'")
        value = parse(text)
        if value is None:
            raise fail(f"cannot parse {key} '{text}'")
        fields[key] = value

    rule = None
    if data.get("rule") is not None:
        rule = coerce_rule(data["rule"])
        if rule is None:
            raise fail(f"unknown rule '{data['rule']}'")

    children = data.get("children")
    if children is None:
        children = []
    elif not isinstance(children, list):
        raise fail("'children' must be a list")

    # Strict JSON boolean; "false" is not false.
    proved = data.get("obligations_proved", False)
    if not isinstance(proved, bool):
        raise fail("'obligations_proved' must be true or false")

    return ProofNode(
        pre=fields["pre"],
        stmt=fields["stmt"],
        post=fields["post"],
        children=tuple(
            tree_from_dict(child, filename, tuple(path) + (i,))
            for i, child in enumerate(children)
        ),
        rule=rule,
        obligations_proved=proved,
    )


def dumps_tree(node: ProofNode, indent: int = 2) -> str:
    return json.dumps(tree_to_dict(node), indent=indent, ensure_ascii=False)


def loads_tree(text: str, filename: str = "<input>") -> ProofNode:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise HoareTreeError(file_error(f"invalid JSON: {exc}", filename))
    return tree_from_dict(data, filename)


def dump_tree(node: ProofNode, filename: str) -> None:
    try:
        with open(filename, "w", encoding="utf-8") as f:
            f.write(dumps_tree(node))
            f.write("\n")
    except OSError as exc:
        raise HoareTreeError(file_error(f"cannot write file: {exc}", filename))


def load_tree(filename: str) -> ProofNode:
    try:
        with open(filename, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise HoareTreeError(file_error(f"cannot read file: {exc}", filename))
    return loads_tree(text, filename)
