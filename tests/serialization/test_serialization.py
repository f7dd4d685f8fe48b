"""hoaretree Proof File Tests — FILE-001 through FILE-003."""

import json

import pytest

from hoaretree.errors import HoareTreeError, ErrorKind
from hoaretree.expressions import parse_expression
from hoaretree.proof_tree import ProofNode, Rule, apply_rule
from hoaretree.serialization import (
    dump_tree, dumps_tree, load_tree, loads_tree, tree_from_dict, tree_to_dict,
)
from hoaretree.statements import parse_statement
from hoaretree.validator import is_valid


def e(text):
    return parse_expression(text)


def sample_tree():
    root = ProofNode(e("x + 1 + 1 > 0"), parse_statement("x := x + 1; x := x + 1"), e("x > 0"))
    root = apply_rule(root, (), Rule.SEQUENCE, intermediate=e("x + 1 > 0"))
    root = apply_rule(root, (0,), Rule.ASSIGN)
    return apply_rule(root, (1,), Rule.ASSIGN)


class TestDictForm:
    """FILE-001: Nodes as dicts of infix text."""

    def test_fields(self):
        data = tree_to_dict(sample_tree())
        assert data["rule"] == "sequence"
        assert data["post"] == "(x > 0)"
        assert data["stmt"] == "x := (x + 1); x := (x + 1)"
        assert data["obligations_proved"] is False
        assert len(data["children"]) == 2

    def test_round_trip(self):
        root = sample_tree()
        assert tree_from_dict(tree_to_dict(root)) == root

    def test_hand_written(self):
        node = tree_from_dict({
            "pre": "x + 1 > 0", "stmt": "x := x + 1", "post": "x > 0", "rule": "assign",
        })
        assert node.rule is Rule.ASSIGN and node.children == ()
        assert is_valid(node)

    def test_flag_survives(self):
        root = ProofNode(e("x > 0"), parse_statement("skip"), e("x > 0"), obligations_proved=True)
        assert tree_from_dict(tree_to_dict(root)).obligations_proved


class TestBadInput:
    """FILE-002: Malformed documents raise file errors."""

    @pytest.mark.parametrize("data, fragment", [
        ([], "expected an object"),
        ({"stmt": "skip", "post": "x > 0"}, "missing 'pre'"),
        ({"pre": "x >", "stmt": "skip", "post": "x > 0"}, "cannot parse pre"),
        ({"pre": "x > 0", "stmt": "jump", "post": "x > 0"}, "cannot parse stmt"),
        ({"pre": "x > 0", "stmt": "skip", "post": "x > 0", "rule": "frame"}, "unknown rule"),
        ({"pre": "x > 0", "stmt": "skip", "post": "x > 0", "children": {}}, "must be a list"),
        ({"pre": "x > 0", "stmt": "skip", "post": "x > 0", "children": ""}, "must be a list"),
        ({"pre": "x > 0", "stmt": "skip", "post": "x > 0", "children": 0}, "must be a list"),
        ({"pre": "x > 0", "stmt": "skip", "post": "x > 0", "obligations_proved": "false"},
         "must be true or false"),
        ({"pre": "x > 0", "stmt": "skip", "post": "x > 0", "obligations_proved": 1},
         "must be true or false"),
    ])
    def test_rejected(self, data, fragment):
        with pytest.raises(HoareTreeError) as info:
            tree_from_dict(data)
        err = info.value.errors[0]
        assert err.kind == ErrorKind.FILE_ERROR
        assert fragment in err.message

    def test_text_flag_cannot_prove_consequence(self):
        data = {
            "pre": "x > 0", "stmt": "x := x + 1", "post": "x > 0", "rule": "consequence",
            "obligations_proved": "false",
            "children": [
                {"pre": "x + 1 > 0", "stmt": "x := x + 1", "post": "x > 0", "rule": "assign"},
            ],
        }
        with pytest.raises(HoareTreeError):
            tree_from_dict(data)
        data["obligations_proved"] = False
        assert not is_valid(tree_from_dict(data))

    def test_null_children_means_leaf(self):
        node = tree_from_dict({"pre": "x > 0", "stmt": "skip", "post": "x > 0", "children": None})
        assert node.children == ()

    def test_error_names_nested_path(self):
        data = tree_to_dict(sample_tree())
        data["children"][1]["pre"] = "("
        with pytest.raises(HoareTreeError) as info:
            tree_from_dict(data)
        assert info.value.errors[0].message.startswith("node 1:")

    def test_invalid_json(self):
        with pytest.raises(HoareTreeError):
            loads_tree("{not json")


class TestFiles:
    """FILE-003: Reading and writing proof files."""

    def test_dump_and_load(self, tmp_path):
        target = tmp_path / "proof.json"
        dump_tree(sample_tree(), str(target))
        assert load_tree(str(target)) == sample_tree()
        assert json.loads(target.read_text(encoding="utf-8"))["rule"] == "sequence"

    def test_unicode_kept(self):
        text = dumps_tree(ProofNode(e("x ≥ 0"), parse_statement("skip"), e("x ≥ 0")))
        assert "≥" in text

    def test_missing_file(self, tmp_path):
        with pytest.raises(HoareTreeError) as info:
            load_tree(str(tmp_path / "absent.json"))
        assert info.value.errors[0].details["file"].endswith("absent.json")
