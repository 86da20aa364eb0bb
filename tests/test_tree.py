"""
Tests for key enumeration and value access on nested documents.

Run with: pytest tests/test_tree.py -v
"""

import copy
import json

import pytest

from jsontrans_llms.paths import Dialect, MalformedPathError, parse_path, try_parse_path
from jsontrans_llms.tree import (
    HOLE,
    NOT_FOUND,
    CyclicStructureError,
    enumerate_keys,
    get_all_keys,
    get_value,
    key_exists,
    set_value,
)


SAMPLE = {
    "navigation": {"home": "Home", "about": "About"},
    "items": [{"label": "First"}, {"label": "Second"}],
    "matrix": [["a", "b"], ["c"]],
    "count": 3,
    "enabled": False,
    "nothing": None,
    "empty_list": [],
    "empty_dict": {},
}


class TestEnumerateKeys:
    """Tests for leaf enumeration."""

    def test_bracketed_order(self):
        assert get_all_keys(SAMPLE) == [
            "navigation.home",
            "navigation.about",
            "items[0].label",
            "items[1].label",
            "matrix[0][0]",
            "matrix[0][1]",
            "matrix[1][0]",
            "count",
            "enabled",
            "nothing",
        ]

    def test_dotted(self):
        keys = get_all_keys({"items": [{"label": "x"}]}, Dialect.DOTTED)
        assert keys == ["items.0.label"]

    def test_scalar_root(self):
        assert enumerate_keys("just a string") == []
        assert enumerate_keys(None) == []

    def test_root_list(self):
        assert get_all_keys(["a", {"b": "c"}]) == ["[0]", "[1].b"]

    def test_exclusions(self):
        tree = {"a": "x", "__updated_keys__": ["a"], "nested": {"__updated_keys__": [], "b": "y"}}
        keys = get_all_keys(tree, exclude_keys={"__updated_keys__"})
        assert keys == ["a", "nested.b"]

    def test_every_key_resolves(self):
        for path in enumerate_keys(SAMPLE):
            assert get_value(SAMPLE, path) is not NOT_FOUND

    def test_enumeration_does_not_mutate(self):
        tree = copy.deepcopy(SAMPLE)
        enumerate_keys(tree)
        assert tree == SAMPLE

    def test_shared_subtree_is_not_a_cycle(self):
        shared = {"x": "1"}
        tree = {"a": shared, "b": shared}
        assert get_all_keys(tree) == ["a.x", "b.x"]

    def test_cycle_detected(self):
        tree = {"a": {}}
        tree["a"]["self"] = tree
        with pytest.raises(CyclicStructureError) as exc:
            enumerate_keys(tree)
        assert str(exc.value.path) == "a.self"

    def test_keys_with_path_characters(self):
        tree = {"Sure.": "x", "a[b": "y", "": "z"}
        paths = enumerate_keys(tree)
        assert [get_value(tree, p) for p in paths] == ["x", "y", "z"]
        assert all(try_parse_path(str(p)) is None for p in paths)

    def test_deep_document(self):
        tree = node = {}
        for _ in range(5000):
            node["n"] = {}
            node = node["n"]
        node["leaf"] = "x"
        keys = enumerate_keys(tree)
        assert len(keys) == 1
        assert len(keys[0]) == 5001


class TestGetValue:
    """Tests for reads."""

    def test_leaf_and_container(self):
        assert get_value(SAMPLE, "navigation.home") == "Home"
        assert get_value(SAMPLE, "items[1]") == {"label": "Second"}
        assert get_value(SAMPLE, "matrix[1][0]") == "c"

    def test_falsy_values(self):
        assert get_value(SAMPLE, "enabled") is False
        assert get_value(SAMPLE, "nothing") is None
        assert key_exists(SAMPLE, "nothing")

    def test_absent(self):
        assert get_value(SAMPLE, "navigation.contact") is NOT_FOUND
        assert get_value(SAMPLE, "items[5].label") is NOT_FOUND
        assert get_value(SAMPLE, "count.value") is NOT_FOUND
        assert not key_exists(SAMPLE, "missing")

    def test_kind_mismatch(self):
        assert get_value(SAMPLE, "navigation[0]") is NOT_FOUND
        assert get_value({"items": ["a"]}, "items.x") is NOT_FOUND

    def test_malformed_reads_as_not_found(self):
        assert get_value(SAMPLE, "a..b") is NOT_FOUND

    def test_dotted_numeric_resolution(self):
        assert get_value({"items": ["a", "b"]}, "items.1", Dialect.DOTTED) == "b"
        assert get_value({"codes": {"404": "Not found"}}, "codes.404", Dialect.DOTTED) == "Not found"

    def test_not_found_is_falsy_singleton(self):
        assert not NOT_FOUND
        assert copy.copy(NOT_FOUND) is NOT_FOUND
        assert repr(NOT_FOUND) == "NOT_FOUND"


class TestSetValue:
    """Tests for writes."""

    def test_creates_intermediate_dicts(self):
        root = set_value({}, "a.b.c", "x")
        assert root == {"a": {"b": {"c": "x"}}}

    def test_array_reconstruction(self):
        root = set_value({}, "items[0]", "first")
        root = set_value(root, "items[1]", "second")
        assert root == {"items": ["first", "second"]}
        assert isinstance(root["items"], list)

    def test_dotted_creates_lists(self):
        root = set_value({}, "items.0.label", "x", Dialect.DOTTED)
        assert root == {"items": [{"label": "x"}]}

    def test_dotted_numeric_into_existing_dict(self):
        root = set_value({"codes": {"200": "OK"}}, "codes.404", "Not found", Dialect.DOTTED)
        assert root == {"codes": {"200": "OK", "404": "Not found"}}

    def test_overwrite(self):
        root = {"a": "old"}
        assert set_value(root, "a", "new") is root
        assert root == {"a": "new"}

    def test_sparse_list(self):
        root = set_value({}, "items[0]", "a")
        root = set_value(root, "items[100]", "b")
        assert len(root["items"]) == 101
        assert root["items"][50] is HOLE
        assert get_value(root, "items[50]") is NOT_FOUND
        assert get_all_keys(root) == ["items[0]", "items[100]"]

    def test_holes_serialize_as_null(self, tmp_path):
        from jsontrans_llms.locales import save_tree

        root = set_value({}, "items[2]", "c")
        path = save_tree(tmp_path / "out.json", root)
        assert json.loads(path.read_text(encoding="utf-8")) == {"items": [None, None, "c"]}

    def test_index_through_dict_is_destructive(self):
        root = {"list": {"foo": "bar"}}
        root = set_value(root, "list[0]", "x")
        assert root == {"list": ["x"]}

    def test_name_through_scalar_replaces_it(self):
        root = set_value({"a": "text"}, "a.b", "x")
        assert root == {"a": {"b": "x"}}

    def test_root_is_replaced(self):
        assert set_value({"a": 1}, "[0]", "x") == ["x"]
        assert set_value(["a"], "name", "x") == {"name": "x"}
        assert set_value(None, "a", "x") == {"a": "x"}

    def test_read_after_write(self):
        root = {}
        for text, value in [("a.b", 1), ("a.c[2].d", "x"), ("e[0][1]", None)]:
            root = set_value(root, text, value)
            assert get_value(root, text) == value

    def test_write_leaves_other_keys(self):
        root = copy.deepcopy(SAMPLE)
        root = set_value(root, "navigation.contact", "Contact")
        for path in enumerate_keys(SAMPLE):
            assert get_value(root, path) == get_value(SAMPLE, path)

    def test_enumerate_then_rebuild(self):
        rebuilt = None
        for path in enumerate_keys(SAMPLE):
            rebuilt = set_value(rebuilt, path, get_value(SAMPLE, path))
        for path in enumerate_keys(SAMPLE):
            assert get_value(rebuilt, path) == get_value(SAMPLE, path)

    def test_accepts_keypath(self):
        path = parse_path("items.0", Dialect.DOTTED)
        assert set_value({}, path, "x") == {"items": ["x"]}

    def test_malformed_path_raises(self):
        with pytest.raises(MalformedPathError):
            set_value({}, "a..b", "x")


class TestCircularRoot:
    """A root object that refers to itself."""

    def test_self_reference(self):
        circular = {"name": "x"}
        circular["self"] = circular
        with pytest.raises(CyclicStructureError):
            enumerate_keys(circular)
