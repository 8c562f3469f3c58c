"""Tests for the in-memory tag forest."""
from tagging_service.db.models import Tag
from tagging_service.services.tag_tree import TagTree


def _tag(id, name, parent_id=None):
    return Tag(id=id, name=name, parent_id=parent_id, organization_id="org", created_by="u")


def build_tree():
    return TagTree(
        [
            _tag("r", "Root"),
            _tag("b", "Beta", "r"),
            _tag("a", "Alpha", "r"),
            _tag("a1", "Alpha One", "a"),
            _tag("x", "Unrelated"),
        ]
    )


def test_path_from_root():
    assert [t.id for t in build_tree().path("a1")] == ["r", "a", "a1"]


def test_path_unknown_tag_is_empty():
    assert build_tree().path("missing") == []


def test_descendants_depth_first_in_name_order():
    assert [t.id for t in build_tree().descendants("r")] == ["a", "a1", "b"]


def test_descendants_of_leaf_is_empty():
    assert build_tree().descendants("a1") == []


def test_children_of_root_level():
    assert [t.id for t in build_tree().children_of(None)] == ["r", "x"]


def test_is_descendant():
    tree = build_tree()
    assert tree.is_descendant("a1", "r")
    assert not tree.is_descendant("r", "a1")
    assert not tree.is_descendant("r", "r")
    assert not tree.is_descendant("x", "r")


def test_stored_cycle_does_not_loop():
    tree = TagTree([_tag("p", "P", "q"), _tag("q", "Q", "p")])

    assert [t.id for t in tree.path("p")] == ["q", "p"]
    assert [t.id for t in tree.descendants("p")] == ["q"]
