import pytest

from mindmesh.errors import (
    DanglingParent, DuplicateId, InvariantViolation, NotFound, RootExists
)
from mindmesh.tree import EMPTY_TREE, Node, Position, Tree
from tests.conftest import node


def test_from_nodes_rejects_duplicate_ids():
    with pytest.raises(DuplicateId):
        Tree.from_nodes([node("r"), node("r")])


def test_insert_returns_new_snapshot(root_tree):
    grown = root_tree.insert(node("c", "r"))
    assert "c" in grown
    assert "c" not in root_tree
    assert len(root_tree) == 1


def test_insert_rejects_missing_parent(root_tree):
    with pytest.raises(DanglingParent) as info:
        root_tree.insert(node("c", "ghost"))
    assert info.value.parent_id == "ghost"


def test_insert_rejects_duplicate_id(root_tree):
    with pytest.raises(DuplicateId):
        root_tree.insert(node("r"))


def test_insert_rejects_second_root(root_tree):
    with pytest.raises(RootExists):
        root_tree.insert(node("other"))


def test_first_node_becomes_root():
    tree = EMPTY_TREE.insert(node("r"))
    assert tree.root.id == "r"


def test_update_replaces_content(sample_tree):
    updated = sample_tree.update("a", "changed")
    assert updated.node("a").content == "changed"
    assert sample_tree.node("a").content == "A"


def test_update_with_same_content_is_identity(sample_tree):
    assert sample_tree.update("a", "A") is sample_tree


def test_update_missing_node(sample_tree):
    with pytest.raises(NotFound):
        sample_tree.update("ghost", "x")


def test_children_ordered_by_order_then_id():
    tree = Tree.from_nodes([
        node("r"), node("z", "r", 0), node("b", "r", 1), node("a", "r", 1),
    ])
    assert [n.id for n in tree.children_of("r")] == ["z", "a", "b"]
    assert [n.id for n in tree.siblings_of("b")] == ["z", "a", "b"]


def test_descendant_ids_is_full_closure(sample_tree):
    closure = sample_tree.descendant_ids("a")
    assert closure[0] == "a"
    assert sorted(closure) == ["a", "a1", "a2"]


def test_descendant_ids_handles_deep_chains():
    nodes = [node("n0")] + [node(f"n{i}", f"n{i - 1}") for i in range(1, 5000)]
    tree = Tree.from_nodes(nodes)
    assert len(tree.descendant_ids("n0")) == 5000


def test_remove_subtree_removes_exactly_the_closure(sample_tree):
    pruned = sample_tree.remove_subtree("a")
    assert sorted(n.id for n in pruned) == ["b", "r"]
    assert pruned.problems() == []


def test_remove_root_clears_tree(sample_tree):
    assert len(sample_tree.remove_subtree("r")) == 0


def test_remove_missing_node(sample_tree):
    with pytest.raises(NotFound):
        sample_tree.remove_subtree("ghost")


def test_shift_siblings_only_touches_orders_at_or_above(sample_tree):
    shifted = sample_tree.shift_siblings("r", 1)
    assert shifted.node("a").order == 0
    assert shifted.node("b").order == 2
    assert shifted.node("a1").order == 0


def test_to_list_puts_parents_first(sample_tree):
    ids = [n.id for n in sample_tree.to_list()]
    assert ids == ["r", "a", "a1", "a2", "b"]


def test_ancestors_of(sample_tree):
    assert sample_tree.ancestors_of("a2") == ["a", "r"]
    assert sample_tree.ancestors_of("r") == []


def test_problems_reports_broken_trees():
    tree = Tree({
        "r": node("r"),
        "a": node("a", "r", 0),
        "b": node("b", "r", 0),
        "x": node("x", "y"),
        "y": node("y", "x"),
    })
    found = tree.problems()
    assert any("duplicate order" in p for p in found)
    assert any("cycle" in p for p in found)
    with pytest.raises(InvariantViolation):
        tree.validate()


def test_problems_reports_dangling_parent():
    tree = Tree({"r": node("r"), "c": node("c", "gone")})
    assert any("dangling parent" in p for p in tree.problems())


def test_sound_tree_validates(sample_tree):
    assert sample_tree.validate() is sample_tree


def test_node_wire_shape():
    n = Node(id="c", content="hi", parent_id="r", position=Position(1.5, -2.0), order=3)
    data = n.to_dict()
    assert data == {
        "id": "c", "content": "hi", "parentId": "r",
        "position": {"x": 1.5, "y": -2.0}, "order": 3,
    }
    assert Node.from_dict(data) == n


def test_node_from_dict_defaults():
    n = Node.from_dict({"id": "r"})
    assert n.is_root
    assert n.content == ""
    assert n.position == Position(0.0, 0.0)
