"""
Unit tests for core/schemas.py - Tree Model node shapes

Tests:
- JourneyNode fan-out helpers
- IdGenerator monotonicity and seeding
- Factories produce well-formed nodes
- clone_tree produces an unaliased deep copy
- Builtins conversion
"""
import pytest
import msgspec

from core.ontology import NodeKind
from core.schemas import (
    JourneyNode,
    BranchEntry,
    IdGenerator,
    make_leaf,
    make_node,
    clone_tree,
    tree_from_builtins,
    tree_to_builtins,
    sample_journey,
)
from core.tree_invariants import is_well_formed


# =============================================================================
# JOURNEYNODE TESTS
# =============================================================================

def test_fanout_for_action_node(two_level_tree):
    """
    Validate fanout() returns plain children for non-branch nodes.

    Verifies:
    - Order matches the children list
    - Node is not a leaf
    """
    assert [n.id for n in two_level_tree.fanout()] == ["A", "B"]
    assert not two_level_tree.is_leaf()
    assert not two_level_tree.is_branch


def test_fanout_for_branch_node(sample_tree):
    """
    Validate fanout() returns branch targets in branch order.
    """
    branch = sample_tree.children[0]
    assert branch.is_branch
    assert [n.id for n in branch.fanout()] == ["n3", "n6"]


def test_walk_is_preorder(sample_tree):
    """
    Validate walk() visits nodes depth-first, parents before children.
    """
    assert [n.id for n in sample_tree.walk()] == ["n1", "n2", "n3", "n4", "n5", "n6", "n7", "n8"]


def test_properties_absent_vs_empty():
    """
    Validate a missing property key is distinct from an empty string.
    """
    node = JourneyNode(id="x", kind="action", children=[], properties={"subtitle": ""})
    assert node.get_property("subtitle") == ""
    assert node.get_property("condition") is None
    assert "condition" not in node.properties


def test_branch_without_entries_is_leaf():
    """
    Validate a branch node with zero paths reports itself as a leaf.
    """
    node = JourneyNode(id="b", kind="branch", branches=[])
    assert node.is_leaf()
    assert node.fanout() == []


# =============================================================================
# ID GENERATOR TESTS
# =============================================================================

def test_id_generator_is_monotonic():
    """
    Validate ids are handed out in increasing order and never repeat.
    """
    ids = IdGenerator()
    produced = [ids.next_id() for _ in range(5)]
    assert produced == ["n1", "n2", "n3", "n4", "n5"]
    assert len(set(produced)) == 5


def test_id_generator_after_tree(sample_tree):
    """
    Validate IdGenerator.after() starts past the highest numeric id.
    """
    ids = IdGenerator.after(sample_tree)
    assert ids.peek == 9
    assert ids.next_id() == "n9"


def test_id_generator_reserve_ignores_non_numeric_ids(two_level_tree):
    """
    Validate reserve() leaves the counter alone when no id looks like n<k>.
    """
    ids = IdGenerator(start=3)
    ids.reserve(two_level_tree)
    assert ids.next_id() == "n3"


def test_id_generator_never_moves_backwards(sample_tree):
    """
    Validate reserving a tree with lower ids does not rewind the counter.
    """
    ids = IdGenerator(start=50)
    ids.reserve(sample_tree)
    assert ids.next_id() == "n50"


# =============================================================================
# FACTORY TESTS
# =============================================================================

def test_make_leaf_defaults():
    """
    Validate make_leaf creates an action with empty children and no branches.
    """
    leaf = make_leaf(IdGenerator())
    assert leaf.id == "n1"
    assert leaf.kind == NodeKind.ACTION.value
    assert leaf.title == "New action"
    assert leaf.children == []
    assert leaf.branches is None
    assert leaf.properties == {}


def test_make_leaf_rejects_branch():
    """
    Validate a branch cannot be created as a leaf.
    """
    with pytest.raises(ValueError):
        make_leaf(IdGenerator(), kind=NodeKind.BRANCH.value)


def test_make_node_branch_has_one_path():
    """
    Validate a brand-new branch node starts with exactly one "Yes" path.

    Verifies:
    - children is None
    - one BranchEntry labeled "Yes" with a fresh action leaf
    - the result passes every invariant
    """
    node = make_node(IdGenerator(), kind=NodeKind.BRANCH.value)
    assert node.children is None
    assert len(node.branches) == 1
    assert node.branches[0].label == "Yes"
    assert node.branches[0].node.kind == NodeKind.ACTION.value
    assert node.branches[0].node.id != node.id
    assert is_well_formed(node)


def test_make_node_trigger_with_properties():
    node = make_node(IdGenerator(), kind="trigger", properties={"subtitle": "Door opens"})
    assert node.title == "New trigger"
    assert node.properties == {"subtitle": "Door opens"}
    assert node.children == []


# =============================================================================
# COPY / CONVERSION TESTS
# =============================================================================

def test_clone_tree_is_equal_but_unaliased(sample_tree):
    """
    Validate clone_tree produces an equal tree that shares no objects.

    Verifies:
    - Value equality
    - Node, list and dict objects are all distinct
    - Editing the clone does not affect the source
    """
    copy = clone_tree(sample_tree)
    assert copy == sample_tree
    assert copy is not sample_tree

    originals = {id(n) for n in sample_tree.walk()}
    assert not any(id(n) in originals for n in copy.walk())
    assert copy.children is not sample_tree.children
    assert copy.properties is not sample_tree.properties

    copy.children[0].branches[0].node.title = "Changed"
    assert sample_tree.children[0].branches[0].node.title == "Offer experiment"


def test_clone_tree_keeps_none_fanout(sample_tree):
    """
    Validate the unused fan-out field survives a clone as None, not [].
    """
    copy = clone_tree(sample_tree)
    assert copy.branches is None
    assert copy.children[0].children is None


def test_clone_tree_keeps_empty_string_property():
    node = JourneyNode(id="x", kind="action", children=[], properties={"subtitle": ""})
    assert clone_tree(node).properties == {"subtitle": ""}


def test_builtins_conversion():
    """
    Validate plain dict data converts to a struct tree and back.
    """
    data = {
        "id": "r",
        "kind": "branch",
        "title": "Decide",
        "branches": [
            {"label": "Yes", "node": {"id": "a", "kind": "action", "title": "Go", "children": []}},
        ],
    }
    tree = tree_from_builtins(data)
    assert isinstance(tree.branches[0], BranchEntry)
    assert tree.branches[0].node.title == "Go"
    assert tree.children is None

    back = tree_to_builtins(tree)
    assert back["branches"][0]["label"] == "Yes"
    assert "children" not in back


def test_builtins_conversion_rejects_bad_types():
    """
    Validate strict decoding: a non-string title is a ValidationError.
    """
    with pytest.raises(msgspec.ValidationError):
        tree_from_builtins({"id": "r", "kind": "action", "title": 5, "children": []})


def test_sample_journey_is_well_formed():
    tree = sample_journey()
    assert tree.id == "n1"
    assert tree.kind == NodeKind.TRIGGER.value
    assert is_well_formed(tree)
