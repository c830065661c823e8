"""
Unit tests for core/tree_invariants.py - well-formedness checks

Each invariant is exercised against the sample journey (valid) and a
hand-built malformed tree (invalid).
"""
import pytest
import rustworkx as rx

from core.schemas import JourneyNode, BranchEntry
from core.mutations import MalformedTreeError
from core.tree_invariants import (
    TreeInvariants,
    InvariantSeverity,
    build_graph,
    validate_tree,
    is_well_formed,
    get_tree_metrics,
)


def _leaf(node_id: str) -> JourneyNode:
    return JourneyNode(id=node_id, kind="action", children=[])


# =============================================================================
# GRAPH CONSTRUCTION
# =============================================================================

def test_build_graph_mirrors_tree(sample_tree):
    """
    Validate the rustworkx view has one node per tree node and one edge per relation.
    """
    graph, root_idx = build_graph(sample_tree)
    assert graph.num_nodes() == 8
    assert graph.num_edges() == 7
    assert graph[root_idx] is sample_tree
    assert rx.is_directed_acyclic_graph(graph)


# =============================================================================
# INDIVIDUAL INVARIANTS
# =============================================================================

def test_unique_ids_valid(sample_tree):
    valid, violation = TreeInvariants.validate_unique_ids(sample_tree)
    assert valid
    assert violation is None


def test_duplicate_ids_detected():
    """
    Validate two distinct nodes sharing an id are reported.
    """
    tree = JourneyNode(id="r", kind="action", children=[_leaf("x"), _leaf("x")])
    valid, violation = TreeInvariants.validate_unique_ids(tree)
    assert not valid
    assert violation.severity == InvariantSeverity.ERROR
    assert "x" in violation.nodes_involved


def test_branch_with_children_detected():
    """
    Validate a branch node populating `children` violates the fan-out rule.
    """
    tree = JourneyNode(
        id="b",
        kind="branch",
        children=[],
        branches=[BranchEntry(label="Yes", node=_leaf("y"))],
    )
    valid, violation = TreeInvariants.validate_fanout_matches_kind(tree)
    assert not valid
    assert violation.invariant == "fanout_matches_kind"
    assert "b" in violation.nodes_involved


def test_action_with_branches_detected():
    tree = JourneyNode(id="a", kind="action", children=[], branches=[])
    valid, violation = TreeInvariants.validate_fanout_matches_kind(tree)
    assert not valid


def test_action_without_children_detected():
    tree = JourneyNode(id="a", kind="action")
    valid, _ = TreeInvariants.validate_fanout_matches_kind(tree)
    assert not valid


def test_unknown_kind_detected():
    tree = JourneyNode(id="a", kind="webhook", children=[])
    valid, violation = TreeInvariants.validate_fanout_matches_kind(tree)
    assert not valid
    assert "unknown kind" in violation.message


def test_shared_subtree_detected():
    """
    Validate one node object owned by two parents breaks the strict tree rule.
    """
    shared = _leaf("s")
    tree = JourneyNode(
        id="r",
        kind="action",
        children=[
            JourneyNode(id="a", kind="action", children=[shared]),
            JourneyNode(id="b", kind="action", children=[shared]),
        ],
    )
    valid, violation = TreeInvariants.validate_strict_tree(tree)
    assert not valid
    assert "s" in violation.nodes_involved


def test_cycle_detected():
    """
    Validate a node that owns its own ancestor is reported, without looping forever.
    """
    root = JourneyNode(id="r", kind="action", children=[])
    child = JourneyNode(id="c", kind="action", children=[root])
    root.children.append(child)

    valid, violation = TreeInvariants.validate_strict_tree(root)
    assert not valid
    assert "Cycle" in violation.message

    report = validate_tree(root)
    assert not report.valid
    assert report.metrics["max_depth"] is None


def test_empty_branch_detected():
    """
    Validate a branch node with zero paths is contract-fatal.
    """
    tree = JourneyNode(id="r", kind="action", children=[
        JourneyNode(id="b", kind="branch", branches=[]),
    ])
    valid, violation = TreeInvariants.validate_branches_nonempty(tree)
    assert not valid
    assert violation.severity == InvariantSeverity.ERROR
    assert violation.nodes_involved == ["b"]


# =============================================================================
# FULL REPORT
# =============================================================================

def test_validate_all_on_sample(sample_tree):
    """
    Validate the sample journey passes and metrics are computed.

    Verifies:
    - report.valid is True with no violations
    - node/edge/depth/branch/leaf metrics
    """
    report = TreeInvariants.validate_all(sample_tree)
    assert report.valid
    assert report.violations == []
    assert report.metrics == {
        "node_count": 8,
        "edge_count": 7,
        "branch_count": 1,
        "leaf_count": 4,
        "max_depth": 3,
    }


def test_validate_all_collects_errors():
    tree = JourneyNode(id="r", kind="action", children=[_leaf("r")])
    report = validate_tree(tree)
    assert not report.valid
    assert [v.invariant for v in report.errors] == ["unique_ids"]
    assert report.warnings == []


def test_validate_all_raise_on_error():
    """
    Validate raise_on_error turns the first ERROR into MalformedTreeError.
    """
    tree = JourneyNode(id="b", kind="branch", branches=[])
    with pytest.raises(MalformedTreeError):
        TreeInvariants.validate_all(tree, raise_on_error=True)


def test_convenience_helpers(sample_tree, two_level_tree):
    assert is_well_formed(sample_tree)
    assert is_well_formed(two_level_tree)
    assert get_tree_metrics(two_level_tree)["leaf_count"] == 2
