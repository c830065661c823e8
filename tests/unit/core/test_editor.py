"""
Unit tests for core/editor.py - JourneyEditor session

Tests selection handling, publishing, derived-state caching and
change notification.
"""
import pytest

from core.ontology import NodeKind
from core.editor import JourneyEditor
from core.mutations import MalformedTreeError
from core.schemas import IdGenerator, JourneyNode


# =============================================================================
# SELECTION
# =============================================================================

def test_selection_defaults_to_root(editor):
    assert editor.selected_id == "n1"
    assert editor.selected_node.title == "Trigger event"


def test_select_unknown_is_ignored(editor):
    assert editor.select("n5")
    assert not editor.select("ghost")
    assert editor.selected_id == "n5"


def test_default_tree_is_sample():
    editor = JourneyEditor()
    assert editor.root_id == "n1"
    assert len(editor.index) == 8


def test_intents_target_selection(editor):
    """
    Validate intents without an id act on the selected node.
    """
    editor.select("n2")
    assert editor.add_child()
    labels = [b.label for b in editor.tree.children[0].branches]
    assert labels == ["Yes", "No", "Path 3"]


def test_delete_selected_falls_back_to_root(editor):
    """
    Validate deleting the selected node moves the selection to the root.
    """
    editor.select("n6")
    assert editor.delete_node()
    assert editor.selected_id == "n1"


def test_delete_ancestor_of_selection_falls_back_to_root(editor):
    editor.select("n8")
    editor.delete_node("n6")
    assert editor.selected_id == "n1"


def test_delete_other_node_keeps_selection(editor):
    editor.select("n3")
    editor.delete_node("n7")
    assert editor.selected_id == "n3"


def test_delete_root_is_noop(editor):
    tree = editor.tree
    assert not editor.delete_node("n1")
    assert editor.tree is tree


# =============================================================================
# PUBLISHING
# =============================================================================

def test_publish_replaces_tree_and_keeps_old_layout_valid(editor):
    """
    Validate copy-on-write publishing: the old tree and its layout are untouched.
    """
    old_tree, old_layout = editor.tree, editor.layout
    editor.add_child("n4")

    assert editor.tree is not old_tree
    assert "n9" in editor.index
    assert "n9" not in old_layout.boxes
    assert "n9" in editor.layout.boxes
    assert len(old_tree.children[0].branches[0].node.children[0].children) == 0


def test_derived_state_is_cached_per_tree(editor):
    assert editor.index is editor.index
    assert editor.layout is editor.layout
    editor.set_title("Renamed", "n4")
    assert editor.index.get("n4").title == "Renamed"


def test_listeners_called_on_publish_only(editor):
    seen = []
    editor.subscribe(seen.append)

    editor.add_child("n1")
    editor.delete_node("n1")        # no-op
    editor.add_child("ghost")       # no-op

    assert seen == [editor.tree]

    editor.unsubscribe(seen.append)
    editor.add_child("n1")
    assert len(seen) == 1


def test_failing_listener_does_not_block_publish(editor):
    def broken(tree):
        raise RuntimeError("boom")

    editor.subscribe(broken)
    assert editor.add_child("n1")
    assert len(editor.tree.children) == 2


def test_field_intents(editor):
    editor.set_property("condition", "visits > 3", "n2")
    assert editor.index.get("n2").properties["condition"] == "visits > 3"

    editor.clear_property("subtitle", "n2")
    assert "subtitle" not in editor.index.get("n2").properties

    editor.relabel_branch("Member", "n3")
    assert editor.tree.children[0].branches[0].label == "Member"

    editor.update_field(lambda n: n.properties.update({"subtitle": "x"}), "n5")
    assert editor.index.get("n5").get_property("subtitle") == "x"


def test_retype_intent_uses_session_ids(editor):
    """
    Validate retype allocates ids from the editor's generator.
    """
    editor.retype(NodeKind.BRANCH, "n4")
    n4 = editor.index.get("n4")
    assert [b.node.id for b in n4.branches] == ["n9", "n10"]


def test_validation_rejects_malformed_initial_tree():
    bad = JourneyNode(id="r", kind="branch", branches=[])
    with pytest.raises(MalformedTreeError):
        JourneyEditor(bad, validate_after_mutation=True)


def test_explicit_id_generator_is_advanced(sample_tree):
    """
    Validate a supplied generator is moved past existing ids.
    """
    editor = JourneyEditor(sample_tree, ids=IdGenerator(start=1))
    editor.add_child("n1")
    assert editor.tree.children[1].id == "n9"


def test_events_are_recorded(editor, events):
    editor.add_child("n1")
    editor.delete_node("n1")
    types = [e.mutation_type for e in events.get_recent_events()]
    assert types == ["NODE_CREATED", "NOOP"]


def test_snapshot_reflects_selection(editor):
    editor.select("n3")
    snapshot = editor.snapshot()
    selected = [n.id for n in snapshot.nodes if n.selected]
    assert selected == ["n3"]
    assert snapshot.node_count == 8


def test_from_config(sample_tree):
    config = {
        "layout": {"node_width": 100.0, "sibling_gap": 10.0},
        "editor": {"validate_after_mutation": True},
        "mutation_log": {"buffer_size": 5},
    }
    editor = JourneyEditor.from_config(sample_tree, config)
    assert editor.layout_config.node_width == 100.0
    assert editor.validate_after_mutation
    assert editor.layout.total_width == 4 * 100 + 3 * 10
    editor.add_child("n1")
    assert len(editor.events) == 1


# =============================================================================
# REJECTED EDITS AND VIEWPORT
# =============================================================================

def test_update_field_cannot_add_duplicate_node(editor, events):
    """
    Validate a field mutator that grows the fan-out is rejected before publishing.
    """
    tree = editor.tree

    def mutator(node):
        node.children.append(JourneyNode(id="n4", kind="action", children=[]))

    with pytest.raises(MalformedTreeError):
        editor.update_field(mutator, "n1")
    assert editor.tree is tree
    assert len(events) == 0


def test_rejected_edit_leaves_no_trail(events):
    """
    Validate events of an edit that fails post-mutation validation are dropped.

    Verifies:
    - MalformedTreeError propagates
    - The current tree is unchanged
    - Nothing reaches the edit trail
    """
    bad = JourneyNode(id="r", kind="action", children=[
        JourneyNode(id="b", kind="branch", branches=[]),
    ])
    editor = JourneyEditor(bad, events=events)
    editor.validate_after_mutation = True

    with pytest.raises(MalformedTreeError):
        editor.set_title("Renamed", "r")
    assert editor.tree is bad
    assert len(events) == 0


def test_noop_events_are_kept(editor, events):
    editor.retype("trigger", "n1")
    assert [e.reason for e in events.get_recent_events()] == ["same kind"]


def test_center_offset_uses_viewport_margin(sample_tree):
    editor = JourneyEditor(sample_tree, viewport_margin=40.0)
    assert editor.center_offset(900) == 40.0
    assert editor.center_offset(1200) == 76.0

    snapshot = editor.snapshot(viewport_width=1200)
    assert snapshot.offset_x == 76.0
    assert snapshot.nodes[0].box.x == 414.0 + 76.0


def test_viewport_margin_from_config(sample_tree):
    editor = JourneyEditor.from_config(sample_tree, {"editor": {"viewport_margin": 10.0}})
    assert editor.viewport_margin == 10.0
    assert editor.center_offset(500) == 10.0
