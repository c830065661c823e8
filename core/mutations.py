"""
JOURNEYMAP MUTATIONS - The Structural Edit Engine

Every edit follows the same copy-on-write cycle:

    clone_tree(current) -> build_indices(copy) -> apply ONE edit -> return copy

The tree passed in is never touched, so layouts and indices computed over
it stay valid. When the target id does not resolve (or the edit is refused)
the ORIGINAL tree object is returned, which lets callers detect a no-op
with an identity check.

Operations:
- add_child:      append an action leaf (or a new labeled path on a branch)
- delete_node:    remove a node and its whole subtree from its parent slot
- update_field:   arbitrary in-place edit of title/properties
- relabel_branch: rename the path leading to a node
- retype:         switch kind, reshaping the fan-out to match

Error Policy:
- Unknown target ids are silent no-ops (stale ids are normal in a UI)
- Deleting the root is a no-op, never an exception
- Edits that would break the fan-out/kind invariant raise MalformedTreeError
"""
import logging
from typing import Callable, Optional, Union, TYPE_CHECKING

from core.ontology import (
    NodeKind,
    SlotKind,
    YES_LABEL,
    NO_LABEL,
    YES_PATH_TITLE,
    NO_PATH_TITLE,
    path_label,
)
from core.schemas import (
    JourneyNode,
    BranchEntry,
    IdGenerator,
    make_leaf,
    clone_tree,
)
from core.tree_index import ParentInfo, build_indices, subtree_ids

if TYPE_CHECKING:
    from infrastructure.logger import MutationLogger

logger = logging.getLogger(__name__)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class JourneyError(Exception):
    """Base exception for journey tree operations."""
    pass


class MalformedTreeError(JourneyError):
    """Raised when a tree (or an edit) violates a structural invariant."""
    pass


FieldMutator = Callable[[JourneyNode], None]


# =============================================================================
# COPY-ON-WRITE CORE
# =============================================================================

def _apply(
    tree: JourneyNode,
    target_id: str,
    operation: str,
    edit: Callable[[ParentInfo], bool],
    events: Optional["MutationLogger"] = None,
    ids: Optional[IdGenerator] = None,
) -> JourneyNode:
    """
    Clone the tree, resolve target_id on the clone, and run `edit` on it.

    `edit` returns False to refuse the change; in that case (and when the
    id does not resolve) the original tree is returned untouched.

    `ids` is advanced past every id in the tree first, so a fresh or
    foreign generator can never hand out an id that is already taken.
    """
    working = clone_tree(tree)
    if ids is not None:
        ids.reserve(working)
    entry = build_indices(working).lookup(target_id)
    if entry is None:
        logger.debug("%s: node %s not found, ignoring", operation, target_id)
        if events is not None:
            events.log_noop(operation, target_id, "not found")
        return tree

    if not edit(entry):
        return tree

    logger.debug("%s applied to %s", operation, target_id)
    return working


# =============================================================================
# STRUCTURAL OPERATIONS
# =============================================================================

def add_child(
    tree: JourneyNode,
    target_id: str,
    ids: IdGenerator,
    events: Optional["MutationLogger"] = None,
) -> JourneyNode:
    """
    Append a new default action leaf under target_id.

    On a branch node the leaf is wrapped in a new path labeled
    "Path <n+1>", where n is the current number of paths.
    """
    def edit(entry: ParentInfo) -> bool:
        target = entry.node
        new_node = make_leaf(ids)
        if target.is_branch:
            if target.branches is None:
                target.branches = []
            target.branches.append(
                BranchEntry(label=path_label(len(target.branches)), node=new_node)
            )
        else:
            if target.children is None:
                target.children = []
            target.children.append(new_node)

        if events is not None:
            events.log_node_created(new_node.id, new_node.kind, parent_id=target.id)
        return True

    return _apply(tree, target_id, "add_child", edit, events, ids)


def delete_node(
    tree: JourneyNode,
    target_id: str,
    events: Optional["MutationLogger"] = None,
) -> JourneyNode:
    """
    Remove target_id and its entire subtree.

    No-op when target_id is the root, does not resolve, or is the only
    remaining path of a branch node (a branch never drops to zero paths).
    """
    if target_id == tree.id:
        logger.debug("delete_node: refusing to delete root %s", target_id)
        if events is not None:
            events.log_noop("delete_node", target_id, "root")
        return tree

    def edit(entry: ParentInfo) -> bool:
        parent, slot = entry.parent, entry.slot
        if parent is None or slot is None:
            return False

        if slot.kind == SlotKind.CHILD:
            parent.children.pop(slot.index)
        else:
            if len(parent.branches) <= 1:
                logger.info(
                    "delete_node: %s is the last path of branch %s, keeping it",
                    target_id, parent.id,
                )
                if events is not None:
                    events.log_noop("delete_node", target_id, "last branch path")
                return False
            parent.branches.pop(slot.index)

        if events is not None:
            events.log_node_deleted(
                target_id,
                entry.node.kind,
                removed_ids=subtree_ids(entry.node),
                parent_id=parent.id,
            )
        return True

    return _apply(tree, target_id, "delete_node", edit, events)


def _shape(node: JourneyNode) -> tuple:
    """Id, kind and the fan-out objects of a node (held, not copied)."""
    return (
        node.id,
        node.kind,
        node.children,
        node.branches,
        list(node.branches or []),
        node.fanout(),
    )


def _same_shape(before: tuple, after: tuple) -> bool:
    b_id, b_kind, b_children, b_branches, b_entries, b_subs = before
    a_id, a_kind, a_children, a_branches, a_entries, a_subs = after
    return (
        b_id == a_id
        and b_kind == a_kind
        and b_children is a_children
        and b_branches is a_branches
        and len(b_entries) == len(a_entries)
        and all(x is y for x, y in zip(b_entries, a_entries))
        and len(b_subs) == len(a_subs)
        and all(x is y for x, y in zip(b_subs, a_subs))
    )


def update_field(
    tree: JourneyNode,
    target_id: str,
    mutator: FieldMutator,
    events: Optional["MutationLogger"] = None,
) -> JourneyNode:
    """
    Apply an arbitrary in-place edit (title, a properties entry) to a node.

    The mutator runs on the working copy. It must not change the node's
    id, kind or fan-out (the lists themselves and the nodes in them); use
    retype/add_child/delete_node for that. Branch labels may be edited.

    Raises:
        MalformedTreeError: if the mutator changed id, kind or fan-out
    """
    def edit(entry: ParentInfo) -> bool:
        node = entry.node
        before = _shape(node)
        mutator(node)
        if not _same_shape(before, _shape(node)):
            raise MalformedTreeError(
                f"update_field on {target_id} changed identity or fan-out shape; "
                f"use retype or structural operations instead"
            )
        if events is not None:
            events.log_node_updated(node.id, node.kind)
        return True

    return _apply(tree, target_id, "update_field", edit, events)


def set_title(
    tree: JourneyNode,
    target_id: str,
    title: str,
    events: Optional["MutationLogger"] = None,
) -> JourneyNode:
    """Set a node's display title."""
    def mutator(node: JourneyNode) -> None:
        node.title = title
    return update_field(tree, target_id, mutator, events)


def set_property(
    tree: JourneyNode,
    target_id: str,
    key: str,
    value: str,
    events: Optional["MutationLogger"] = None,
) -> JourneyNode:
    """Set one properties entry. An empty string is stored as-is."""
    def mutator(node: JourneyNode) -> None:
        node.properties[key] = value
    return update_field(tree, target_id, mutator, events)


def clear_property(
    tree: JourneyNode,
    target_id: str,
    key: str,
    events: Optional["MutationLogger"] = None,
) -> JourneyNode:
    """Remove a properties entry so the key is absent again."""
    def mutator(node: JourneyNode) -> None:
        node.properties.pop(key, None)
    return update_field(tree, target_id, mutator, events)


def relabel_branch(
    tree: JourneyNode,
    target_id: str,
    label: str,
    events: Optional["MutationLogger"] = None,
) -> JourneyNode:
    """Rename the branch path whose subtree starts at target_id."""
    def edit(entry: ParentInfo) -> bool:
        if entry.slot is None or entry.slot.kind != SlotKind.BRANCH:
            logger.debug("relabel_branch: %s is not in a branch slot", target_id)
            if events is not None:
                events.log_noop("relabel_branch", target_id, "not a branch path")
            return False
        entry.parent.branches[entry.slot.index].label = label
        if events is not None:
            events.log_node_updated(entry.parent.id, entry.parent.kind)
        return True

    return _apply(tree, target_id, "relabel_branch", edit, events)


def retype(
    tree: JourneyNode,
    target_id: str,
    new_kind: Union[NodeKind, str],
    ids: IdGenerator,
    events: Optional["MutationLogger"] = None,
) -> JourneyNode:
    """
    Change a node's kind, reshaping its fan-out.

    -> branch:          children dropped; exactly two fresh paths, Yes and No
    -> trigger/action:  branches dropped (None, not []); children kept or []

    Raises:
        ValueError: if new_kind is not a known NodeKind
    """
    kind = NodeKind(new_kind).value

    def edit(entry: ParentInfo) -> bool:
        node = entry.node
        old_kind = node.kind
        if old_kind == kind:
            logger.debug("retype: %s is already %s", target_id, kind)
            if events is not None:
                events.log_noop("retype", target_id, "same kind")
            return False

        dropped = [n.id for sub in node.fanout() for n in sub.walk()] if (
            kind == NodeKind.BRANCH.value or node.is_branch
        ) else []

        node.kind = kind
        if kind == NodeKind.BRANCH.value:
            node.children = None
            node.branches = [
                BranchEntry(label=YES_LABEL, node=make_leaf(ids, title=YES_PATH_TITLE)),
                BranchEntry(label=NO_LABEL, node=make_leaf(ids, title=NO_PATH_TITLE)),
            ]
        else:
            node.branches = None
            if node.children is None:
                node.children = []

        if events is not None:
            events.log_node_retyped(node.id, old_kind, kind, removed_ids=dropped)
            if node.is_branch:
                for branch in node.branches:
                    events.log_node_created(branch.node.id, branch.node.kind, parent_id=node.id)
        return True

    return _apply(tree, target_id, "retype", edit, events, ids)
