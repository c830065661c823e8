"""
JOURNEYMAP CORE - Central exports for the journey tree.

This module provides access to:
- Tree model (JourneyNode, BranchEntry, IdGenerator) and indexing
- Mutation engine (add_child, delete_node, update_field, retype)
- Layout engine (compute_layout, subtree_width)
- The editing session (JourneyEditor)
"""

from core.ontology import NodeKind, SlotKind, PropertyKey
from core.schemas import (
    JourneyNode,
    BranchEntry,
    IdGenerator,
    make_leaf,
    make_node,
    clone_tree,
    sample_journey,
)
from core.tree_index import (
    TreeIndex,
    ParentInfo,
    ParentSlot,
    build_indices,
)
from core.mutations import (
    JourneyError,
    MalformedTreeError,
    add_child,
    delete_node,
    update_field,
    set_title,
    set_property,
    clear_property,
    relabel_branch,
    retype,
)
from core.layout import (
    LayoutConfig,
    Layout,
    Box,
    Edge,
    compute_layout,
    subtree_width,
)
from core.editor import JourneyEditor

__all__ = [
    # Tree model
    "NodeKind",
    "SlotKind",
    "PropertyKey",
    "JourneyNode",
    "BranchEntry",
    "IdGenerator",
    "make_leaf",
    "make_node",
    "clone_tree",
    "sample_journey",
    "TreeIndex",
    "ParentInfo",
    "ParentSlot",
    "build_indices",
    # Mutations
    "JourneyError",
    "MalformedTreeError",
    "add_child",
    "delete_node",
    "update_field",
    "set_title",
    "set_property",
    "clear_property",
    "relabel_branch",
    "retype",
    # Layout
    "LayoutConfig",
    "Layout",
    "Box",
    "Edge",
    "compute_layout",
    "subtree_width",
    # Session
    "JourneyEditor",
]
