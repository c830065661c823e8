"""
JOURNEYMAP ONTOLOGY - The Dictionary of the Journey Tree

If schemas.py is the Grammar (how nodes are structured),
ontology.py is the Dictionary (the words a journey is made of).

This module defines:
- NodeKind: The closed set of step kinds (trigger, action, branch)
- SlotKind: Where a node sits inside its parent's fan-out
- Fan-out rules: Which fan-out field each kind owns
- Default titles and path labels used when the editor creates nodes

Key Principle: The kind decides the SHAPE of the fan-out.
A branch fans out into labeled paths; everything else has plain children.
"""
from typing import Dict, Tuple
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class NodeKind(str, Enum):
    """Kinds of steps in a journey."""
    TRIGGER = "trigger"              # Entry event that starts the journey
    ACTION = "action"                # Something the journey does
    BRANCH = "branch"                # Decision with labeled alternative paths


class SlotKind(str, Enum):
    """Discriminator for a node's position inside its parent."""
    CHILD = "child"                  # Index into parent.children
    BRANCH = "branch"                # Index into parent.branches


# =============================================================================
# FAN-OUT RULES
# =============================================================================

CHILDREN_FIELD = "children"
BRANCHES_FIELD = "branches"

ALL_KINDS: Tuple[str, ...] = tuple(k.value for k in NodeKind)


def fanout_field(kind: str) -> str:
    """Return the name of the fan-out field owned by a node kind."""
    if kind == NodeKind.BRANCH.value:
        return BRANCHES_FIELD
    return CHILDREN_FIELD


def is_valid_kind(kind: str) -> bool:
    return kind in ALL_KINDS


# =============================================================================
# DEFAULTS (What the editor creates)
# =============================================================================

DEFAULT_TITLES: Dict[str, str] = {
    NodeKind.TRIGGER.value: "New trigger",
    NodeKind.ACTION.value: "New action",
    NodeKind.BRANCH.value: "New branch",
}

# Labels used when an action/trigger is retyped into a branch
YES_LABEL = "Yes"
NO_LABEL = "No"
YES_PATH_TITLE = "Yes path"
NO_PATH_TITLE = "No path"

# Title of the single path a brand-new branch node starts with
BRANCH_PATH_TITLE = "Branch path"


def path_label(existing_paths: int) -> str:
    """Label for a path appended to a branch that already has N paths."""
    return f"Path {existing_paths + 1}"


# =============================================================================
# PROPERTY KEYS
# =============================================================================

class PropertyKey(str, Enum):
    """Well-known keys of the open properties map."""
    SUBTITLE = "subtitle"
    CONDITION = "condition"          # Only editable on branch nodes


__all__ = [
    "NodeKind",
    "SlotKind",
    "PropertyKey",
    "CHILDREN_FIELD",
    "BRANCHES_FIELD",
    "ALL_KINDS",
    "fanout_field",
    "is_valid_kind",
    "DEFAULT_TITLES",
    "YES_LABEL",
    "NO_LABEL",
    "YES_PATH_TITLE",
    "NO_PATH_TITLE",
    "BRANCH_PATH_TITLE",
    "path_label",
]
