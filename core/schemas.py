"""
JOURNEYMAP SCHEMAS - The Grammar of the Journey Tree

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure sentences).

This module defines the data structures that make up a journey:
- JourneyNode: One step (trigger, action or branch) and its owned fan-out
- BranchEntry: A labeled path owned by a branch node
- IdGenerator: Session-scoped id allocation (never reuses ids)
- Factories and the deep-copy helper used by the mutation engine

Design Principles:
1. STRICT TYPING: msgspec.Struct with no silent type coercion
2. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
3. IMMUTABLE IDS: A node's id is set once and never changes
4. NO BACK-POINTERS: Parents are found through tree_index, never stored
5. FAN-OUT BY KIND: branch -> branches, everything else -> children;
   the unused field is None, never an empty list
"""
import msgspec
import re
from typing import Optional, Dict, Any, List, Iterator

from core.ontology import (
    NodeKind,
    DEFAULT_TITLES,
    YES_LABEL,
    BRANCH_PATH_TITLE,
)


# =============================================================================
# TREE STRUCTURES
# =============================================================================

class JourneyNode(msgspec.Struct, kw_only=True, omit_defaults=True):
    """
    A single step of the journey, owning its whole subtree.

    Architecture Notes:
    - `kind`: NodeKind.value ("trigger", "action", "branch")
    - `properties`: Open string map. A missing key means "never set",
      which is different from an empty string.
    - `children`: Populated only for trigger/action nodes
    - `branches`: Populated only for branch nodes
    """
    # === Identity ===
    id: str
    kind: str = NodeKind.ACTION.value

    # === Content ===
    title: str = ""
    properties: Dict[str, str] = msgspec.field(default_factory=dict)

    # === Fan-out (exactly one is not None) ===
    children: Optional[List["JourneyNode"]] = None
    branches: Optional[List["BranchEntry"]] = None

    @property
    def is_branch(self) -> bool:
        return self.kind == NodeKind.BRANCH.value

    def fanout(self) -> List["JourneyNode"]:
        """Ordered sub-element nodes, whichever fan-out shape this node has."""
        if self.is_branch:
            return [entry.node for entry in (self.branches or [])]
        return list(self.children or [])

    def is_leaf(self) -> bool:
        return not self.fanout()

    def get_property(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.properties.get(key, default)

    def walk(self) -> Iterator["JourneyNode"]:
        """Depth-first pre-order traversal of this subtree."""
        yield self
        for sub in self.fanout():
            yield from sub.walk()


class BranchEntry(msgspec.Struct, kw_only=True):
    """A labeled path of a branch node. Owns exactly one subtree."""
    label: str
    node: JourneyNode


# =============================================================================
# ID GENERATION
# =============================================================================

_NUMERIC_ID = re.compile(r"^n(\d+)$")


class IdGenerator:
    """
    Monotonically increasing session counter producing "n<k>" ids.

    Ids are never derived from content and never handed out twice, even
    after the node that held one is deleted.
    """

    def __init__(self, start: int = 1, prefix: str = "n"):
        self._next = start
        self._prefix = prefix

    @property
    def peek(self) -> int:
        return self._next

    def next_id(self) -> str:
        node_id = f"{self._prefix}{self._next}"
        self._next += 1
        return node_id

    def reserve(self, root: JourneyNode) -> None:
        """Advance past every numeric id already present in a tree."""
        highest = 0
        for node in root.walk():
            match = _NUMERIC_ID.match(node.id)
            if match:
                highest = max(highest, int(match.group(1)))
        self._next = max(self._next, highest + 1)

    @classmethod
    def after(cls, root: JourneyNode) -> "IdGenerator":
        """Create a generator that cannot collide with ids in `root`."""
        ids = cls()
        ids.reserve(root)
        return ids


# =============================================================================
# FACTORIES
# =============================================================================

def make_leaf(
    ids: IdGenerator,
    kind: str = NodeKind.ACTION.value,
    title: Optional[str] = None,
) -> JourneyNode:
    """Create a trigger/action leaf with an empty child list."""
    if kind == NodeKind.BRANCH.value:
        raise ValueError("A branch node cannot be a leaf; use make_node")
    return JourneyNode(
        id=ids.next_id(),
        kind=kind,
        title=title if title is not None else DEFAULT_TITLES[kind],
        children=[],
    )


def make_node(
    ids: IdGenerator,
    kind: str = NodeKind.ACTION.value,
    title: Optional[str] = None,
    properties: Optional[Dict[str, str]] = None,
) -> JourneyNode:
    """
    Create a well-formed node of any kind.

    A new branch node starts with a single "Yes" path so it never
    exists with zero branch entries.
    """
    if kind == NodeKind.BRANCH.value:
        node = JourneyNode(
            id=ids.next_id(),
            kind=kind,
            title=title if title is not None else DEFAULT_TITLES[kind],
            branches=[],
        )
        node.branches.append(
            BranchEntry(label=YES_LABEL, node=make_leaf(ids, title=BRANCH_PATH_TITLE))
        )
    else:
        node = make_leaf(ids, kind=kind, title=title)
    if properties:
        node.properties.update(properties)
    return node


# =============================================================================
# COPYING AND CONVERSION
# =============================================================================

_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder(type=JourneyNode)


def clone_tree(root: JourneyNode) -> JourneyNode:
    """
    Deep copy a tree.

    Goes through a msgspec JSON round trip so the copy shares no lists,
    dicts or nodes with the source.
    """
    return _decoder.decode(_encoder.encode(root))


def tree_from_builtins(data: Dict[str, Any]) -> JourneyNode:
    """Build a tree from plain dict/list data. Raises msgspec.ValidationError."""
    return msgspec.convert(data, type=JourneyNode)


def tree_to_builtins(root: JourneyNode) -> Dict[str, Any]:
    """Convert a tree to plain dict/list data (None fan-out fields omitted)."""
    return msgspec.to_builtins(root)


# =============================================================================
# SAMPLE JOURNEY
# =============================================================================

def _action(node_id: str, title: str, subtitle: Optional[str] = None, children=None) -> JourneyNode:
    properties = {"subtitle": subtitle} if subtitle is not None else {}
    return JourneyNode(
        id=node_id,
        kind=NodeKind.ACTION.value,
        title=title,
        properties=properties,
        children=children or [],
    )


def sample_journey() -> JourneyNode:
    """The stock in-store loyalty journey used by demos and tests."""
    return JourneyNode(
        id="n1",
        kind=NodeKind.TRIGGER.value,
        title="Trigger event",
        properties={"subtitle": "Connect to in-store Wi-Fi"},
        children=[
            JourneyNode(
                id="n2",
                kind=NodeKind.BRANCH.value,
                title="If / Then",
                properties={
                    "subtitle": "Loyalty member?",
                    "condition": "audience.member = true",
                },
                branches=[
                    BranchEntry(
                        label="Yes",
                        node=_action("n3", "Offer experiment", "A/B test", [
                            _action("n4", "In-store exclusive offer"),
                            _action("n5", "Recommendations just for you"),
                        ]),
                    ),
                    BranchEntry(
                        label="No",
                        node=_action("n6", "Best channel to communicate", "Optimize across channels", [
                            _action("n7", "500 loyalty points (sign-up)"),
                            _action("n8", "Coupon (sign-up)"),
                        ]),
                    ),
                ],
            ),
        ],
    )
