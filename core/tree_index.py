"""
JOURNEYMAP TREE INDEX - Derived lookups over a journey tree

Nodes never store a pointer to their parent. Instead, "who points at me"
is answered by a derived index that is rebuilt from scratch every time
the tree changes:

- nodes:   id -> JourneyNode (flat map of every reachable node)
- parents: id -> ParentInfo(node, parent, slot)

Traversal is depth-first pre-order. Children order and branch order are
preserved, so dict iteration order equals traversal order.

The index assumes a well-formed tree. Validation lives in
core.tree_invariants; this module never re-checks.
"""
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from core.ontology import SlotKind
from core.schemas import JourneyNode


# =============================================================================
# INDEX ENTRIES
# =============================================================================

@dataclass(frozen=True)
class ParentSlot:
    """Where a node sits inside its parent's fan-out."""
    kind: SlotKind
    index: int


@dataclass(frozen=True)
class ParentInfo:
    """A node together with its parent and parent-slot (None for the root)."""
    node: JourneyNode
    parent: Optional[JourneyNode] = None
    slot: Optional[ParentSlot] = None
    depth: int = 0

    @property
    def is_root(self) -> bool:
        return self.parent is None


@dataclass
class TreeIndex:
    """Both derived maps for one tree value."""
    root: JourneyNode
    nodes: Dict[str, JourneyNode] = field(default_factory=dict)
    parents: Dict[str, ParentInfo] = field(default_factory=dict)

    def get(self, node_id: str) -> Optional[JourneyNode]:
        return self.nodes.get(node_id)

    def lookup(self, node_id: str) -> Optional[ParentInfo]:
        return self.parents.get(node_id)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def depth_of(self, node_id: str) -> Optional[int]:
        info = self.parents.get(node_id)
        return info.depth if info else None

    def path_to(self, node_id: str) -> List[str]:
        """Root-first list of ids ending at node_id ([] if unknown)."""
        path = []
        info = self.parents.get(node_id)
        while info is not None:
            path.append(info.node.id)
            info = self.parents.get(info.parent.id) if info.parent else None
        path.reverse()
        return path


# =============================================================================
# BUILDERS
# =============================================================================

def collect_nodes(root: JourneyNode) -> Dict[str, JourneyNode]:
    """Flat id -> node map covering every node reachable from root."""
    return {node.id: node for node in root.walk()}


def collect_with_parents(root: JourneyNode) -> Dict[str, ParentInfo]:
    """id -> ParentInfo for every node; the root maps to a parentless entry."""
    result: Dict[str, ParentInfo] = {}

    def walk(node: JourneyNode, parent: Optional[JourneyNode], slot: Optional[ParentSlot], depth: int) -> None:
        result[node.id] = ParentInfo(node=node, parent=parent, slot=slot, depth=depth)
        if node.is_branch:
            for idx, entry in enumerate(node.branches or []):
                walk(entry.node, node, ParentSlot(SlotKind.BRANCH, idx), depth + 1)
        else:
            for idx, child in enumerate(node.children or []):
                walk(child, node, ParentSlot(SlotKind.CHILD, idx), depth + 1)

    walk(root, None, None, 0)
    return result


def build_indices(root: JourneyNode) -> TreeIndex:
    """Rebuild both maps for a tree. Never patched incrementally."""
    parents = collect_with_parents(root)
    nodes = {node_id: info.node for node_id, info in parents.items()}
    return TreeIndex(root=root, nodes=nodes, parents=parents)


def subtree_ids(node: JourneyNode) -> List[str]:
    """Ids of a node and all of its descendants, pre-order."""
    return [n.id for n in node.walk()]
