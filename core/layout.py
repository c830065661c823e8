"""
JOURNEYMAP LAYOUT ENGINE - Centered tidy-tree placement

Turns a journey tree into geometry: one box per node, one edge per
parent -> child relation, and the overall drawing size.

Algorithm (two recursive passes over the same tree shape):
1. subtree_width(node): bottom-up.
   leaf -> W
   k sub-elements -> max(W, sum(widths) + (k - 1) * G)
2. place(node, depth, left): top-down.
   x = left + span / 2 - W / 2        (centered over its own span)
   y = depth * (H + level_gap)        (rows depend on depth only)
   sub-elements are placed left to right, the cursor advancing by each
   one's subtree width plus G.

Children and branch targets are handled identically; branch labels ride
along on the edges and never affect widths.

The output is a pure function of the tree value and the LayoutConfig:
no randomness, no viewport, no memory of previous layouts.
"""
import msgspec
import logging
from typing import Dict, List, Optional, Tuple

from core.schemas import JourneyNode

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

class LayoutConfig(msgspec.Struct, frozen=True, kw_only=True):
    """Fixed node size and gaps. All layout math derives from these four."""
    node_width: float = 220.0           # W
    node_height: float = 56.0           # H
    level_gap: float = 72.0             # Vertical gap between rows
    sibling_gap: float = 56.0           # G, horizontal gap between sibling subtrees

    @property
    def row_height(self) -> float:
        return self.node_height + self.level_gap


DEFAULT_LAYOUT_CONFIG = LayoutConfig()

# Drawing extent padding used by renderers
BOTTOM_PADDING = 80.0
MIN_CANVAS_WIDTH = 900.0
CANVAS_SIDE_PADDING = 200.0


# =============================================================================
# GEOMETRY
# =============================================================================

class Box(msgspec.Struct, frozen=True, kw_only=True):
    """Axis-aligned node rectangle; (x, y) is the top-left corner."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def right(self) -> float:
        return self.x + self.width

    def shifted(self, dx: float = 0.0, dy: float = 0.0) -> "Box":
        return msgspec.structs.replace(self, x=self.x + dx, y=self.y + dy)


class Edge(msgspec.Struct, frozen=True, kw_only=True):
    """Directed parent -> child connector. Branch edges carry the path label."""
    from_id: str
    to_id: str
    label: Optional[str] = None


class Layout(msgspec.Struct, kw_only=True):
    """Complete geometry for one tree value."""
    boxes: Dict[str, Box]
    edges: List[Edge]
    total_width: float
    total_height: float
    depth: int                          # Deepest row index (root = 0)

    def canvas_size(self) -> Tuple[float, float]:
        """
        Size of the drawing surface a renderer should allocate.

        Adds side padding with a minimum width, and bottom padding below
        the lowest box.
        """
        lowest = max((box.bottom for box in self.boxes.values()), default=0.0)
        width = max(self.total_width + CANVAS_SIDE_PADDING, MIN_CANVAS_WIDTH)
        return width, lowest + BOTTOM_PADDING


# =============================================================================
# PASS 1: SUBTREE WIDTHS
# =============================================================================

def _span(widths: List[float], config: LayoutConfig) -> float:
    """Sum of sub-element widths plus the gaps between them."""
    return sum(widths) + max(0, len(widths) - 1) * config.sibling_gap


def subtree_width(node: JourneyNode, config: LayoutConfig = DEFAULT_LAYOUT_CONFIG) -> float:
    """
    Horizontal span occupied by a node and all of its descendants.

    Never narrower than the node's own box. A branch node with zero paths
    is measured as a leaf.
    """
    subs = node.fanout()
    if not subs:
        return config.node_width
    widths = [subtree_width(sub, config) for sub in subs]
    return max(config.node_width, _span(widths, config))


# =============================================================================
# PASS 2: PLACEMENT
# =============================================================================

def _sub_elements(node: JourneyNode) -> List[Tuple[JourneyNode, Optional[str]]]:
    """(sub-node, edge label) pairs in visiting order."""
    if node.is_branch:
        return [(entry.node, entry.label) for entry in (node.branches or [])]
    return [(child, None) for child in (node.children or [])]


def compute_layout(root: JourneyNode, config: Optional[LayoutConfig] = None) -> Layout:
    """
    Lay out a whole tree.

    Args:
        root: Root of a well-formed journey tree
        config: Node size and gaps (defaults to DEFAULT_LAYOUT_CONFIG)

    Returns:
        Layout with a box for every node, edges in placement order,
        total width (= root subtree width) and total height.
    """
    config = config or DEFAULT_LAYOUT_CONFIG
    boxes: Dict[str, Box] = {}
    edges: List[Edge] = []
    max_depth = 0

    def place(node: JourneyNode, depth: int, left: float) -> None:
        nonlocal max_depth
        max_depth = max(max_depth, depth)

        subs = _sub_elements(node)
        widths = [subtree_width(sub, config) for sub, _ in subs]
        span = max(config.node_width, _span(widths, config)) if subs else config.node_width

        boxes[node.id] = Box(
            x=left + span / 2 - config.node_width / 2,
            y=depth * config.row_height,
            width=config.node_width,
            height=config.node_height,
        )

        cursor = left
        for (sub, label), width in zip(subs, widths):
            place(sub, depth + 1, cursor)
            edges.append(Edge(from_id=node.id, to_id=sub.id, label=label))
            cursor += width + config.sibling_gap

    total_width = subtree_width(root, config)
    place(root, 0, 0.0)

    layout = Layout(
        boxes=boxes,
        edges=edges,
        total_width=total_width,
        total_height=max_depth * config.row_height + config.node_height,
        depth=max_depth,
    )
    logger.debug(
        "Laid out %d node(s), %d edge(s), width=%.1f", len(boxes), len(edges), total_width
    )
    return layout


# =============================================================================
# MEMOIZATION
# =============================================================================

class LayoutCache:
    """
    Remembers the layout of the most recent tree value.

    Keyed by object identity: the mutation engine publishes a fresh tree
    object for every change, so an identity hit means nothing changed.
    """

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or DEFAULT_LAYOUT_CONFIG
        self._tree: Optional[JourneyNode] = None
        self._layout: Optional[Layout] = None
        self.hits = 0
        self.misses = 0

    def get(self, tree: JourneyNode) -> Layout:
        if self._tree is tree and self._layout is not None:
            self.hits += 1
            return self._layout
        self.misses += 1
        self._tree = tree
        self._layout = compute_layout(tree, self.config)
        return self._layout

    def clear(self) -> None:
        self._tree = None
        self._layout = None
