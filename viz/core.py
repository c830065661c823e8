"""
JOURNEYMAP VISUALIZATION CORE - The Renderer's Data Model

This module provides the structures a presentation layer consumes to draw
a journey. It bridges the tree model and layout engine with whatever
widget toolkit renders the canvas.

Architecture:
- curve(): S-shaped cubic connector between two boxes
- VizNode/VizEdge: Render-ready node cards and connectors
- JourneySnapshot: Full drawable state for one tree value
- MutationEvent: Individual tree edit, for the mutation logger

Performance:
- Everything here is a pure function of (tree, layout, selection)
- Geometry is computed once, server-side, so renderers only draw
"""
import msgspec
from typing import Optional, Dict, List, Any
from enum import Enum
from datetime import datetime, timezone

from core.ontology import NodeKind, PropertyKey
from core.schemas import JourneyNode
from core.layout import Box, Layout, compute_layout, LayoutConfig
from core.tree_index import collect_nodes


# =============================================================================
# COLOR PALETTES
# =============================================================================

# Kind badge colors (hex)
KIND_COLORS: Dict[str, str] = {
    NodeKind.TRIGGER.value: "#0EA5E9",   # Sky - entry points
    NodeKind.ACTION.value: "#94A3B8",    # Slate - steps
    NodeKind.BRANCH.value: "#F59E0B",    # Amber - decisions
    "default": "#6C757D",
}

EDGE_COLOR = "#94A3B8"
LABEL_COLOR = "#475569"
SELECTED_BORDER = "#3B82F6"
DEFAULT_BORDER = "#E5E7EB"


# =============================================================================
# MUTATION TYPES (For event logging)
# =============================================================================

class MutationType(str, Enum):
    """Types of tree mutations for event tracking."""
    NODE_CREATED = "NODE_CREATED"
    NODE_UPDATED = "NODE_UPDATED"
    NODE_DELETED = "NODE_DELETED"
    NODE_RETYPED = "NODE_RETYPED"
    NOOP = "NOOP"


class MutationEvent(msgspec.Struct, kw_only=True):
    """
    Individual mutation event for debugging a session.

    One event per logical change; a delete carries every removed id.
    """
    timestamp: str
    sequence: int
    mutation_type: str                  # MutationType value
    node_id: Optional[str] = None
    node_kind: Optional[str] = None
    parent_id: Optional[str] = None

    # For retype events
    old_kind: Optional[str] = None
    new_kind: Optional[str] = None

    # Subtree ids dropped by delete/retype
    removed_ids: List[str] = msgspec.field(default_factory=list)

    # For no-op events
    operation: Optional[str] = None
    reason: Optional[str] = None


# =============================================================================
# CURVE GENERATOR
# =============================================================================

MIN_CONTROL_OFFSET = 40.0
CONTROL_OFFSET_RATIO = 0.6
LABEL_LIFT = 6.0


class Point(msgspec.Struct, frozen=True, array_like=True):
    x: float
    y: float


class CurvePath(msgspec.Struct, frozen=True, kw_only=True):
    """A two-control-point cubic Bezier connector."""
    start: Point
    control1: Point
    control2: Point
    end: Point

    def to_svg(self) -> str:
        """SVG path data: M start C control1, control2, end."""
        return (
            f"M {_fmt(self.start.x)} {_fmt(self.start.y)} "
            f"C {_fmt(self.control1.x)} {_fmt(self.control1.y)}, "
            f"{_fmt(self.control2.x)} {_fmt(self.control2.y)}, "
            f"{_fmt(self.end.x)} {_fmt(self.end.y)}"
        )

    def label_anchor(self) -> Point:
        """Where a branch label goes: midway between the endpoints, lifted slightly."""
        return Point(
            (self.start.x + self.end.x) / 2,
            (self.start.y + self.end.y) / 2 - LABEL_LIFT,
        )


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def curve(from_box: Box, to_box: Box) -> CurvePath:
    """
    Connect the bottom-center of from_box to the top-center of to_box.

    Control points sit vertically above/below their own endpoint, offset by
    max(40, 0.6 * vertical distance), giving a symmetric S-curve.
    """
    x1, y1 = from_box.center_x, from_box.bottom
    x2, y2 = to_box.center_x, to_box.y
    dy = max(MIN_CONTROL_OFFSET, (y2 - y1) * CONTROL_OFFSET_RATIO)
    return CurvePath(
        start=Point(x1, y1),
        control1=Point(x1, y1 + dy),
        control2=Point(x2, y2 - dy),
        end=Point(x2, y2),
    )


# =============================================================================
# RENDER SNAPSHOT
# =============================================================================

class VizNode(msgspec.Struct, kw_only=True):
    """Node card: content plus its box and selection state."""
    id: str
    kind: str
    title: str
    subtitle: Optional[str]
    color: str
    box: Box
    selected: bool = False
    can_delete: bool = True             # False for the root

    @classmethod
    def from_node(cls, node: JourneyNode, box: Box, selected: bool, is_root: bool) -> "VizNode":
        return cls(
            id=node.id,
            kind=node.kind,
            title=node.title,
            subtitle=node.get_property(PropertyKey.SUBTITLE.value) or None,
            color=KIND_COLORS.get(node.kind, KIND_COLORS["default"]),
            box=box,
            selected=selected,
            can_delete=not is_root,
        )


class VizEdge(msgspec.Struct, kw_only=True):
    """Connector with its curve and, for branch paths, a label anchor."""
    source: str
    target: str
    path: str                           # SVG path data
    label: Optional[str] = None
    label_x: Optional[float] = None
    label_y: Optional[float] = None


class JourneySnapshot(msgspec.Struct, kw_only=True):
    """Everything a renderer needs to draw one tree value."""
    timestamp: str
    root_id: str
    selected_id: Optional[str]
    node_count: int
    edge_count: int
    nodes: List[VizNode]
    edges: List[VizEdge]
    total_width: float
    canvas_width: float
    canvas_height: float
    offset_x: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return msgspec.to_builtins(self)


def center_offset(viewport_width: float, total_width: float, margin: float = 24.0) -> float:
    """Horizontal shift that centers a drawing of total_width in the viewport."""
    return max(margin, (viewport_width - total_width) / 2)


def create_snapshot(
    tree: JourneyNode,
    selected_id: Optional[str] = None,
    layout: Optional[Layout] = None,
    offset_x: float = 0.0,
    config: Optional[LayoutConfig] = None,
) -> JourneySnapshot:
    """
    Build a JourneySnapshot for a tree.

    Args:
        tree: Current tree value
        selected_id: Id of the selected node (highlighted)
        layout: Precomputed layout; computed here if omitted
        offset_x: Horizontal shift applied to every box (viewport centering)
        config: LayoutConfig used when the layout has to be computed

    Returns:
        JourneySnapshot ready for rendering
    """
    layout = layout or compute_layout(tree, config)
    shifted = {node_id: box.shifted(dx=offset_x) for node_id, box in layout.boxes.items()}

    viz_nodes = []
    for node in collect_nodes(tree).values():
        box = shifted.get(node.id)
        if box is None:
            continue
        viz_nodes.append(
            VizNode.from_node(node, box, selected=node.id == selected_id, is_root=node.id == tree.id)
        )

    viz_edges = []
    for edge in layout.edges:
        from_box, to_box = shifted.get(edge.from_id), shifted.get(edge.to_id)
        if from_box is None or to_box is None:
            continue
        path = curve(from_box, to_box)
        viz_edge = VizEdge(source=edge.from_id, target=edge.to_id, path=path.to_svg())
        if edge.label:
            anchor = path.label_anchor()
            viz_edge.label = edge.label
            viz_edge.label_x = anchor.x
            viz_edge.label_y = anchor.y
        viz_edges.append(viz_edge)

    canvas_width, canvas_height = layout.canvas_size()
    return JourneySnapshot(
        timestamp=datetime.now(timezone.utc).isoformat(),
        root_id=tree.id,
        selected_id=selected_id,
        node_count=len(viz_nodes),
        edge_count=len(viz_edges),
        nodes=viz_nodes,
        edges=viz_edges,
        total_width=layout.total_width,
        canvas_width=canvas_width,
        canvas_height=canvas_height,
        offset_x=offset_x,
    )
