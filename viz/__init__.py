"""
JOURNEYMAP VISUALIZATION - The Renderer Contract

This package provides what a presentation layer draws from:
- core: Curve generation, render snapshots, mutation event types
"""

from viz.core import (
    Point,
    CurvePath,
    VizNode,
    VizEdge,
    JourneySnapshot,
    MutationEvent,
    MutationType,
    curve,
    center_offset,
    create_snapshot,
)

__all__ = [
    "Point",
    "CurvePath",
    "VizNode",
    "VizEdge",
    "JourneySnapshot",
    "MutationEvent",
    "MutationType",
    "curve",
    "center_offset",
    "create_snapshot",
]
