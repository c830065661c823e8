"""
JOURNEYMAP EDITOR - The session a presentation layer talks to

JourneyEditor holds the only piece of shared mutable state in the system:
the current tree value. Every user intent is turned into one call of the
mutation engine, and the returned tree replaces the current one wholesale.
Readers therefore always see either the old or the new tree, never a
half-edited one.

Responsibilities:
- Selection (defaults to the root, repaired when the selected node is deleted)
- Session-scoped id allocation
- Derived state (indices, layout) recomputed when the tree reference changes
- Change notification so renderers know when to redraw

Single-threaded by contract: each intent runs to completion before the
next one is processed.
"""
import logging
from contextlib import nullcontext
from typing import Callable, List, Optional, Union

from core.ontology import NodeKind
from core.schemas import JourneyNode, IdGenerator, sample_journey
from core.tree_index import TreeIndex, build_indices
from core.layout import Layout, LayoutCache, LayoutConfig
from core.tree_invariants import TreeInvariants
from core import mutations

logger = logging.getLogger(__name__)

TreeListener = Callable[[JourneyNode], None]


class JourneyEditor:
    """
    Copy-on-write editing session over one journey tree.

    Usage:
        editor = JourneyEditor(sample_journey())
        editor.select("n2")
        editor.add_child()                 # adds "Path 3" under the branch
        editor.retype(NodeKind.BRANCH, "n3")

        layout = editor.layout             # recomputed once per tree value
        snapshot = editor.snapshot()       # render-ready data
    """

    def __init__(
        self,
        tree: Optional[JourneyNode] = None,
        ids: Optional[IdGenerator] = None,
        layout_config: Optional[LayoutConfig] = None,
        events=None,
        validate_after_mutation: bool = False,
        viewport_margin: float = 24.0,
    ):
        """
        Args:
            tree: Initial tree (defaults to the sample journey)
            ids: Id generator; defaults to one seeded past every id in `tree`
            layout_config: Node size and gaps for the layout engine
            events: Optional infrastructure.logger.MutationLogger
            validate_after_mutation: Run all tree invariants after every publish
            viewport_margin: Minimum left offset when centering the drawing
        """
        self._tree = tree if tree is not None else sample_journey()
        self._ids = ids or IdGenerator.after(self._tree)
        self._ids.reserve(self._tree)
        self._layout_cache = LayoutCache(layout_config)
        self._index: Optional[TreeIndex] = None
        self._index_tree: Optional[JourneyNode] = None
        self._selected_id: str = self._tree.id
        self._listeners: List[TreeListener] = []
        self.events = events
        self.validate_after_mutation = validate_after_mutation
        self.viewport_margin = viewport_margin

        if validate_after_mutation:
            TreeInvariants.validate_all(self._tree, raise_on_error=True)

    @classmethod
    def from_config(cls, tree: Optional[JourneyNode] = None, config=None) -> "JourneyEditor":
        """Build an editor from config/journey.toml (or a pre-loaded config dict)."""
        from infrastructure.config import (
            load_toml_config,
            get_layout_config,
            get_editor_config,
            get_logger_config,
        )
        from infrastructure.logger import MutationLogger

        config = load_toml_config() if config is None else config
        editor_config = get_editor_config(config)
        return cls(
            tree=tree,
            layout_config=get_layout_config(config),
            events=MutationLogger(get_logger_config(config)),
            validate_after_mutation=editor_config.validate_after_mutation,
            viewport_margin=editor_config.viewport_margin,
        )

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def tree(self) -> JourneyNode:
        return self._tree

    @property
    def root_id(self) -> str:
        return self._tree.id

    @property
    def selected_id(self) -> str:
        return self._selected_id

    @property
    def index(self) -> TreeIndex:
        """Derived indices for the current tree, rebuilt when the tree changes."""
        if self._index_tree is not self._tree:
            self._index = build_indices(self._tree)
            self._index_tree = self._tree
        return self._index

    @property
    def layout(self) -> Layout:
        return self._layout_cache.get(self._tree)

    @property
    def layout_config(self) -> LayoutConfig:
        return self._layout_cache.config

    @property
    def selected_node(self) -> Optional[JourneyNode]:
        return self.index.get(self._selected_id)

    def select(self, node_id: str) -> bool:
        """Select a node. Unknown ids are ignored; returns whether selection changed."""
        if node_id not in self.index:
            logger.debug("select: unknown node %s", node_id)
            return False
        self._selected_id = node_id
        return True

    # =========================================================================
    # PUBLISHING
    # =========================================================================

    def subscribe(self, listener: TreeListener) -> None:
        """Call `listener(new_tree)` after every published change."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: TreeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, new_tree: JourneyNode) -> None:
        """Replace the current tree, repair the selection and notify listeners."""
        self._tree = new_tree
        if self._selected_id not in self.index:
            logger.debug("Selected node %s is gone, selecting root", self._selected_id)
            self._selected_id = new_tree.id

        for listener in list(self._listeners):
            try:
                listener(new_tree)
            except Exception:
                logger.exception("Tree listener %r failed", listener)

    def _commit(self, mutate: Callable[[], JourneyNode]) -> bool:
        """
        Run one mutation and publish its result; returns False for a no-op.

        Mutation events are held until the new tree has passed validation,
        so a rejected edit leaves neither a new tree nor a trail entry.

        Raises:
            MalformedTreeError: if validate_after_mutation is on and the
                new tree breaks an invariant
        """
        held = self.events.hold() if self.events is not None else nullcontext()
        with held:
            new_tree = mutate()
            if new_tree is self._tree:
                return False
            if self.validate_after_mutation:
                TreeInvariants.validate_all(new_tree, raise_on_error=True)

        self._publish(new_tree)
        return True

    def _target(self, node_id: Optional[str]) -> str:
        return self._selected_id if node_id is None else node_id

    # =========================================================================
    # INTENTS
    # =========================================================================

    def add_child(self, node_id: Optional[str] = None) -> bool:
        """Add a child (or a new path, on a branch) under node_id or the selection."""
        target = self._target(node_id)
        return self._commit(
            lambda: mutations.add_child(self._tree, target, self._ids, self.events)
        )

    def delete_node(self, node_id: Optional[str] = None) -> bool:
        """Delete node_id (or the selection) with its subtree. The root is never deleted."""
        target = self._target(node_id)
        return self._commit(
            lambda: mutations.delete_node(self._tree, target, self.events)
        )

    def update_field(self, mutator: mutations.FieldMutator, node_id: Optional[str] = None) -> bool:
        target = self._target(node_id)
        return self._commit(
            lambda: mutations.update_field(self._tree, target, mutator, self.events)
        )

    def set_title(self, title: str, node_id: Optional[str] = None) -> bool:
        target = self._target(node_id)
        return self._commit(
            lambda: mutations.set_title(self._tree, target, title, self.events)
        )

    def set_property(self, key: str, value: str, node_id: Optional[str] = None) -> bool:
        target = self._target(node_id)
        return self._commit(
            lambda: mutations.set_property(self._tree, target, key, value, self.events)
        )

    def clear_property(self, key: str, node_id: Optional[str] = None) -> bool:
        target = self._target(node_id)
        return self._commit(
            lambda: mutations.clear_property(self._tree, target, key, self.events)
        )

    def relabel_branch(self, label: str, node_id: Optional[str] = None) -> bool:
        target = self._target(node_id)
        return self._commit(
            lambda: mutations.relabel_branch(self._tree, target, label, self.events)
        )

    def retype(self, new_kind: Union[NodeKind, str], node_id: Optional[str] = None) -> bool:
        """Change the kind of node_id (or the selection)."""
        target = self._target(node_id)
        return self._commit(
            lambda: mutations.retype(self._tree, target, new_kind, self._ids, self.events)
        )

    # =========================================================================
    # RENDERING
    # =========================================================================

    def center_offset(self, viewport_width: float) -> float:
        """Horizontal shift that centers the current drawing in a viewport."""
        from viz.core import center_offset
        return center_offset(viewport_width, self.layout.total_width, margin=self.viewport_margin)

    def snapshot(self, offset_x: float = 0.0, viewport_width: Optional[float] = None):
        """
        Render-ready viz.core.JourneySnapshot of the current state.

        When viewport_width is given, offset_x is replaced by the centering
        offset for that viewport.
        """
        from viz.core import create_snapshot
        if viewport_width is not None:
            offset_x = self.center_offset(viewport_width)
        return create_snapshot(
            self._tree,
            selected_id=self._selected_id,
            layout=self.layout,
            offset_x=offset_x,
        )
