"""
JOURNEYMAP TREE INVARIANTS - The Physics of the Journey Tree

This module enforces the shape rules every published tree must obey.
Mutations are written so they cannot break these rules; the checks here
exist for tests and for the editor's optional post-mutation validation.

Invariants Implemented:
1. Single Root: exactly one node has no parent, and it is the root value
2. Fan-out Matches Kind: branch -> branches only, others -> children only
3. Unique Ids: no id appears twice anywhere in the tree
4. Strict Tree: in-degree <= 1 and acyclic (no shared or looping subtrees)
5. Non-empty Branches: a branch node has at least one path

Design Philosophy:
- Violations of 2 and 5 are contract-fatal (layout must never see them)
- The structural check loads the tree into a rustworkx PyDiGraph keyed by
  object identity, so aliasing and cycles are caught even when ids collide
- Checks are O(V+E)
"""
import rustworkx as rx
import logging
from typing import List, Tuple, Dict, Any, Optional, Iterator
from dataclasses import dataclass
from enum import Enum

from core.ontology import NodeKind, is_valid_kind
from core.schemas import JourneyNode

logger = logging.getLogger(__name__)


# =============================================================================
# INVARIANT RESULTS
# =============================================================================

class InvariantSeverity(Enum):
    """Severity levels for invariant violations."""
    ERROR = "error"      # Tree must not be published or laid out
    WARNING = "warning"  # Should be investigated


@dataclass
class InvariantViolation:
    """A specific invariant violation."""
    invariant: str           # Name of the invariant
    severity: InvariantSeverity
    message: str
    nodes_involved: List[str] = None  # Node ids involved

    def __post_init__(self):
        if self.nodes_involved is None:
            self.nodes_involved = []


@dataclass
class InvariantReport:
    """Complete invariant validation report."""
    valid: bool
    violations: List[InvariantViolation]
    metrics: Dict[str, Any]

    @property
    def errors(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.ERROR]

    @property
    def warnings(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.WARNING]


# =============================================================================
# SAFE TRAVERSAL
# =============================================================================

def _sub_nodes(node: JourneyNode) -> List[JourneyNode]:
    """Every node referenced by either fan-out field, regardless of kind."""
    subs = list(node.children or [])
    subs.extend(entry.node for entry in (node.branches or []))
    return subs


def _iter_unique(root: JourneyNode) -> Iterator[JourneyNode]:
    """Pre-order walk that visits each node object once, even in a cyclic structure."""
    seen = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        stack.extend(reversed(_sub_nodes(node)))


def build_graph(root: JourneyNode) -> Tuple[rx.PyDiGraph, int]:
    """
    Load a tree into a rustworkx PyDiGraph.

    Node payloads are JourneyNode objects; graph indices are assigned per
    object identity so a subtree reachable twice shows up as in-degree 2.

    Returns:
        (graph, root_index)
    """
    graph = rx.PyDiGraph()
    index_of: Dict[int, int] = {}

    def index(node: JourneyNode) -> int:
        if id(node) not in index_of:
            index_of[id(node)] = graph.add_node(node)
        return index_of[id(node)]

    root_idx = index(root)
    for node in _iter_unique(root):
        parent_idx = index(node)
        for sub in _sub_nodes(node):
            graph.add_edge(parent_idx, index(sub), None)
    return graph, root_idx


# =============================================================================
# TREE INVARIANTS
# =============================================================================

class TreeInvariants:
    """
    Validators for journey trees.

    All methods are static and take the root node.
    """

    @staticmethod
    def validate_unique_ids(root: JourneyNode) -> Tuple[bool, Optional[InvariantViolation]]:
        """No id may appear on two different nodes."""
        seen = set()
        duplicates = []
        for node in _iter_unique(root):
            if node.id in seen:
                duplicates.append(node.id)
            seen.add(node.id)

        if duplicates:
            return False, InvariantViolation(
                invariant="unique_ids",
                severity=InvariantSeverity.ERROR,
                message=f"{len(duplicates)} duplicate id(s): {sorted(set(duplicates))[:5]}",
                nodes_involved=duplicates[:10],
            )
        return True, None

    @staticmethod
    def validate_fanout_matches_kind(root: JourneyNode) -> Tuple[bool, Optional[InvariantViolation]]:
        """
        Branch nodes own `branches` and never `children`; every other kind
        owns `children` and never `branches`.
        """
        offenders = []
        for node in _iter_unique(root):
            if not is_valid_kind(node.kind):
                offenders.append(f"{node.id}: unknown kind {node.kind!r}")
            elif node.kind == NodeKind.BRANCH.value:
                if node.children is not None:
                    offenders.append(f"{node.id}: branch with children")
                if node.branches is None:
                    offenders.append(f"{node.id}: branch without branches")
            else:
                if node.branches is not None:
                    offenders.append(f"{node.id}: {node.kind} with branches")
                if node.children is None:
                    offenders.append(f"{node.id}: {node.kind} without children")

        if offenders:
            return False, InvariantViolation(
                invariant="fanout_matches_kind",
                severity=InvariantSeverity.ERROR,
                message=f"Fan-out/kind mismatch: {offenders[:5]}",
                nodes_involved=[o.split(":")[0] for o in offenders[:10]],
            )
        return True, None

    @staticmethod
    def validate_strict_tree(root: JourneyNode) -> Tuple[bool, Optional[InvariantViolation]]:
        """
        The structure is a tree: acyclic, a single source (the root),
        and no node owned by two parents.
        """
        graph, root_idx = build_graph(root)

        if not rx.is_directed_acyclic_graph(graph):
            return False, InvariantViolation(
                invariant="strict_tree",
                severity=InvariantSeverity.ERROR,
                message="Cycle detected: a node owns one of its ancestors",
            )

        shared = [graph[idx].id for idx in graph.node_indices() if graph.in_degree(idx) > 1]
        if shared:
            return False, InvariantViolation(
                invariant="strict_tree",
                severity=InvariantSeverity.ERROR,
                message=f"{len(shared)} node(s) owned by more than one parent",
                nodes_involved=shared[:10],
            )

        sources = [idx for idx in graph.node_indices() if graph.in_degree(idx) == 0]
        if sources != [root_idx]:
            return False, InvariantViolation(
                invariant="strict_tree",
                severity=InvariantSeverity.ERROR,
                message=f"Expected a single root, found {len(sources)} source(s)",
                nodes_involved=[graph[idx].id for idx in sources][:10],
            )

        return True, None

    @staticmethod
    def validate_branches_nonempty(root: JourneyNode) -> Tuple[bool, Optional[InvariantViolation]]:
        """A branch node must keep at least one path."""
        empty = [
            node.id for node in _iter_unique(root)
            if node.kind == NodeKind.BRANCH.value and node.branches is not None and not node.branches
        ]
        if empty:
            return False, InvariantViolation(
                invariant="branches_nonempty",
                severity=InvariantSeverity.ERROR,
                message=f"{len(empty)} branch node(s) without paths",
                nodes_involved=empty[:10],
            )
        return True, None

    @staticmethod
    def compute_metrics(root: JourneyNode) -> Dict[str, Any]:
        """Basic shape metrics. max_depth is only meaningful for acyclic input."""
        graph, _ = build_graph(root)
        nodes = list(_iter_unique(root))
        metrics = {
            "node_count": graph.num_nodes(),
            "edge_count": graph.num_edges(),
            "branch_count": sum(1 for n in nodes if n.kind == NodeKind.BRANCH.value),
            "leaf_count": sum(1 for n in nodes if not _sub_nodes(n)),
            "max_depth": None,
        }
        if rx.is_directed_acyclic_graph(graph):
            metrics["max_depth"] = rx.dag_longest_path_length(graph)
        return metrics

    @staticmethod
    def validate_all(root: JourneyNode, raise_on_error: bool = False) -> InvariantReport:
        """
        Run all invariant validations and return a comprehensive report.

        Args:
            root: Root of the tree to validate
            raise_on_error: If True, raise MalformedTreeError on the first ERROR

        Returns:
            InvariantReport with all results and metrics
        """
        violations = []

        checks = (
            TreeInvariants.validate_strict_tree,
            TreeInvariants.validate_unique_ids,
            TreeInvariants.validate_fanout_matches_kind,
            TreeInvariants.validate_branches_nonempty,
        )
        for check in checks:
            valid, violation = check(root)
            if violation:
                violations.append(violation)
                if raise_on_error and violation.severity == InvariantSeverity.ERROR:
                    from core.mutations import MalformedTreeError
                    raise MalformedTreeError(violation.message)

        is_valid = all(v.severity != InvariantSeverity.ERROR for v in violations)
        if not is_valid:
            logger.warning("Tree %s failed validation: %s", root.id, [v.invariant for v in violations])

        return InvariantReport(
            valid=is_valid,
            violations=violations,
            metrics=TreeInvariants.compute_metrics(root),
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def validate_tree(root: JourneyNode, **kwargs) -> InvariantReport:
    """Convenience function to validate a tree."""
    return TreeInvariants.validate_all(root, **kwargs)


def is_well_formed(root: JourneyNode) -> bool:
    """Quick check that every invariant holds."""
    return TreeInvariants.validate_all(root).valid


def get_tree_metrics(root: JourneyNode) -> Dict[str, Any]:
    """Get basic tree metrics without full validation."""
    return TreeInvariants.compute_metrics(root)
