"""
Graph model for campaign sequences.

A sequence is a tree rooted at a single start node. Nodes are actions,
delays and leaves (placeholders and terminals); edges may carry a branch
outcome ("positive" / "negative") with a human-readable label.

The Graph class is a plain value: structural operations elsewhere in the
package take a graph, work on a copy and return the copy. Helpers here
never touch anything but the instance they are called on.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import networkx as nx

from sequence_graph.constants import (
    ACTION,
    BRANCHING,
    DELAY,
    LEAF_KINDS,
    NEGATIVE,
    NODE_KINDS,
    PLACEHOLDER,
    POSITIVE,
    ROOT_ID,
    SINGLE,
    START,
)

logger = logging.getLogger(__name__)


@dataclass
class SequenceNode:
    id: str
    kind: str
    action_type: Optional[str] = None
    classification: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    delay: Optional[int] = None
    allow_deletion: bool = True
    position: Tuple[float, float] = (0.0, 0.0)
    size: Optional[Tuple[float, float]] = None
    remote_id: Optional[str] = None

    @property
    def is_leaf_kind(self) -> bool:
        return self.kind in LEAF_KINDS


@dataclass
class SequenceEdge:
    source: str
    target: str
    outcome: Optional[str] = None
    label: Optional[str] = None
    can_have_actions: Optional[bool] = None

    @property
    def id(self) -> str:
        return f"e-{self.source}-{self.target}"


class Graph:
    """
    Nodes keyed by id (insertion ordered) plus an ordered edge list.

    Edge order matters: it is the order children are visited in when no
    outcome tells positive from negative.
    """

    def __init__(self, nodes: Optional[Iterable[SequenceNode]] = None, edges: Optional[Iterable[SequenceEdge]] = None):
        self.nodes: Dict[str, SequenceNode] = {}
        self.edges: List[SequenceEdge] = []
        for node in nodes or []:
            self.add_node(node)
        for edge in edges or []:
            self.add_edge(edge)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Graph):
            return NotImplemented
        return self.nodes == other.nodes and self.edges == other.edges

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self.nodes)}, edges={len(self.edges)})"

    def copy(self) -> "Graph":
        return copy.deepcopy(self)

    def is_empty(self) -> bool:
        return not self.nodes

    # -- lookup ---------------------------------------------------------

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def node(self, node_id: str) -> SequenceNode:
        """Return a node by id. Raises KeyError for unknown ids."""
        if node_id not in self.nodes:
            raise KeyError(f"Unknown node id: {node_id}")
        return self.nodes[node_id]

    def start(self) -> Optional[SequenceNode]:
        if ROOT_ID in self.nodes and self.nodes[ROOT_ID].kind == START:
            return self.nodes[ROOT_ID]
        for node in self.nodes.values():
            if node.kind == START:
                return node
        return None

    def in_edge(self, node_id: str) -> Optional[SequenceEdge]:
        for edge in self.edges:
            if edge.target == node_id:
                return edge
        return None

    def out_edges(self, node_id: str) -> List[SequenceEdge]:
        return [e for e in self.edges if e.source == node_id]

    def edge(self, source: str, target: str) -> Optional[SequenceEdge]:
        for e in self.edges:
            if e.source == source and e.target == target:
                return e
        return None

    def parent(self, node_id: str) -> Optional[SequenceNode]:
        edge = self.in_edge(node_id)
        if edge is None:
            return None
        return self.nodes.get(edge.source)

    def children(self, node_id: str) -> List[SequenceNode]:
        return [self.nodes[e.target] for e in self.out_edges(node_id) if e.target in self.nodes]

    def descendants(self, node_id: str) -> List[str]:
        """Ids below node_id in depth-first pre-order (node_id excluded)."""
        result = []
        stack = [e.target for e in reversed(self.out_edges(node_id))]
        seen = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            result.append(current)
            stack.extend(e.target for e in reversed(self.out_edges(current)))
        return result

    def subtree_kinds(self, node_id: str) -> List[str]:
        ids = [node_id] + self.descendants(node_id)
        return [self.nodes[i].kind for i in ids if i in self.nodes]

    # -- mutation (in place, used on working copies) ----------------------

    def add_node(self, node: SequenceNode) -> SequenceNode:
        if node.kind not in NODE_KINDS:
            raise ValueError(f"Invalid node kind: {node.kind}")
        if node.id in self.nodes:
            raise ValueError(f"Duplicate node id: {node.id}")
        self.nodes[node.id] = node
        return node

    def add_edge(self, edge: SequenceEdge) -> SequenceEdge:
        self.edges.append(edge)
        return edge

    def remove_edge(self, edge: SequenceEdge) -> None:
        self.edges = [e for e in self.edges if e is not edge]

    def remove_node(self, node_id: str) -> None:
        """Remove a node and its outgoing edges. The incoming edge is left for the caller."""
        self.nodes.pop(node_id, None)
        self.edges = [e for e in self.edges if e.source != node_id]

    def remove_subtree(self, node_id: str) -> List[str]:
        """Remove node_id and everything below it. Returns the removed ids."""
        removed = [node_id] + self.descendants(node_id)
        removed_set = set(removed)
        for rid in removed:
            self.nodes.pop(rid, None)
        self.edges = [e for e in self.edges if e.source not in removed_set and e.target not in removed_set]
        return removed

    def prune_dangling_edges(self) -> int:
        """Drop edges with a missing endpoint. Returns the number removed."""
        before = len(self.edges)
        self.edges = [e for e in self.edges if e.source in self.nodes and e.target in self.nodes]
        return before - len(self.edges)

    def allocate_id(self, base: str) -> str:
        """
        Deterministic id allocation.

        Returns base when it is free, otherwise base-2, base-3, ... so that
        replaying the same edits on the same graph yields the same ids.
        """
        if base not in self.nodes:
            return base
        n = 2
        while f"{base}-{n}" in self.nodes:
            n += 1
        return f"{base}-{n}"

    # -- views ------------------------------------------------------------

    def to_digraph(self) -> nx.DiGraph:
        g = nx.DiGraph()
        for node in self.nodes.values():
            g.add_node(node.id, kind=node.kind)
        for e in self.edges:
            g.add_edge(e.source, e.target, outcome=e.outcome, label=e.label)
        return g


def new_sequence() -> Graph:
    """A fresh sequence: start -> placeholder."""
    graph = Graph()
    graph.add_node(SequenceNode(id=ROOT_ID, kind=START))
    placeholder = graph.add_node(SequenceNode(id=f"{ROOT_ID}c", kind=PLACEHOLDER))
    graph.add_edge(SequenceEdge(ROOT_ID, placeholder.id))
    return graph


def branch_outcome(graph: Graph, child_id: str) -> Optional[str]:
    """
    Outcome of the branch a direct child of an action belongs to.

    The outcome usually sits on the edge into the child. The negative branch
    of a multiple-outcome action carries it one level down, on the edge
    leaving its delay.
    """
    edge = graph.in_edge(child_id)
    if edge is not None and edge.outcome:
        return edge.outcome
    node = graph.nodes.get(child_id)
    if node is not None and node.kind == DELAY:
        for out in graph.out_edges(child_id):
            if out.outcome:
                return out.outcome
    return None


def ordered_branches(graph: Graph, node_id: str) -> List[SequenceNode]:
    """Children of node_id ordered positive first, then negative; others keep edge order."""
    children = graph.children(node_id)
    rank = {POSITIVE: 0, NEGATIVE: 1}
    indexed = list(enumerate(children))
    indexed.sort(key=lambda pair: (rank.get(branch_outcome(graph, pair[1].id), 2), pair[0]))
    return [child for _, child in indexed]


def check_invariants(graph: Graph) -> List[str]:
    """Validate the structural invariants. Returns list of error messages."""
    errors = []
    if graph.is_empty():
        return errors

    starts = [n for n in graph.nodes.values() if n.kind == START]
    if len(starts) != 1:
        errors.append(f"Expected exactly one start node, found {len(starts)}")

    for e in graph.edges:
        if e.source not in graph.nodes or e.target not in graph.nodes:
            errors.append(f"Dangling edge {e.id}")

    digraph = graph.to_digraph()
    if not nx.is_arborescence(digraph):
        errors.append("Graph is not a tree rooted at the start node")
    if starts and digraph.in_degree(starts[0].id) != 0:
        errors.append("Start node has a predecessor")

    for node in graph.nodes.values():
        out = graph.out_edges(node.id)
        if node.kind in LEAF_KINDS:
            if out:
                errors.append(f"Leaf '{node.id}' ({node.kind}) has children")
            continue
        if node.kind in (START, DELAY) and len(out) != 1:
            errors.append(f"{node.kind.title()} '{node.id}' must have exactly one child, has {len(out)}")
        if node.kind != ACTION:
            continue
        if node.classification in BRANCHING:
            outcomes = sorted(filter(None, (branch_outcome(graph, e.target) for e in out)))
            if len(out) != 2 or outcomes != [NEGATIVE, POSITIVE]:
                errors.append(f"Branching action '{node.id}' needs one positive and one negative branch")
        elif node.classification == SINGLE and len(out) != 1:
            errors.append(f"Action '{node.id}' must have exactly one outgoing edge, has {len(out)}")

    return errors
