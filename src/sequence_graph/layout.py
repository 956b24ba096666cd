"""
Deterministic tree layout for sequences.

Two passes over the tree rooted at the start node:
1. compute_box: the bounding box each subtree needs (memoized per node)
2. place: top-down placement, children centered in equal-width slots

Positions are top-left corners; the start node is centered on x=0.
"""

import logging
from typing import Dict, Optional, Tuple

from sequence_graph.constants import (
    LEVEL_GAP,
    MULTI_CHILD_EXTRA_HEIGHT,
    MULTIPLE,
    MULTIPLE_STAGGER_FACTOR,
    NEGATIVE,
    NODE_HEIGHT,
    NODE_WIDTH,
    ROOT_ID,
    SIBLING_GAP,
)
from sequence_graph.graph import Graph

logger = logging.getLogger(__name__)

Size = Tuple[float, float]
Position = Tuple[float, float]


class _Layout:
    def __init__(self, graph: Graph, level_gap: float, sibling_gap: float, sizes: Optional[Dict[str, Size]]):
        self.graph = graph
        self.level_gap = level_gap
        self.sibling_gap = sibling_gap
        self.sizes = sizes or {}
        self.boxes: Dict[str, Size] = {}
        self.positions: Dict[str, Position] = {}

    def size(self, node_id: str) -> Size:
        if node_id in self.sizes:
            return self.sizes[node_id]
        node = self.graph.nodes.get(node_id)
        if node is not None and node.size:
            return node.size
        return (NODE_WIDTH, NODE_HEIGHT)

    def children(self, node_id: str):
        return [e.target for e in self.graph.out_edges(node_id) if e.target in self.graph.nodes]

    def compute_box(self, node_id: str) -> Size:
        if node_id in self.boxes:
            return self.boxes[node_id]

        w, h = self.size(node_id)
        children = self.children(node_id)

        if not children:
            box = (w, h)
        elif len(children) == 1:
            cw, ch = self.compute_box(children[0])
            box = (max(w, cw), h + self.level_gap + ch)
        else:
            child_boxes = [self.compute_box(c) for c in children]
            total_width = sum(b[0] for b in child_boxes) + self.sibling_gap * (len(child_boxes) - 1)
            box = (
                max(w, total_width),
                h + self.level_gap + MULTI_CHILD_EXTRA_HEIGHT + max(b[1] for b in child_boxes),
            )

        self.boxes[node_id] = box
        return box

    def place(self, node_id: str, x_center: float, y: float) -> None:
        w, h = self.size(node_id)
        self.positions[node_id] = (x_center - w / 2, y)

        children = self.children(node_id)
        if not children:
            return

        gap = self.level_gap
        if len(children) == 1:
            child_y = y + h + gap
            if self._is_negative(node_id, children[0]):
                child_y += gap
            self.place(children[0], x_center, child_y)
            return

        slot_width = max(self.boxes[c][0] for c in children)
        total_slots_width = slot_width * len(children) + self.sibling_gap * (len(children) - 1)
        cursor = x_center - total_slots_width / 2

        node = self.graph.nodes[node_id]
        stagger = node.classification == MULTIPLE

        for i, child_id in enumerate(children):
            child_y = y + h + gap * 3
            if self._is_negative(node_id, child_id):
                child_y += gap
            if stagger:
                child_y -= gap * i * MULTIPLE_STAGGER_FACTOR
            self.place(child_id, cursor + slot_width / 2, child_y)
            cursor += slot_width + self.sibling_gap

    def _is_negative(self, source: str, target: str) -> bool:
        edge = self.graph.edge(source, target)
        return edge is not None and edge.outcome == NEGATIVE


def arrange(
    graph: Graph,
    root_id: str = ROOT_ID,
    level_gap: float = LEVEL_GAP,
    sibling_gap: float = SIBLING_GAP,
    sizes: Optional[Dict[str, Size]] = None,
) -> Dict[str, Position]:
    """
    Compute a position for every node reachable from root_id.

    Pure and idempotent: the graph is not modified and the same input
    always yields the same positions. Node sizes come from `sizes`, then
    the node's measured size, then the 180x50 default.
    """
    if len(graph.nodes) < 2 or root_id not in graph.nodes:
        return {node_id: node.position for node_id, node in graph.nodes.items()}

    layout = _Layout(graph, level_gap, sibling_gap, sizes)
    layout.compute_box(root_id)
    layout.place(root_id, 0, 0)
    return layout.positions


def apply_layout(graph: Graph, positions: Dict[str, Position]) -> Graph:
    """Return a copy of graph with positions applied; unknown ids are ignored."""
    g = graph.copy()
    for node_id, position in positions.items():
        if node_id in g.nodes:
            g.nodes[node_id].position = position
    return g


def arrange_graph(graph: Graph, **options) -> Graph:
    """arrange() followed by apply_layout()."""
    return apply_layout(graph, arrange(graph, **options))

