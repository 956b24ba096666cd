"""
Action deletion with structural repair.

Deleting an action leaves a hole between its parent and its children. The
hole is repaired by one of a few named handlers, picked from a lookup table
keyed by

    (delay_collapsed, classification, left_kind, right_kind)

delay_collapsed  the plain delay above the action was removed with it
classification   classification of the deleted action
left/right_kind  shape of the positive / negative branch below it:
                 none, open, closed, delay-dead, delay-live, action

A branch is "live" when it still holds an action somewhere below it and
"dead" otherwise. Dead branches collapse to a single open leaf; a live
branch is spliced onto the anchor edge. When both branches are live the
positive one survives.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from sequence_graph.constants import (
    ACTION,
    CONDITIONAL,
    DELAY,
    MULTIPLE,
    OPEN_KINDS,
    PLACEHOLDER,
    PLACEHOLDER_TERMINAL,
    SINGLE,
    START,
    TERMINAL,
)
from sequence_graph.graph import Graph, SequenceEdge, SequenceNode, ordered_branches

logger = logging.getLogger(__name__)

# Branch kinds
NONE = "none"
OPEN = "open"
CLOSED = "closed"
DELAY_DEAD = "delay-dead"
DELAY_LIVE = "delay-live"
LIVE_ACTION = "action"

DEAD_KINDS = (OPEN, CLOSED, DELAY_DEAD)
LIVE_KINDS = (DELAY_LIVE, LIVE_ACTION)

LEFT_SUBTREE = "left-subtree"
RIGHT_SUBTREE = "right-subtree"


@dataclass
class DeletionResult:
    graph: Graph
    deletions: List[str] = field(default_factory=list)
    applied: bool = True


@dataclass
class _Hole:
    """Working state shared by the handlers."""
    graph: Graph
    target: SequenceNode
    anchor: SequenceEdge
    reattach: SequenceNode
    position: Tuple[float, float]
    left: Optional[SequenceNode]
    right: Optional[SequenceNode]
    deletions: List[str] = field(default_factory=list)


def branch_kind(graph: Graph, node: Optional[SequenceNode]) -> str:
    if node is None:
        return NONE
    if node.kind in OPEN_KINDS:
        return OPEN
    if node.kind == TERMINAL:
        return CLOSED
    if node.kind == DELAY:
        below = graph.subtree_kinds(node.id)
        return DELAY_LIVE if ACTION in below else DELAY_DEAD
    if node.kind == ACTION:
        return LIVE_ACTION
    return node.kind


def _drop(hole: _Hole, node: Optional[SequenceNode], side: str) -> None:
    if node is None:
        return
    if ACTION in hole.graph.subtree_kinds(node.id):
        hole.deletions.append(side)
    hole.graph.remove_subtree(node.id)


def _attach(hole: _Hole, node: SequenceNode) -> None:
    hole.anchor.target = node.id
    node.position = hole.position


def _as_open_leaf(hole: _Hole, node: SequenceNode) -> None:
    """Leaves directly under start are plain placeholders; elsewhere placeholder-terminals."""
    kind = PLACEHOLDER if hole.reattach.kind == START else PLACEHOLDER_TERMINAL
    hole.graph.nodes[node.id] = SequenceNode(id=node.id, kind=kind, position=node.position, size=node.size)
    _attach(hole, hole.graph.nodes[node.id])


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def replace_with_open_leaf(hole: _Hole) -> None:
    """Dead branches only: keep an existing open leaf (positive first) or synthesize one."""
    keep = None
    for candidate in (hole.left, hole.right):
        if candidate is not None and candidate.kind in OPEN_KINDS:
            keep = candidate
            break
    if hole.left is not keep:
        _drop(hole, hole.left, LEFT_SUBTREE)
    if hole.right is not keep:
        _drop(hole, hole.right, RIGHT_SUBTREE)

    if keep is None:
        kind = PLACEHOLDER if hole.reattach.kind == START else PLACEHOLDER_TERMINAL
        keep = hole.graph.add_node(SequenceNode(
            id=hole.graph.allocate_id(f"{hole.target.id}p"),
            kind=kind,
            position=hole.target.position,
        ))
        hole.anchor.target = keep.id
    else:
        _as_open_leaf(hole, keep)


def splice(hole: _Hole) -> None:
    """The single child is an open leaf: hang it on the anchor edge."""
    _as_open_leaf(hole, hole.left)


def reopen_and_splice(hole: _Hole) -> None:
    """The single child is a terminal: reopen it and hang it on the anchor edge."""
    _as_open_leaf(hole, hole.left)


def _splice_survivor(hole: _Hole, survivor: SequenceNode) -> None:
    g = hole.graph
    if survivor.kind != DELAY:
        _attach(hole, survivor)
        return

    if hole.reattach.kind == DELAY:
        # Never stack two delays: the inner one goes
        inner = g.out_edges(survivor.id)[0].target
        g.remove_node(survivor.id)
        _attach(hole, g.nodes[inner])
        return

    for edge in g.out_edges(survivor.id):
        edge.outcome = None
        edge.label = None
    _attach(hole, survivor)


def splice_left(hole: _Hole) -> None:
    """One live child (or a live positive branch next to a dead one)."""
    _drop(hole, hole.right, RIGHT_SUBTREE)
    _splice_survivor(hole, hole.left)


def splice_right(hole: _Hole) -> None:
    """Live negative branch next to a dead positive one."""
    _drop(hole, hole.left, LEFT_SUBTREE)
    _splice_survivor(hole, hole.right)


Handler = Callable[[_Hole], None]

# (classifications, left kinds, right kinds, handler)
_ROWS: List[Tuple[Tuple[str, ...], Tuple[str, ...], Tuple[str, ...], Handler]] = [
    # zero or one child
    ((SINGLE, MULTIPLE, CONDITIONAL), (NONE,), (NONE,), replace_with_open_leaf),
    ((SINGLE, MULTIPLE, CONDITIONAL), (OPEN,), (NONE,), splice),
    ((SINGLE, MULTIPLE, CONDITIONAL), (CLOSED,), (NONE,), reopen_and_splice),
    ((SINGLE, MULTIPLE, CONDITIONAL), (DELAY_DEAD,), (NONE,), replace_with_open_leaf),
    ((SINGLE, MULTIPLE, CONDITIONAL), LIVE_KINDS, (NONE,), splice_left),
    # two branches
    ((MULTIPLE, CONDITIONAL), DEAD_KINDS, DEAD_KINDS, replace_with_open_leaf),
    ((MULTIPLE, CONDITIONAL), LIVE_KINDS, DEAD_KINDS, splice_left),
    ((MULTIPLE, CONDITIONAL), DEAD_KINDS, LIVE_KINDS, splice_right),
    ((MULTIPLE, CONDITIONAL), LIVE_KINDS, LIVE_KINDS, splice_left),
]


def _build_table() -> Dict[Tuple[bool, str, str, str], Handler]:
    table = {}
    for classifications, lefts, rights, handler in _ROWS:
        for collapsed, classification, left, right in itertools.product((False, True), classifications, lefts, rights):
            table[(collapsed, classification, left, right)] = handler
    return table


DELETION_TABLE: Dict[Tuple[bool, str, str, str], Handler] = _build_table()


def delete_node(graph: Graph, node_id: str) -> DeletionResult:
    """
    Delete an action and repair the sequence around it.

    Returns a DeletionResult with the new graph and the subtrees removed
    along with it ("left-subtree" / "right-subtree"). Non-action targets
    and shapes with no handler leave the graph unchanged (applied=False).

    Raises:
        KeyError: node_id is not in the graph
    """
    target = graph.node(node_id)
    if target.kind != ACTION:
        logger.warning(f"Cannot delete '{node_id}': only actions can be deleted, got '{target.kind}'")
        return DeletionResult(graph, [], applied=False)

    g = graph.copy()
    target = g.node(node_id)
    anchor = g.in_edge(node_id)
    parent = g.parent(node_id)
    if anchor is None or parent is None:
        logger.error(f"Cannot delete '{node_id}': action has no parent")
        return DeletionResult(graph, [], applied=False)

    children = ordered_branches(g, node_id)
    if len(children) > 2:
        logger.error(f"Cannot delete '{node_id}': unexpected {len(children)} branches")
        return DeletionResult(graph, [], applied=False)
    left = children[0] if children else None
    right = children[1] if len(children) > 1 else None
    classification = target.classification or SINGLE

    # Kinds are taken before anything is detached
    left_kind = branch_kind(g, left)
    right_kind = branch_kind(g, right)

    position = target.position
    reattach = parent
    collapsed = False
    if parent.kind == DELAY and not anchor.outcome:
        grand_edge = g.in_edge(parent.id)
        grandparent = g.parent(parent.id)
        if grand_edge is not None and grandparent is not None:
            anchor = grand_edge
            reattach = grandparent
            position = parent.position
            collapsed = True

    key = (collapsed, classification, left_kind, right_kind)
    handler = DELETION_TABLE.get(key)
    if handler is None:
        logger.error(f"No deletion handler for {key} (node '{node_id}'), leaving sequence unchanged")
        return DeletionResult(graph, [], applied=False)

    g.remove_node(node_id)
    if collapsed:
        g.remove_node(parent.id)

    hole = _Hole(
        graph=g,
        target=target,
        anchor=anchor,
        reattach=reattach,
        position=position,
        left=left,
        right=right,
    )
    handler(hole)
    g.prune_dangling_edges()

    logger.debug(f"Deleted '{node_id}' via {handler.__name__}, removed: {hole.deletions}")
    return DeletionResult(g, hole.deletions)


def preview_deletion(graph: Graph, node_id: str) -> List[str]:
    """Subtrees that deleting node_id would remove, without committing anything."""
    return delete_node(graph, node_id).deletions


def delete_subtree(graph: Graph, node_id: str) -> Graph:
    """
    Remove a node and everything below it, leaving an open leaf in its place.

    Raises:
        KeyError: node_id is not in the graph
    """
    node = graph.node(node_id)
    if node.kind == START:
        logger.warning("Cannot delete the start node")
        return graph
    g = graph.copy()
    anchor = g.in_edge(node_id)
    parent = g.parent(node_id)
    g.remove_subtree(node_id)
    if anchor is not None and parent is not None:
        kind = PLACEHOLDER if parent.kind == START else PLACEHOLDER_TERMINAL
        leaf = g.add_node(SequenceNode(id=g.allocate_id(f"{node_id}p"), kind=kind, position=node.position))
        g.add_edge(SequenceEdge(parent.id, leaf.id, anchor.outcome, anchor.label, anchor.can_have_actions))
    g.prune_dangling_edges()
    return g
