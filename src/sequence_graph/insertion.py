"""
Node insertion and branch-end edits.

insert_action() grows the sequence at an insertion point (placeholder or
placeholder-terminal). Every new action sits below a delay: if the
insertion point already hangs off a delay the action takes its place,
otherwise the insertion point itself becomes that delay. Below the action
the shape depends on the action's classification:

    single        action -> placeholder-terminal
    multiple      action -(positive)-> terminal | placeholder-terminal
                  action -> delay -(negative)-> placeholder-terminal
    conditional   action -(positive)-> placeholder-terminal
                  action -(negative)-> placeholder-terminal

Ids are derived from the insertion point id (suffixes c, cc, cl, cr, crc)
through Graph.allocate_id, so a replayed edit produces the same ids.
"""

import logging
from typing import Any, Dict

from sequence_graph.action_config import ActionConfig, ConditionalAction, MultipleOutcomeAction
from sequence_graph.constants import (
    ACTION,
    DEFAULT_DELAY_MINUTES,
    DELAY,
    NEGATIVE,
    OPEN_KINDS,
    PLACEHOLDER_TERMINAL,
    POSITIVE,
    TERMINAL,
)
from sequence_graph.graph import Graph, SequenceEdge, SequenceNode

logger = logging.getLogger(__name__)


def _open_leaf(graph: Graph, base_id: str, position) -> SequenceNode:
    return graph.add_node(SequenceNode(id=graph.allocate_id(base_id), kind=PLACEHOLDER_TERMINAL, position=position))


def insert_action(
    graph: Graph,
    placeholder_id: str,
    action_type: str,
    config: ActionConfig,
    delay_minutes: int = DEFAULT_DELAY_MINUTES,
) -> Graph:
    """
    Insert an action of action_type at placeholder_id.

    Returns a new graph. Unknown action types and non-insertable targets
    are logged and the input graph is returned unchanged.

    Raises:
        KeyError: placeholder_id is not in the graph
    """
    target = graph.node(placeholder_id)
    if target.kind not in OPEN_KINDS:
        logger.warning(f"Cannot insert at '{placeholder_id}': node kind '{target.kind}' is not an insertion point")
        return graph

    definition = config.get(action_type)
    if definition is None:
        logger.warning(f"Cannot insert unknown action type '{action_type}'")
        return graph

    g = graph.copy()
    position = target.position
    parent = g.parent(placeholder_id)

    # Anything below the insertion point is replaced
    for child in g.children(placeholder_id):
        g.remove_subtree(child.id)

    if parent is None or parent.kind != DELAY:
        # The insertion point becomes the delay above the new action
        g.nodes[placeholder_id] = SequenceNode(id=placeholder_id, kind=DELAY, delay=delay_minutes, position=position)
        action_id = g.allocate_id(f"{placeholder_id}c")
        g.add_edge(SequenceEdge(placeholder_id, action_id))
    else:
        incoming = g.in_edge(placeholder_id)
        g.remove_node(placeholder_id)
        action_id = g.allocate_id(f"{placeholder_id}c")
        # Outcome and label stay on the delay's outgoing edge
        incoming.target = action_id

    g.add_node(SequenceNode(
        id=action_id,
        kind=ACTION,
        action_type=action_type,
        classification=definition.classification,
        position=position,
    ))

    if isinstance(definition, MultipleOutcomeAction):
        positive = definition.positive
        if definition.positive_closed:
            left = g.add_node(SequenceNode(
                id=g.allocate_id(f"{placeholder_id}cl"),
                kind=TERMINAL,
                allow_deletion=False,
                position=position,
            ))
        else:
            left = _open_leaf(g, f"{placeholder_id}cl", position)
        g.add_edge(SequenceEdge(
            action_id,
            left.id,
            outcome=POSITIVE,
            label=positive.label,
            can_have_actions=bool(positive.allowed_next),
        ))

        wait = g.add_node(SequenceNode(
            id=g.allocate_id(f"{placeholder_id}cr"),
            kind=DELAY,
            delay=delay_minutes,
            position=position,
        ))
        g.add_edge(SequenceEdge(action_id, wait.id))
        right = _open_leaf(g, f"{placeholder_id}crc", position)
        g.add_edge(SequenceEdge(wait.id, right.id, outcome=NEGATIVE, label=definition.negative.label))

    elif isinstance(definition, ConditionalAction):
        left = _open_leaf(g, f"{placeholder_id}cl", position)
        right = _open_leaf(g, f"{placeholder_id}cr", position)
        g.add_edge(SequenceEdge(action_id, left.id, outcome=POSITIVE, label=definition.label_for(POSITIVE)))
        g.add_edge(SequenceEdge(action_id, right.id, outcome=NEGATIVE, label=definition.label_for(NEGATIVE)))

    else:
        leaf = _open_leaf(g, f"{placeholder_id}cc", position)
        g.add_edge(SequenceEdge(action_id, leaf.id))

    logger.debug(f"Inserted {action_type} as '{action_id}' at '{placeholder_id}'")
    return g


def end_branch(graph: Graph, node_id: str) -> Graph:
    """Close a placeholder-terminal as a terminal the user may reopen."""
    node = graph.node(node_id)
    if node.kind != PLACEHOLDER_TERMINAL:
        logger.warning(f"Cannot end branch at '{node_id}': node kind '{node.kind}' is not a placeholder-terminal")
        return graph
    g = graph.copy()
    g.nodes[node_id] = SequenceNode(id=node_id, kind=TERMINAL, allow_deletion=True, position=node.position, size=node.size)
    return g


def reopen_branch(graph: Graph, node_id: str) -> Graph:
    """Turn a user-ended terminal back into a placeholder-terminal."""
    node = graph.node(node_id)
    if node.kind != TERMINAL or not node.allow_deletion:
        logger.warning(f"Cannot reopen '{node_id}': only user-ended terminals can be reopened")
        return graph
    g = graph.copy()
    g.nodes[node_id] = SequenceNode(id=node_id, kind=PLACEHOLDER_TERMINAL, position=node.position, size=node.size)
    return g


def set_delay(graph: Graph, node_id: str, minutes: int) -> Graph:
    """
    Change the duration of a delay node.

    Raises:
        KeyError: node_id is not in the graph
        ValueError: minutes is negative or not an integer
    """
    node = graph.node(node_id)
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 0:
        raise ValueError(f"Invalid delay: {minutes!r}. Must be a non-negative number of minutes")
    if node.kind != DELAY:
        logger.warning(f"Cannot set delay on '{node_id}': node kind '{node.kind}' is not a delay")
        return graph
    g = graph.copy()
    g.nodes[node_id].delay = minutes
    return g


def update_action_data(graph: Graph, node_id: str, data: Dict[str, Any]) -> Graph:
    """Merge business data (message text, note, ...) into an action node."""
    node = graph.node(node_id)
    if node.kind != ACTION:
        logger.warning(f"Cannot update data of '{node_id}': node kind '{node.kind}' is not an action")
        return graph
    g = graph.copy()
    g.nodes[node_id].data.update(data)
    return g
