"""
Allowed-actions resolution.

Given an insertion point, decide which action types the editor may offer.
The nearest ancestor action that "changes the allowed next actions" is
authoritative, and the list is picked by the branch leading down to the
insertion point. Actions flagged changesActionsAllowed=false are passed
through, as are delays.

The result is widened with the allowed list one context further up (the
"previous context"), and empty lists fall back to the initial list.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sequence_graph.action_config import ENTRY_TYPE_ACTION, ENTRY_TYPE_CONDITIONAL, ActionConfig
from sequence_graph.constants import ACTION, START
from sequence_graph.graph import Graph, branch_outcome

logger = logging.getLogger(__name__)


def _find_context(graph: Graph, config: ActionConfig, node_id: str) -> Optional[Tuple[Optional[List[str]], str]]:
    """
    Walk the ancestors of node_id looking for the authoritative action.

    Returns (allowed list for the branch taken, action id), or None when the
    walk reaches the start node without finding one.
    """
    below = node_id
    current = graph.parent(node_id)
    while current is not None and current.kind != START:
        if current.kind == ACTION:
            definition = config.get(current.action_type)
            if definition is None:
                logger.warning(f"Action type '{current.action_type}' of node '{current.id}' not found in config, skipping")
            elif definition.changes_allowed_next:
                return definition.allowed_for(branch_outcome(graph, below)), current.id
        below = current.id
        current = graph.parent(current.id)
    return None


def _union(first: List[str], second: List[str]) -> List[str]:
    seen = set()
    result = []
    for item in list(first) + list(second):
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def resolve(graph: Graph, placeholder_id: str, config: ActionConfig) -> List[str]:
    """
    Return the ordered list of action types insertable at placeholder_id.

    Never raises: unknown ids and empty results fall back to the initial list.
    """
    initial = config.initial_actions
    if not graph.has_node(placeholder_id):
        logger.warning(f"Cannot resolve actions for unknown node '{placeholder_id}'")
        return initial

    context = _find_context(graph, config, placeholder_id)
    if context is None:
        actions: Optional[List[str]] = initial
        previous: Optional[List[str]] = actions
    else:
        actions, source_id = context
        previous_context = _find_context(graph, config, source_id)
        previous = previous_context[0] if previous_context is not None else actions

    # Empty lists fall back to the initial list on either side
    actions = actions or initial
    previous = previous or initial

    result = []
    for action_type in _union(actions, previous):
        if action_type not in config:
            logger.warning(f"Action type \"{action_type}\" not found in sequence config")
            continue
        result.append(action_type)

    return result or initial


def menu_items(config: ActionConfig, action_types: List[str]) -> List[Dict[str, Any]]:
    """
    Build insertion-menu entries, plain actions first, then conditionals.

    Each entry: {"id", "label", "icon", "type"}. Types missing from the
    config are skipped.
    """
    items = []
    for action_type in action_types:
        definition = config.get(action_type)
        if definition is None:
            continue
        items.append({
            "id": action_type,
            "label": definition.label,
            "icon": definition.icon,
            "type": definition.entry_type,
        })
    order = {ENTRY_TYPE_ACTION: 0, ENTRY_TYPE_CONDITIONAL: 1}
    return sorted(items, key=lambda item: order.get(item["type"], 2))


def resolve_menu(graph: Graph, placeholder_id: str, config: ActionConfig) -> List[Dict[str, Any]]:
    """Convenience: resolve() followed by menu_items()."""
    return menu_items(config, resolve(graph, placeholder_id, config))
