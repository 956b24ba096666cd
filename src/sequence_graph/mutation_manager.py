"""
Edit ledger for sequence editing sessions.

Every committed edit is recorded as a mutation dict:

{
  "timestamp": "2026-01-14T12:00:00Z",
  "author": "editor",
  "node_id": "rootcc",
  "action": "INSERT_ACTION",  # or DELETE_NODE, END_BRANCH, REOPEN_BRANCH, SET_DELAY, UPDATE_DATA
  "payload": {"action_type": "SEND_MESSAGE", "delay_minutes": 180}
}

Node ids are allocated deterministically, so replaying a ledger on the
same base graph always rebuilds the same graph. Undo and redo rely on it.

This module exposes:
- create_mutation(author, node_id, action, payload=None, timestamp=None) -> dict
- apply_mutation(graph, mutation, config) -> Graph
- apply_mutations(graph, mutations, config) -> Graph
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sequence_graph.action_config import ActionConfig
from sequence_graph.constants import DEFAULT_DELAY_MINUTES
from sequence_graph.deletion import delete_node
from sequence_graph.graph import Graph
from sequence_graph.insertion import end_branch, insert_action, reopen_branch, set_delay, update_action_data

logger = logging.getLogger(__name__)

INSERT_ACTION = "INSERT_ACTION"
DELETE_NODE = "DELETE_NODE"
END_BRANCH = "END_BRANCH"
REOPEN_BRANCH = "REOPEN_BRANCH"
SET_DELAY = "SET_DELAY"
UPDATE_DATA = "UPDATE_DATA"

VALID_ACTIONS = frozenset([INSERT_ACTION, DELETE_NODE, END_BRANCH, REOPEN_BRANCH, SET_DELAY, UPDATE_DATA])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def create_mutation(
    author: str,
    node_id: str,
    action: str,
    payload: Any = None,
    timestamp: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a mutation record.

    Raises:
        ValueError: action is not a known mutation action
    """
    if action not in VALID_ACTIONS:
        raise ValueError(f"Invalid mutation action: {action}. Must be one of {sorted(VALID_ACTIONS)}")
    return {
        "timestamp": timestamp or _now_iso(),
        "author": author,
        "node_id": node_id,
        "action": action,
        "payload": payload,
    }


def apply_mutation(graph: Graph, mutation: Dict[str, Any], config: ActionConfig) -> Graph:
    """
    Apply one mutation and return the resulting graph.

    The input graph itself is returned when the mutation changes nothing
    (unknown action, rejected edit).
    """
    action = mutation.get("action")
    node_id = mutation.get("node_id")
    payload = mutation.get("payload")

    if action == INSERT_ACTION:
        payload = payload or {}
        return insert_action(
            graph,
            node_id,
            payload.get("action_type"),
            config,
            delay_minutes=payload.get("delay_minutes", DEFAULT_DELAY_MINUTES),
        )
    elif action == DELETE_NODE:
        return delete_node(graph, node_id).graph
    elif action == END_BRANCH:
        return end_branch(graph, node_id)
    elif action == REOPEN_BRANCH:
        return reopen_branch(graph, node_id)
    elif action == SET_DELAY:
        return set_delay(graph, node_id, payload)
    elif action == UPDATE_DATA:
        return update_action_data(graph, node_id, payload or {})

    logger.warning(f"Skipping mutation with unknown action {action!r} on '{node_id}'")
    return graph


def apply_mutations(graph: Graph, mutations: List[Dict[str, Any]], config: ActionConfig) -> Graph:
    """Replay mutations in order, oldest first."""
    for mutation in mutations:
        graph = apply_mutation(graph, mutation, config)
    return graph
