"""
Editing session for a campaign sequence.

SequenceEditor owns the one mutable reference to the current graph. All
structural writes go through the insertion and deletion engines and are
recorded in the edit ledger; undo and redo rebuild the graph by replaying
the ledger from the session's base graph. Layout is recomputed on every
commit.

Usage:
    editor = SequenceEditor(config)
    editor.insert("rootc", "SEND_CONNECTION_REQUEST")
    editor.delete("rootcc", confirm=lambda removed: ask_user(removed))
    tree = editor.serialize()
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from sequence_graph.action_config import ActionConfig
from sequence_graph.config import get_layout_gaps, get_default_delay
from sequence_graph.constants import DEFAULT_DELAY_MINUTES, LEVEL_GAP, SIBLING_GAP
from sequence_graph.conversion import deserialize, serialize
from sequence_graph.deletion import DeletionResult, delete_node
from sequence_graph.graph import Graph, new_sequence
from sequence_graph.layout import Size, apply_layout, arrange
from sequence_graph import mutation_manager as mm
from sequence_graph.resolver import resolve, resolve_menu
from sequence_graph.templates import SequenceTemplate

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[List[str]], bool]


class SequenceEditor:
    def __init__(
        self,
        config: ActionConfig,
        author: str = "editor",
        default_delay: int = DEFAULT_DELAY_MINUTES,
        level_gap: int = LEVEL_GAP,
        sibling_gap: int = SIBLING_GAP,
    ):
        self.config = config
        self.author = author
        self.default_delay = default_delay
        self.level_gap = level_gap
        self.sibling_gap = sibling_gap
        self._sizes: Dict[str, Size] = {}
        self._ledger: List[Dict[str, Any]] = []
        self._redo: List[Dict[str, Any]] = []
        self._base: Graph = new_sequence()
        self.graph: Graph = self._arrange(self._base)

    @classmethod
    def from_settings(cls, config: ActionConfig, author: str = "editor") -> "SequenceEditor":
        """Editor using the delay and layout gaps from config.json / environment."""
        level_gap, sibling_gap = get_layout_gaps()
        return cls(config, author=author, default_delay=get_default_delay(), level_gap=level_gap, sibling_gap=sibling_gap)

    # -- session ----------------------------------------------------------

    def _arrange(self, graph: Graph) -> Graph:
        positions = arrange(graph, level_gap=self.level_gap, sibling_gap=self.sibling_gap, sizes=self._sizes)
        return apply_layout(graph, positions)

    def _reset(self, base: Graph) -> None:
        self._base = base
        self._ledger = []
        self._redo = []
        self.graph = self._arrange(base)

    def new(self) -> Graph:
        """Start over with start -> placeholder."""
        self._reset(new_sequence())
        return self.graph

    def clear(self) -> Graph:
        """Clear the canvas. Undo history is dropped."""
        logger.info("Clearing sequence canvas")
        return self.new()

    def load(self, tree: Dict[str, Any], strict_end_kind: bool = False) -> Graph:
        """Replace the session graph with a deserialized rule tree."""
        graph = deserialize(tree, self.config, strict_end_kind=strict_end_kind)
        if graph.is_empty():
            graph = new_sequence()
        self._reset(graph)
        return self.graph

    def load_template(self, template: SequenceTemplate) -> Graph:
        logger.info(f"Loading template '{template.id}'")
        return self.load(template.sequence)

    # -- ledger -----------------------------------------------------------

    def _record(self, mutation: Dict[str, Any], graph: Graph, clear_redo: bool = True) -> bool:
        if graph is self.graph:
            return False
        self._ledger.append(mutation)
        if clear_redo:
            self._redo = []
        self.graph = self._arrange(graph)
        return True

    def _commit(self, node_id: str, action: str, payload: Any = None) -> bool:
        mutation = mm.create_mutation(self.author, node_id, action, payload)
        return self._record(mutation, mm.apply_mutation(self.graph, mutation, self.config))

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._ledger)

    @property
    def can_undo(self) -> bool:
        return bool(self._ledger)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> bool:
        if not self._ledger:
            return False
        self._redo.append(self._ledger.pop())
        self.graph = self._arrange(mm.apply_mutations(self._base, self._ledger, self.config))
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        mutation = self._redo.pop()
        return self._record(mutation, mm.apply_mutation(self.graph, mutation, self.config), clear_redo=False)

    # -- queries ----------------------------------------------------------

    def allowed_actions(self, placeholder_id: str) -> List[str]:
        return resolve(self.graph, placeholder_id, self.config)

    def menu(self, placeholder_id: str) -> List[Dict[str, Any]]:
        return resolve_menu(self.graph, placeholder_id, self.config)

    def preview_delete(self, node_id: str) -> List[str]:
        """Subtrees a delete would remove, without committing it."""
        return delete_node(self.graph, node_id).deletions

    def serialize(self) -> Dict[str, Any]:
        return serialize(self.graph, self.config)

    def export_json(self) -> str:
        return json.dumps(self.serialize(), indent=2)

    # -- edits ------------------------------------------------------------

    def insert(self, placeholder_id: str, action_type: str) -> bool:
        return self._commit(placeholder_id, mm.INSERT_ACTION, {
            "action_type": action_type,
            "delay_minutes": self.default_delay,
        })

    def delete(self, node_id: str, confirm: Optional[ConfirmCallback] = None) -> DeletionResult:
        """
        Delete an action.

        When the deletion would also remove a subtree, confirm (if given) is
        called with the list of removed subtrees; returning False cancels
        the delete.
        """
        result = delete_node(self.graph, node_id)
        if not result.applied:
            return result
        if result.deletions and confirm is not None and not confirm(result.deletions):
            logger.info(f"Deletion of '{node_id}' cancelled")
            return DeletionResult(self.graph, result.deletions, applied=False)

        mutation = mm.create_mutation(self.author, node_id, mm.DELETE_NODE)
        self._record(mutation, result.graph)
        return DeletionResult(self.graph, result.deletions)

    def end_branch(self, node_id: str) -> bool:
        return self._commit(node_id, mm.END_BRANCH)

    def reopen_branch(self, node_id: str) -> bool:
        return self._commit(node_id, mm.REOPEN_BRANCH)

    def set_delay(self, node_id: str, minutes: int) -> bool:
        return self._commit(node_id, mm.SET_DELAY, minutes)

    def update_action_data(self, node_id: str, data: Dict[str, Any]) -> bool:
        return self._commit(node_id, mm.UPDATE_DATA, dict(data))

    def arrange(self, sizes: Optional[Dict[str, Size]] = None) -> Graph:
        """Re-run layout, optionally with measured node sizes."""
        if sizes:
            self._sizes.update(sizes)
        self.graph = self._arrange(self.graph)
        return self.graph
