"""
Conversion between sequence graphs and the backend rule tree.

Rule-tree format (one nested action per step):

{
  "action": {
    "type": "INITIATED",
    "data": {},
    "conditions": [
      {
        "rule": {"type": "TRANSITION", "value": "TRANSITION"},
        "action": {"type": "SEND_CONNECTION_REQUEST", "data": {...}, ...}
      }
    ]
  }
}

Each condition is {rule, action?, metadata?}. A delay is not a step of its
own: it is a WAIT pseudo-rule inside the GROUP rule of the condition that
leads to the next action:

    {"type": "WAIT", "value": "WAIT", "metadata": {"wait": <minutes>}}

metadata.isEnd marks a branch that ends, metadata.outcome names the branch
of a multiple-outcome or conditional action, metadata.canHaveActions tells
an open end from a closed one.

Rule templates come from the action catalog and are always copied before
a WAIT is filled in.
"""

import copy
import json
import logging
from typing import Any, Dict, Optional

from sequence_graph.action_config import ActionConfig, ActionTypeDefinition, MultipleOutcomeAction
from sequence_graph.constants import (
    ACTION,
    BRANCHING,
    DELAY,
    GROUP,
    GROUP_OP_AND,
    INITIATED,
    LEAF_KINDS,
    NEGATIVE,
    OPEN_KINDS,
    PLACEHOLDER,
    PLACEHOLDER_TERMINAL,
    POSITIVE,
    ROOT_ID,
    SINGLE,
    START,
    TERMINAL,
    TRANSITION,
    WAIT,
)
from sequence_graph.graph import Graph, SequenceEdge, SequenceNode

logger = logging.getLogger(__name__)

KNOWN_RULE_TYPES = frozenset([TRANSITION, GROUP])


def wait_rule(minutes: int) -> Dict[str, Any]:
    return {"type": WAIT, "value": WAIT, "metadata": {"wait": minutes}}


def transition_rule() -> Dict[str, Any]:
    return {"type": TRANSITION, "value": TRANSITION}


def _as_group(rule: Dict[str, Any]) -> Dict[str, Any]:
    if rule.get("type") == GROUP:
        rule.setdefault("op", GROUP_OP_AND)
        rule.setdefault("children", [])
        return rule
    return {"type": GROUP, "op": GROUP_OP_AND, "children": [rule]}


def _with_wait(rule: Dict[str, Any], minutes: int) -> Dict[str, Any]:
    """Fill the template's WAIT, or append one."""
    rule = _as_group(rule)
    for child in rule["children"]:
        if isinstance(child, dict) and child.get("type") == WAIT:
            child["metadata"] = {"wait": minutes}
            return rule
    rule["children"].append(wait_rule(minutes))
    return rule


def _without_wait(rule: Dict[str, Any]) -> Dict[str, Any]:
    if rule.get("type") != GROUP:
        return rule
    stripped = dict(rule)
    stripped["children"] = [c for c in rule.get("children", []) if not (isinstance(c, dict) and c.get("type") == WAIT)]
    return stripped


def find_wait(rule: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """First-level WAIT of a GROUP rule, or None."""
    if not isinstance(rule, dict) or rule.get("type") != GROUP:
        return None
    for child in rule.get("children") or []:
        if isinstance(child, dict) and child.get("type") == WAIT:
            return child
    return None


# ---------------------------------------------------------------------------
# Graph -> rule tree
# ---------------------------------------------------------------------------

class _Serializer:
    def __init__(self, graph: Graph, config: ActionConfig):
        self.graph = graph
        self.config = config

    def classification(self, node: SequenceNode) -> str:
        return node.classification or self.config.classification(node.action_type) or SINGLE

    def template(self, node: SequenceNode, outcome: str) -> Dict[str, Any]:
        definition = self.config.get(node.action_type)
        if isinstance(definition, MultipleOutcomeAction):
            return definition.outcome_for(outcome).rule_template()
        if definition is not None and definition.classification in BRANCHING:
            return definition.condition_for(outcome).rule_template()
        logger.warning(f"No rule template for '{node.action_type}' ({outcome}), using an empty group")
        return {"type": GROUP, "op": GROUP_OP_AND, "children": []}

    def outcome_of(self, edge: SequenceEdge, child: SequenceNode) -> str:
        if edge.outcome:
            return edge.outcome
        if child.kind == DELAY:
            for out in self.graph.out_edges(child.id):
                if out.outcome:
                    return out.outcome
        return POSITIVE

    def root(self, start: SequenceNode) -> Dict[str, Any]:
        condition: Dict[str, Any] = {"rule": transition_rule()}
        children = self.graph.children(start.id)
        if children:
            child = children[0]
            if child.kind == ACTION:
                condition["action"] = self.action(child)
            elif child.kind == DELAY:
                condition = self.delay_condition(start, self.graph.in_edge(child.id), child, branching=False)
            elif child.kind == TERMINAL:
                condition["metadata"] = {"isEnd": True, "canHaveActions": False}
        return {"action": {"type": INITIATED, "data": {}, "conditions": [condition]}}

    def action(self, node: SequenceNode) -> Dict[str, Any]:
        branching = self.classification(node) in BRANCHING
        result: Dict[str, Any] = {"type": node.action_type, "data": copy.deepcopy(node.data)}
        if node.remote_id is not None:
            result["id"] = node.remote_id

        conditions = []
        end_child = None
        for edge in self.graph.out_edges(node.id):
            child = self.graph.nodes.get(edge.target)
            if child is None:
                continue
            if child.kind in LEAF_KINDS:
                if branching:
                    conditions.append(self.end_condition(node, edge, child))
                else:
                    end_child = child
            elif child.kind == DELAY:
                conditions.append(self.delay_condition(node, edge, child, branching))
            elif child.kind == ACTION:
                conditions.append(self.action_condition(node, edge, child, branching))

        if conditions:
            result["conditions"] = conditions
        if end_child is not None:
            result["metadata"] = {"isEnd": True, "canHaveActions": end_child.kind in OPEN_KINDS}
        return result

    def end_condition(self, parent: SequenceNode, edge: SequenceEdge, child: SequenceNode) -> Dict[str, Any]:
        outcome = self.outcome_of(edge, child)
        return {
            "rule": _without_wait(self.template(parent, outcome)),
            "metadata": {
                "isEnd": True,
                "outcome": outcome,
                "canHaveActions": child.kind in OPEN_KINDS,
            },
        }

    def delay_condition(self, parent: SequenceNode, edge: SequenceEdge, delay: SequenceNode, branching: bool) -> Dict[str, Any]:
        minutes = delay.delay if delay.delay is not None else 0
        condition: Dict[str, Any] = {}
        if branching:
            outcome = self.outcome_of(edge, delay)
            condition["rule"] = _with_wait(self.template(parent, outcome), minutes)
            condition["metadata"] = {"outcome": outcome}
        else:
            condition["rule"] = {"type": GROUP, "op": GROUP_OP_AND, "children": [wait_rule(minutes)]}

        below = self.graph.children(delay.id)
        if below:
            nxt = below[0]
            if nxt.kind == ACTION:
                condition["action"] = self.action(nxt)
            elif nxt.kind in LEAF_KINDS:
                metadata = condition.setdefault("metadata", {})
                metadata["isEnd"] = True
                metadata["canHaveActions"] = nxt.kind in OPEN_KINDS
        return condition

    def action_condition(self, parent: SequenceNode, edge: SequenceEdge, child: SequenceNode, branching: bool) -> Dict[str, Any]:
        if not branching:
            return {"action": self.action(child)}
        outcome = self.outcome_of(edge, child)
        return {
            "rule": _as_group(_without_wait(self.template(parent, outcome))),
            "metadata": {"outcome": outcome},
            "action": self.action(child),
        }


def serialize(graph: Graph, config: ActionConfig) -> Dict[str, Any]:
    """
    Convert a sequence graph to the backend rule tree.

    An empty graph (or one without a start node) serializes to {}.
    """
    start = graph.start()
    if start is None:
        return {}
    return _Serializer(graph, config).root(start)


def export_sequence_to_json(graph: Graph, config: ActionConfig) -> str:
    """Serialize a graph to an indented JSON string."""
    return json.dumps(serialize(graph, config), indent=2)


# ---------------------------------------------------------------------------
# Rule tree -> graph
# ---------------------------------------------------------------------------

class _Deserializer:
    def __init__(self, config: ActionConfig, strict_end_kind: bool):
        self.config = config
        self.strict_end_kind = strict_end_kind
        self.graph = Graph()
        self.counter = 0

    def add(self, kind: str, **fields) -> SequenceNode:
        if kind == START:
            node_id = ROOT_ID
        else:
            self.counter += 1
            node_id = f"{kind}_{self.counter}"
        return self.graph.add_node(SequenceNode(id=node_id, kind=kind, **fields))

    def link(self, source: str, target: str, **fields) -> None:
        self.graph.add_edge(SequenceEdge(source, target, **fields))

    def end(self, metadata: Dict[str, Any], forced: bool = False) -> SequenceNode:
        if self.strict_end_kind:
            return self.add(TERMINAL, allow_deletion=False)
        if metadata.get("canHaveActions") is False or forced:
            return self.add(TERMINAL, allow_deletion=not forced)
        return self.add(PLACEHOLDER_TERMINAL)

    def open_leaf(self, parent: SequenceNode) -> SequenceNode:
        return self.add(PLACEHOLDER if parent.kind == START else PLACEHOLDER_TERMINAL)

    @staticmethod
    def branch_edge(definition: Optional[ActionTypeDefinition], outcome: Optional[str]) -> Dict[str, Any]:
        """Edge fields for the edge leaving a branching action on `outcome`."""
        if definition is None or definition.classification not in BRANCHING:
            return {}
        fields: Dict[str, Any] = {"outcome": outcome, "label": definition.label_for(outcome)}
        if isinstance(definition, MultipleOutcomeAction) and outcome == POSITIVE:
            fields["can_have_actions"] = bool(definition.positive.allowed_next)
        return fields

    @staticmethod
    def _label_below_delay(definition: Optional[ActionTypeDefinition], outcome: Optional[str]) -> bool:
        return isinstance(definition, MultipleOutcomeAction) and outcome == NEGATIVE

    @staticmethod
    def _forced_end(definition: Optional[ActionTypeDefinition], outcome: Optional[str]) -> bool:
        return isinstance(definition, MultipleOutcomeAction) and outcome == POSITIVE and definition.positive_closed

    def root(self, tree: Dict[str, Any]) -> Graph:
        start = self.add(START)
        action = tree.get("action") or {}
        conditions = action.get("conditions") or []
        if conditions and isinstance(conditions[0], dict):
            self.condition(start, None, conditions[0], 0)
        if not self.graph.out_edges(start.id):
            self.link(start.id, self.open_leaf(start).id)
        return self.graph

    def action(self, parent_id: str, obj: Dict[str, Any], edge_fields: Dict[str, Any]) -> SequenceNode:
        action_type = obj.get("type")
        definition = self.config.get(action_type)
        if definition is None:
            logger.warning(f"Action type '{action_type}' not found in config, treating it as single outcome")
        node = self.add(
            ACTION,
            action_type=action_type,
            classification=definition.classification if definition else SINGLE,
            data=copy.deepcopy(obj.get("data") or {}),
            remote_id=obj.get("id"),
        )
        self.link(parent_id, node.id, **edge_fields)

        metadata = obj.get("metadata") or {}
        if metadata.get("isEnd"):
            # An ending action has no further conditions
            self.link(node.id, self.end(metadata).id)
            return node

        conditions = [c for c in obj.get("conditions") or [] if isinstance(c, dict)]
        for index, condition in enumerate(conditions):
            self.condition(node, definition, condition, index)
        if not self.graph.out_edges(node.id):
            self.link(node.id, self.open_leaf(node).id)
        return node

    def condition(self, parent: SequenceNode, definition: Optional[ActionTypeDefinition], cond: Dict[str, Any], index: int) -> None:
        rule = cond.get("rule")
        metadata = cond.get("metadata") or {}
        action = cond.get("action")
        is_end = metadata.get("isEnd") is True

        branching = definition is not None and definition.classification in BRANCHING
        outcome = None
        if branching:
            outcome = metadata.get("outcome") or (POSITIVE if index == 0 else NEGATIVE)
        edge_fields = self.branch_edge(definition, outcome)
        forced = self._forced_end(definition, outcome)

        if isinstance(rule, dict) and rule.get("type") not in KNOWN_RULE_TYPES:
            logger.warning(f"Ignoring unknown rule type {rule.get('type')!r} under '{parent.id}'")
            # Read as a branch with no wait and no further action
            if is_end:
                self.link(parent.id, self.end(metadata, forced).id, **edge_fields)
            elif branching:
                self.link(parent.id, self.open_leaf(parent).id, **edge_fields)
            return

        wait = find_wait(rule)
        if wait is not None:
            minutes = (wait.get("metadata") or {}).get("wait", 0)
            delay = self.add(DELAY, delay=minutes)
            if self._label_below_delay(definition, outcome):
                above, below = {}, edge_fields
            else:
                above, below = edge_fields, {}
            self.link(parent.id, delay.id, **above)

            if is_end:
                self.link(delay.id, self.end(metadata, forced).id, **below)
            elif isinstance(action, dict):
                self.action(delay.id, action, below)
            else:
                self.link(delay.id, self.open_leaf(delay).id, **below)
            return

        if is_end:
            self.link(parent.id, self.end(metadata, forced).id, **edge_fields)
        elif isinstance(action, dict):
            self.action(parent.id, action, edge_fields)
        elif branching:
            self.link(parent.id, self.open_leaf(parent).id, **edge_fields)


def deserialize(tree: Dict[str, Any], config: ActionConfig, strict_end_kind: bool = False) -> Graph:
    """
    Build a sequence graph from a backend rule tree.

    Node ids are generated deterministically (<kind>_<n>, start is "root").
    With strict_end_kind every end becomes a terminal, which is how
    read-only previews are rendered. {} yields an empty graph.
    """
    if not tree:
        return Graph()
    return _Deserializer(config, strict_end_kind).root(tree)


def import_sequence_from_json(json_str: str, config: ActionConfig, strict_end_kind: bool = False) -> Graph:
    """
    Parse a JSON rule tree and build its graph.

    Raises:
        ValueError: the text is not valid JSON or not an object
    """
    try:
        tree = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid sequence JSON: {e}") from e
    if not isinstance(tree, dict):
        raise ValueError("Sequence JSON must be an object")
    return deserialize(tree, config, strict_end_kind)
