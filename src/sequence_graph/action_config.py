"""
Action-type catalog for the sequence graph engine.

The backend describes every LinkedIn action the editor can place in a
sequence in a declarative catalog (JSON or YAML):

    {
      "sequence": {
        "initial": {"actionsAllowed": ["SEND_CONNECTION_REQUEST", ...]},
        "SEND_MESSAGE": {
          "label": "Send Message",
          "icon": "message",
          "type": "action",
          "outcomeType": "multiple",
          "outcomes": [
            {"type": "positive", "label": "Replied", "rule": {...}, "actionsAllowed": []},
            {"type": "negative", "label": "No reply", "rule": {...}}
          ]
        },
        ...
      }
    }

Entries are validated once, at load time, into a closed set of definition
classes (SingleOutcomeAction, MultipleOutcomeAction, ConditionalAction).
Invalid entries are reported in ActionConfig.validation_errors and left out
of the catalog; nothing downstream ever sees a half-formed entry.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

import yaml

from sequence_graph.config import resolve_path_setting
from sequence_graph.constants import (
    CONDITIONAL,
    GROUP,
    GROUP_OP_AND,
    MULTIPLE,
    NEGATIVE,
    POSITIVE,
    SINGLE,
)

logger = logging.getLogger(__name__)

INITIAL_KEY = "initial"

# Entry "type" values in the catalog
ENTRY_TYPE_ACTION = "action"
ENTRY_TYPE_CONDITIONAL = "conditional"
VALID_ENTRY_TYPES = frozenset([ENTRY_TYPE_ACTION, ENTRY_TYPE_CONDITIONAL])
VALID_OUTCOME_TYPES = frozenset([SINGLE, MULTIPLE])

DEFAULT_POSITIVE_LABEL = "Yes"
DEFAULT_NEGATIVE_LABEL = "No"


def _empty_group() -> Dict[str, Any]:
    return {"type": GROUP, "op": GROUP_OP_AND, "children": []}


@dataclass(frozen=True)
class Outcome:
    """One branch of a multiple-outcome action, or one condition of a conditional."""
    type: str
    label: Optional[str] = None
    rule: Optional[Dict[str, Any]] = field(default=None, hash=False)
    allowed_next: Optional[List[str]] = field(default=None, hash=False)

    def rule_template(self) -> Dict[str, Any]:
        """Return a private copy of the rule so callers can fill in WAIT metadata."""
        if not self.rule:
            return _empty_group()
        return copy.deepcopy(self.rule)


@dataclass(frozen=True)
class SingleOutcomeAction:
    key: str
    label: str
    icon: Optional[str] = None
    allowed_next: Optional[List[str]] = field(default=None, hash=False)
    changes_allowed_next: bool = True

    classification: ClassVar[str] = SINGLE
    entry_type: ClassVar[str] = ENTRY_TYPE_ACTION

    def allowed_for(self, outcome: Optional[str]) -> Optional[List[str]]:
        return self.allowed_next


@dataclass(frozen=True)
class MultipleOutcomeAction:
    key: str
    label: str
    positive: Outcome
    negative: Outcome
    icon: Optional[str] = None
    changes_allowed_next: bool = True

    classification: ClassVar[str] = MULTIPLE
    entry_type: ClassVar[str] = ENTRY_TYPE_ACTION

    def outcome_for(self, outcome: Optional[str]) -> Outcome:
        """Branches without an outcome are treated as the positive branch."""
        return self.negative if outcome == NEGATIVE else self.positive

    def allowed_for(self, outcome: Optional[str]) -> Optional[List[str]]:
        return self.outcome_for(outcome).allowed_next

    def label_for(self, outcome: Optional[str]) -> Optional[str]:
        return self.outcome_for(outcome).label

    @property
    def positive_closed(self) -> bool:
        """An explicit empty list on the positive outcome ends that branch for good."""
        return self.positive.allowed_next is not None and len(self.positive.allowed_next) == 0


@dataclass(frozen=True)
class ConditionalAction:
    key: str
    label: str
    conditions: List[Outcome] = field(hash=False)
    icon: Optional[str] = None
    changes_allowed_next: bool = True

    classification: ClassVar[str] = CONDITIONAL
    entry_type: ClassVar[str] = ENTRY_TYPE_CONDITIONAL

    def condition_for(self, outcome: Optional[str]) -> Outcome:
        """Matching condition for an outcome; falls back to the first condition."""
        for condition in self.conditions:
            if condition.type == outcome:
                return condition
        return self.conditions[0]

    def allowed_for(self, outcome: Optional[str]) -> Optional[List[str]]:
        return self.condition_for(outcome).allowed_next

    def label_for(self, outcome: Optional[str]) -> str:
        """Branch edges of a conditional always read "Yes" / "No"; catalog labels are ignored."""
        return DEFAULT_NEGATIVE_LABEL if outcome == NEGATIVE else DEFAULT_POSITIVE_LABEL


ActionTypeDefinition = Union[SingleOutcomeAction, MultipleOutcomeAction, ConditionalAction]


class ActionConfig:
    """
    Validated action-type catalog.

    Holds the definitions keyed by action type, the global initial list and
    the validation errors collected while parsing.
    """

    def __init__(
        self,
        definitions: Optional[Dict[str, ActionTypeDefinition]] = None,
        initial: Optional[List[str]] = None,
        validation_errors: Optional[List[str]] = None,
    ):
        self.definitions: Dict[str, ActionTypeDefinition] = dict(definitions or {})
        self._initial: List[str] = list(initial or [])
        self.validation_errors: List[str] = list(validation_errors or [])

    def __contains__(self, action_type: str) -> bool:
        return action_type in self.definitions

    def __len__(self) -> int:
        return len(self.definitions)

    def get(self, action_type: Optional[str]) -> Optional[ActionTypeDefinition]:
        if action_type is None:
            return None
        return self.definitions.get(action_type)

    @property
    def initial_actions(self) -> List[str]:
        """Actions allowed directly after the start node."""
        return list(self._initial)

    def classification(self, action_type: Optional[str]) -> Optional[str]:
        definition = self.get(action_type)
        return definition.classification if definition else None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ActionConfig":
        return parse_action_config(raw)


# ---------------------------------------------------------------------------
# Parsing and validation
# ---------------------------------------------------------------------------

def _validate_action_list(value: Any, where: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return [f"{where}: 'actionsAllowed' must be an array of strings"]
    return []


def _validate_outcomes(key: str, entry: Dict[str, Any], list_key: str) -> List[str]:
    errors = []
    items = entry.get(list_key)
    if not isinstance(items, list) or not items:
        return [f"Action '{key}': missing required '{list_key}' array"]
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            errors.append(f"Action '{key}': {list_key}[{i}] must be an object")
            continue
        if 'type' not in item:
            errors.append(f"Action '{key}': {list_key}[{i}] missing required 'type'")
        if 'rule' in item and not isinstance(item['rule'], dict):
            errors.append(f"Action '{key}': {list_key}[{i}] 'rule' must be an object")
        errors.extend(_validate_action_list(item.get('actionsAllowed'), f"Action '{key}' {list_key}[{i}]"))
    return errors


def validate_entry(key: str, entry: Any) -> List[str]:
    """Validate a single catalog entry. Returns list of error messages."""
    if not isinstance(entry, dict):
        return [f"Action '{key}': definition must be an object"]

    errors = []
    entry_type = entry.get('type')
    if entry_type not in VALID_ENTRY_TYPES:
        errors.append(f"Action '{key}': invalid type {entry_type!r} (must be: action, conditional)")
        return errors

    if 'changesActionsAllowed' in entry and not isinstance(entry['changesActionsAllowed'], bool):
        errors.append(f"Action '{key}': 'changesActionsAllowed' must be a boolean")

    if entry_type == ENTRY_TYPE_CONDITIONAL:
        errors.extend(_validate_outcomes(key, entry, 'conditions'))
        return errors

    outcome_type = entry.get('outcomeType')
    if outcome_type not in VALID_OUTCOME_TYPES:
        errors.append(f"Action '{key}': invalid outcomeType {outcome_type!r} (must be: single, multiple)")
        return errors

    if outcome_type == SINGLE:
        errors.extend(_validate_action_list(entry.get('actionsAllowed'), f"Action '{key}'"))
    else:
        outcome_errors = _validate_outcomes(key, entry, 'outcomes')
        errors.extend(outcome_errors)
        if not outcome_errors:
            types = {o.get('type') for o in entry['outcomes']}
            for required in (POSITIVE, NEGATIVE):
                if required not in types:
                    errors.append(f"Action '{key}': multiple outcome action needs a '{required}' outcome")

    return errors


def _parse_outcome(raw: Dict[str, Any]) -> Outcome:
    allowed = raw.get('actionsAllowed')
    return Outcome(
        type=raw['type'],
        label=raw.get('label'),
        rule=copy.deepcopy(raw.get('rule')),
        allowed_next=list(allowed) if allowed is not None else None,
    )


def _build_definition(key: str, entry: Dict[str, Any]) -> ActionTypeDefinition:
    label = entry.get('label') or key
    icon = entry.get('icon')
    changes = entry.get('changesActionsAllowed', True)

    if entry['type'] == ENTRY_TYPE_CONDITIONAL:
        return ConditionalAction(
            key=key,
            label=label,
            icon=icon,
            conditions=[_parse_outcome(c) for c in entry['conditions']],
            changes_allowed_next=changes,
        )

    if entry['outcomeType'] == MULTIPLE:
        outcomes = {o['type']: _parse_outcome(o) for o in entry['outcomes']}
        return MultipleOutcomeAction(
            key=key,
            label=label,
            icon=icon,
            positive=outcomes[POSITIVE],
            negative=outcomes[NEGATIVE],
            changes_allowed_next=changes,
        )

    allowed = entry.get('actionsAllowed')
    return SingleOutcomeAction(
        key=key,
        label=label,
        icon=icon,
        allowed_next=list(allowed) if allowed is not None else None,
        changes_allowed_next=changes,
    )


def parse_action_config(raw: Any) -> ActionConfig:
    """
    Parse a raw catalog into an ActionConfig.

    Accepts either {"sequence": {...}} or the bare mapping. Entries that
    fail validation are dropped with a logged warning.
    """
    if isinstance(raw, dict) and isinstance(raw.get('sequence'), dict):
        raw = raw['sequence']
    if not isinstance(raw, dict):
        return ActionConfig(validation_errors=["Action config must be an object"])

    errors: List[str] = []
    initial: List[str] = []
    initial_entry = raw.get(INITIAL_KEY) or {}
    if isinstance(initial_entry, dict):
        initial_errors = _validate_action_list(initial_entry.get('actionsAllowed'), "initial")
        if initial_errors:
            errors.extend(initial_errors)
        else:
            initial = list(initial_entry.get('actionsAllowed') or [])
    else:
        errors.append("initial: must be an object")

    definitions: Dict[str, ActionTypeDefinition] = {}
    for key, entry in raw.items():
        if key == INITIAL_KEY:
            continue
        entry_errors = validate_entry(key, entry)
        if entry_errors:
            for error in entry_errors:
                logger.warning(f"Skipping invalid action config entry: {error}")
            errors.extend(entry_errors)
            continue
        definitions[key] = _build_definition(key, entry)

    return ActionConfig(definitions, initial, errors)


def _read_config_file(path: Path) -> Tuple[Any, List[str]]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in ('.yaml', '.yml'):
                return yaml.safe_load(f) or {}, []
            return json.load(f), []
    except json.JSONDecodeError as e:
        return {}, [f"Invalid JSON in {path.name}: {e}"]
    except yaml.YAMLError as e:
        return {}, [f"Invalid YAML in {path.name}: {e}"]
    except OSError as e:
        return {}, [f"Failed to load {path.name}: {e}"]


def load_action_config(path: Path) -> ActionConfig:
    """Load and validate a catalog file (.json, .yaml or .yml)."""
    raw, read_errors = _read_config_file(Path(path))
    for error in read_errors:
        logger.warning(error)
    config = parse_action_config(raw)
    config.validation_errors[:0] = read_errors
    return config


class ActionConfigManager:
    """
    Loads the action-type catalog once and keeps it for the session.

    Responsibilities:
    - Locate the catalog file (settings or an explicit path)
    - Validate entries into typed definitions
    - Cache the parsed catalog until clear_cache() is called
    """

    def __init__(self, config_path: Path = None):
        self.config_path = config_path
        self._cache: Optional[ActionConfig] = None

    def _resolve_path(self) -> Path:
        if self.config_path is not None:
            return Path(self.config_path)
        return resolve_path_setting("action_config_path")

    def load(self, use_cache: bool = True) -> ActionConfig:
        """
        Return the catalog, reading it from disk on first use.

        A missing file yields an empty catalog; the editor then offers no
        actions rather than failing.
        """
        if use_cache and self._cache is not None:
            return self._cache

        path = self._resolve_path()
        if not path.exists():
            logger.warning(f"Action config not found at {path}")
            config = ActionConfig(validation_errors=[f"Action config not found: {path}"])
        else:
            config = load_action_config(path)

        if use_cache:
            self._cache = config
        return config

    def clear_cache(self) -> None:
        """Clear the cached catalog."""
        self._cache = None


# Global instance for convenience
_manager: Optional[ActionConfigManager] = None


def get_action_config_manager() -> ActionConfigManager:
    """Get the global ActionConfigManager instance."""
    global _manager
    if _manager is None:
        _manager = ActionConfigManager()
    return _manager
