"""
Shared constants for the sequence graph engine.

Node kinds, branch outcomes and layout defaults are used by the graph model,
the structural engines and the rule-tree converters. Keep them in sync with
the backend's rule-tree vocabulary!
"""

# Sentinel id of the single start node
ROOT_ID = "root"

# Node kinds
START = "start"
ACTION = "action"
DELAY = "delay"
PLACEHOLDER = "placeholder"
PLACEHOLDER_TERMINAL = "placeholder-terminal"
TERMINAL = "terminal"

NODE_KINDS = frozenset([START, ACTION, DELAY, PLACEHOLDER, PLACEHOLDER_TERMINAL, TERMINAL])

# Leaves an action can be inserted at
OPEN_KINDS = frozenset([PLACEHOLDER, PLACEHOLDER_TERMINAL])
LEAF_KINDS = frozenset([PLACEHOLDER, PLACEHOLDER_TERMINAL, TERMINAL])

# Branch outcomes
POSITIVE = "positive"
NEGATIVE = "negative"

# Action classifications
SINGLE = "single"
MULTIPLE = "multiple"
CONDITIONAL = "conditional"

CLASSIFICATIONS = frozenset([SINGLE, MULTIPLE, CONDITIONAL])
BRANCHING = frozenset([MULTIPLE, CONDITIONAL])

# Default wait inserted above a new action, in minutes
DEFAULT_DELAY_MINUTES = 180

# Layout (pixels)
LEVEL_GAP = 50
SIBLING_GAP = 60
NODE_WIDTH = 180
NODE_HEIGHT = 50
MULTI_CHILD_EXTRA_HEIGHT = 40
MULTIPLE_STAGGER_FACTOR = 1.3

# Rule-tree vocabulary
INITIATED = "INITIATED"
TRANSITION = "TRANSITION"
GROUP = "GROUP"
WAIT = "WAIT"
GROUP_OP_AND = "AND"
