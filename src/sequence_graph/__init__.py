"""
Campaign sequence graph engine.

This package provides the model and the structural edits behind the
outreach sequence editor:
- Graph, SequenceNode, SequenceEdge: the sequence tree
- ActionConfig: validated action-type catalog
- resolve: action types insertable at a placeholder
- insert_action / delete_node: structural edits
- arrange: deterministic layout
- serialize / deserialize: conversion to and from the backend rule tree
- SequenceEditor: editing session with undo/redo

Usage:
    from sequence_graph import SequenceEditor, load_action_config
"""

from sequence_graph.action_config import (
    ActionConfig,
    ActionConfigManager,
    ConditionalAction,
    MultipleOutcomeAction,
    Outcome,
    SingleOutcomeAction,
    get_action_config_manager,
    load_action_config,
    parse_action_config,
)
from sequence_graph.conversion import deserialize, export_sequence_to_json, serialize
from sequence_graph.deletion import DeletionResult, delete_node
from sequence_graph.editor import SequenceEditor
from sequence_graph.graph import Graph, SequenceEdge, SequenceNode, check_invariants, new_sequence
from sequence_graph.insertion import end_branch, insert_action, reopen_branch
from sequence_graph.layout import apply_layout, arrange
from sequence_graph.resolver import resolve
from sequence_graph.templates import SequenceTemplate, TemplateLibrary, preview_graph
from sequence_graph.utils import format_delay

__version__ = "0.1.0"

__all__ = [
    'ActionConfig',
    'ActionConfigManager',
    'ConditionalAction',
    'MultipleOutcomeAction',
    'Outcome',
    'SingleOutcomeAction',
    'get_action_config_manager',
    'load_action_config',
    'parse_action_config',
    'serialize',
    'deserialize',
    'export_sequence_to_json',
    'DeletionResult',
    'delete_node',
    'SequenceEditor',
    'Graph',
    'SequenceEdge',
    'SequenceNode',
    'check_invariants',
    'new_sequence',
    'insert_action',
    'end_branch',
    'reopen_branch',
    'arrange',
    'apply_layout',
    'resolve',
    'SequenceTemplate',
    'TemplateLibrary',
    'preview_graph',
    'format_delay',
]
