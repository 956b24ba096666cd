import copy

import pytest

from sequence_graph.action_config import parse_action_config


def _group(*children):
    return {"type": "GROUP", "op": "AND", "children": list(children)}


def _event(value):
    return {"type": "EVENT", "value": value}


WAIT_TEMPLATE = {"type": "WAIT", "value": "WAIT", "metadata": {"wait": 0}}

SAMPLE_CONFIG = {
    "sequence": {
        "initial": {"actionsAllowed": ["SEND_CONNECTION_REQUEST", "VIEW_PROFILE", "LIKE_A_POST"]},
        "SEND_CONNECTION_REQUEST": {
            "label": "Send Connection Request",
            "icon": "connection",
            "type": "action",
            "outcomeType": "single",
            "actionsAllowed": ["SEND_MESSAGE", "IS_CONNECTED"],
        },
        "VIEW_PROFILE": {
            "label": "View Profile",
            "icon": "eye",
            "type": "action",
            "outcomeType": "single",
            "actionsAllowed": ["SEND_CONNECTION_REQUEST", "ENDORSE_SKILLS"],
        },
        "LIKE_A_POST": {
            "label": "Like a Post",
            "icon": "like",
            "type": "action",
            "outcomeType": "single",
            "changesActionsAllowed": False,
        },
        "ENDORSE_SKILLS": {
            "label": "Endorse Skills",
            "icon": "star",
            "type": "action",
            "outcomeType": "single",
            "changesActionsAllowed": False,
        },
        "SEND_MESSAGE": {
            "label": "Send Message",
            "icon": "message",
            "type": "action",
            "outcomeType": "multiple",
            "outcomes": [
                {
                    "type": "positive",
                    "label": "Replied",
                    "rule": _group(_event("REPLIED")),
                    "actionsAllowed": [],
                },
                {
                    "type": "negative",
                    "label": "No reply",
                    "rule": _group(_event("NOT_REPLIED"), WAIT_TEMPLATE),
                    "actionsAllowed": ["SEND_INMAIL", "SEND_MESSAGE"],
                },
            ],
        },
        "SEND_INMAIL": {
            "label": "Send InMail",
            "icon": "inmail",
            "type": "action",
            "outcomeType": "multiple",
            "outcomes": [
                {
                    "type": "positive",
                    "label": "Replied",
                    "rule": _group(_event("REPLIED"), WAIT_TEMPLATE),
                    "actionsAllowed": ["SEND_MESSAGE"],
                },
                {
                    "type": "negative",
                    "label": "No reply",
                    "rule": _group(_event("NOT_REPLIED"), WAIT_TEMPLATE),
                    "actionsAllowed": ["VIEW_PROFILE"],
                },
            ],
        },
        "IS_CONNECTED": {
            "label": "Is Connected?",
            "icon": "branch",
            "type": "conditional",
            "conditions": [
                {
                    "type": "positive",
                    "label": "Yes",
                    "rule": _group(_event("CONNECTED")),
                    "actionsAllowed": ["SEND_MESSAGE"],
                },
                {
                    "type": "negative",
                    "label": "No",
                    "rule": _group(_event("NOT_CONNECTED")),
                    "actionsAllowed": ["SEND_INMAIL", "VIEW_PROFILE"],
                },
            ],
        },
    }
}


@pytest.fixture
def raw_config():
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture
def config(raw_config):
    return parse_action_config(raw_config)
