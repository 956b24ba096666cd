from sequence_graph.action_config import parse_action_config
from sequence_graph.graph import new_sequence
from sequence_graph.insertion import insert_action
from sequence_graph.resolver import menu_items, resolve, resolve_menu

INITIAL = ["SEND_CONNECTION_REQUEST", "VIEW_PROFILE", "LIKE_A_POST"]


def test_empty_sequence_offers_initial_actions(config):
    assert resolve(new_sequence(), "rootc", config) == INITIAL


def test_single_action_decides_next_list(config):
    g = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    assert resolve(g, "rootccc", config) == ["SEND_MESSAGE", "IS_CONNECTED"]


def test_passive_action_is_skipped(config):
    g = insert_action(new_sequence(), "rootc", "LIKE_A_POST", config)
    assert resolve(g, "rootccc", config) == INITIAL


def test_passive_action_below_authoritative_one(config):
    g = insert_action(new_sequence(), "rootc", "VIEW_PROFILE", config)
    g = insert_action(g, "rootccc", "ENDORSE_SKILLS", config)
    assert resolve(g, "rootccccc", config) == ["SEND_CONNECTION_REQUEST", "ENDORSE_SKILLS"]


def test_conditional_branches_widen_with_previous_context(config):
    g = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    g = insert_action(g, "rootccc", "IS_CONNECTED", config)

    assert resolve(g, "rootccccl", config) == ["SEND_MESSAGE", "IS_CONNECTED"]
    assert resolve(g, "rootccccr", config) == [
        "SEND_INMAIL",
        "VIEW_PROFILE",
        "SEND_MESSAGE",
        "IS_CONNECTED",
    ]


def test_multiple_negative_branch_reads_outcome_below_delay(config):
    g = insert_action(new_sequence(), "rootc", "SEND_MESSAGE", config)
    assert resolve(g, "rootccrc", config) == ["SEND_INMAIL", "SEND_MESSAGE"]


def test_empty_allowed_list_falls_back_to_initial(config):
    g = insert_action(new_sequence(), "rootc", "SEND_MESSAGE", config)
    assert resolve(g, "rootccl", config) == INITIAL


def test_unknown_types_are_dropped(caplog):
    config = parse_action_config({
        "initial": {"actionsAllowed": ["A"]},
        "A": {"type": "action", "outcomeType": "single", "actionsAllowed": ["GHOST", "B"]},
        "B": {"type": "action", "outcomeType": "single", "actionsAllowed": ["GHOST"]},
    })
    g = insert_action(new_sequence(), "rootc", "A", config)
    with caplog.at_level("WARNING"):
        assert resolve(g, "rootccc", config) == ["B"]
    assert 'Action type "GHOST" not found in sequence config' in caplog.text

    g = insert_action(g, "rootccc", "B", config)
    # B's only option is unknown; A above still contributes B
    assert resolve(g, "rootccccc", config) == ["B"]


def test_all_unknown_falls_back_to_initial():
    config = parse_action_config({
        "initial": {"actionsAllowed": ["A"]},
        "A": {"type": "action", "outcomeType": "single", "actionsAllowed": ["GHOST"]},
    })
    g = insert_action(new_sequence(), "rootc", "A", config)
    assert resolve(g, "rootccc", config) == ["A"]


def test_action_missing_from_config_is_skipped(config, raw_config, caplog):
    g = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    del raw_config["sequence"]["SEND_CONNECTION_REQUEST"]
    reduced = parse_action_config(raw_config)

    with caplog.at_level("WARNING"):
        result = resolve(g, "rootccc", reduced)

    assert result == ["VIEW_PROFILE", "LIKE_A_POST"]
    assert "not found in config" in caplog.text


def test_unknown_node_returns_initial(config):
    assert resolve(new_sequence(), "ghost", config) == INITIAL


def test_menu_lists_actions_before_conditionals(config):
    items = menu_items(config, ["IS_CONNECTED", "SEND_MESSAGE", "GHOST"])
    assert items == [
        {"id": "SEND_MESSAGE", "label": "Send Message", "icon": "message", "type": "action"},
        {"id": "IS_CONNECTED", "label": "Is Connected?", "icon": "branch", "type": "conditional"},
    ]


def test_resolve_menu(config):
    g = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    assert [item["id"] for item in resolve_menu(g, "rootccc", config)] == ["SEND_MESSAGE", "IS_CONNECTED"]
