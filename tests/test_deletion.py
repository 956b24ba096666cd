import pytest

from sequence_graph.deletion import DELETION_TABLE, delete_node, delete_subtree, preview_deletion
from sequence_graph.graph import Graph, SequenceEdge, SequenceNode, check_invariants, new_sequence
from sequence_graph.insertion import end_branch, insert_action


def shape(graph, node_id="root"):
    """Id-independent structure: (kind, action_type, delay, outcome of in-edge, children...)."""
    node = graph.node(node_id)
    edge = graph.in_edge(node_id)
    return (
        node.kind,
        node.action_type,
        node.delay,
        edge.outcome if edge else None,
        tuple(shape(graph, child.id) for child in graph.children(node_id)),
    )


@pytest.fixture
def connected(config):
    """start -> delay -> SEND_CONNECTION_REQUEST -> delay -> IS_CONNECTED(yes, no)."""
    g = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    return insert_action(g, "rootccc", "IS_CONNECTED", config)


def test_deleting_only_action_restores_start_placeholder(config):
    g = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    result = delete_node(g, "rootcc")

    assert result.applied is True
    assert result.deletions == []
    assert list(result.graph.nodes) == ["root", "rootccc"]
    assert result.graph.node("rootccc").kind == "placeholder"
    assert result.graph.parent("rootccc").id == "root"
    assert check_invariants(result.graph) == []


def test_insert_then_delete_is_identity_up_to_ids(config):
    base = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    grown = insert_action(base, "rootccc", "VIEW_PROFILE", config)

    result = delete_node(grown, "rootcccc")

    assert shape(result.graph) == shape(base)
    assert check_invariants(result.graph) == []


def test_conditional_with_two_terminals_becomes_one_placeholder(config, connected):
    g = end_branch(connected, "rootccccl")
    g = end_branch(g, "rootccccr")
    g.nodes["rootcccc"].position = (40.0, 400.0)

    result = delete_node(g, "rootcccc")
    graph = result.graph

    assert result.deletions == []
    for gone in ("rootcccc", "rootccc", "rootccccl", "rootccccr"):
        assert gone not in graph.nodes
    leaf = graph.children("rootcc")
    assert len(leaf) == 1
    assert leaf[0].kind == "placeholder-terminal"
    assert leaf[0].position == (40.0, 400.0)
    assert check_invariants(graph) == []


def test_conditional_keeps_existing_open_leaf(config, connected):
    g = end_branch(connected, "rootccccl")
    result = delete_node(g, "rootcccc")
    assert [n.id for n in result.graph.children("rootcc")] == ["rootccccr"]
    assert check_invariants(result.graph) == []


def test_both_branches_live_keeps_positive(config, connected):
    g = insert_action(connected, "rootccccl", "SEND_MESSAGE", config)
    g = insert_action(g, "rootccccr", "VIEW_PROFILE", config)

    result = delete_node(g, "rootcccc")
    graph = result.graph

    assert result.deletions == ["right-subtree"]
    assert "rootccccr" not in graph.nodes
    assert "rootccccrc" not in graph.nodes
    assert graph.parent("rootccccl").id == "rootcc"
    assert graph.node("rootcccclc").action_type == "SEND_MESSAGE"
    assert check_invariants(graph) == []


def test_live_negative_survives_dead_positive(config, connected):
    g = insert_action(connected, "rootccccr", "VIEW_PROFILE", config)

    result = delete_node(g, "rootcccc")

    assert result.deletions == []
    assert "rootccccl" not in result.graph.nodes
    assert result.graph.parent("rootccccr").id == "rootcc"
    assert result.graph.in_edge("rootccccr").outcome is None
    assert check_invariants(result.graph) == []


def test_multiple_under_start_collapses_to_placeholder(config):
    g = insert_action(new_sequence(), "rootc", "SEND_MESSAGE", config)

    result = delete_node(g, "rootcc")

    assert result.deletions == []
    assert shape(result.graph) == ("start", None, None, None, (("placeholder", None, None, None, ()),))


def test_multiple_live_negative_branch_loses_its_label(config):
    g = insert_action(new_sequence(), "rootc", "SEND_MESSAGE", config)
    g = insert_action(g, "rootccrc", "VIEW_PROFILE", config)

    result = delete_node(g, "rootcc")
    graph = result.graph

    assert graph.parent("rootccr").id == "root"
    edge = graph.edge("rootccr", "rootccrcc")
    assert (edge.outcome, edge.label) == (None, None)
    assert check_invariants(graph) == []


def test_action_below_labeled_delay_keeps_delay(config):
    g = insert_action(new_sequence(), "rootc", "SEND_MESSAGE", config)
    g = insert_action(g, "rootccrc", "VIEW_PROFILE", config)

    result = delete_node(g, "rootccrcc")
    graph = result.graph

    assert graph.node("rootccr").kind == "delay"
    edge = graph.edge("rootccr", "rootccrccc")
    assert (edge.outcome, edge.label) == ("negative", "No reply")
    assert graph.node("rootccrccc").kind == "placeholder-terminal"
    assert check_invariants(graph) == []


def test_spliced_delay_under_delay_is_skipped(config):
    g = insert_action(new_sequence(), "rootc", "SEND_MESSAGE", config)
    g = insert_action(g, "rootccrc", "VIEW_PROFILE", config)
    g = insert_action(g, "rootccrccc", "SEND_CONNECTION_REQUEST", config)

    result = delete_node(g, "rootccrcc")
    graph = result.graph

    assert "rootccrccc" not in graph.nodes
    edge = graph.edge("rootccr", "rootccrcccc")
    assert edge is not None
    assert edge.outcome == "negative"
    assert check_invariants(graph) == []


def test_terminal_child_is_reopened(config):
    g = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    g = insert_action(g, "rootccc", "VIEW_PROFILE", config)
    g = end_branch(g, "rootccccc")

    result = delete_node(g, "rootcccc")
    assert result.graph.node("rootccccc").kind == "placeholder-terminal"
    assert result.graph.parent("rootccccc").id == "rootcc"


def test_preview_does_not_modify(config, connected):
    g = insert_action(connected, "rootccccl", "SEND_MESSAGE", config)
    g = insert_action(g, "rootccccr", "VIEW_PROFILE", config)
    before = g.copy()

    assert preview_deletion(g, "rootcccc") == ["right-subtree"]
    assert g == before


def test_non_action_is_not_deleted(config, caplog):
    g = insert_action(new_sequence(), "rootc", "SEND_CONNECTION_REQUEST", config)
    with caplog.at_level("WARNING"):
        result = delete_node(g, "rootc")
    assert result.applied is False
    assert result.graph is g
    assert "only actions can be deleted" in caplog.text


def test_unknown_node_raises(config):
    with pytest.raises(KeyError):
        delete_node(new_sequence(), "ghost")


def test_unmatched_shape_is_logged_and_ignored(caplog):
    g = Graph()
    g.add_node(SequenceNode("root", "start"))
    g.add_node(SequenceNode("d", "delay", delay=60))
    g.add_node(SequenceNode("a", "action", action_type="VIEW_PROFILE", classification="single"))
    g.add_node(SequenceNode("l1", "placeholder-terminal"))
    g.add_node(SequenceNode("l2", "placeholder-terminal"))
    g.add_edge(SequenceEdge("root", "d"))
    g.add_edge(SequenceEdge("d", "a"))
    g.add_edge(SequenceEdge("a", "l1"))
    g.add_edge(SequenceEdge("a", "l2"))

    with caplog.at_level("ERROR"):
        result = delete_node(g, "a")

    assert (True, "single", "open", "open") not in DELETION_TABLE
    assert result.applied is False
    assert result.graph is g
    assert result.deletions == []
    assert "No deletion handler" in caplog.text


def test_no_dangling_edges_after_any_delete(config, connected):
    g = insert_action(connected, "rootccccl", "SEND_INMAIL", config)
    g = insert_action(g, "rootcccclcrc", "LIKE_A_POST", config)
    for node_id in [n.id for n in g.nodes.values() if n.kind == "action"]:
        graph = delete_node(g, node_id).graph
        assert all(e.source in graph.nodes and e.target in graph.nodes for e in graph.edges)
        assert check_invariants(graph) == []


def test_delete_subtree_leaves_open_leaf(config, connected):
    g = delete_subtree(connected, "rootccc")
    leaf = g.children("rootcc")
    assert [n.kind for n in leaf] == ["placeholder-terminal"]
    assert "rootcccc" not in g.nodes
    assert check_invariants(g) == []
