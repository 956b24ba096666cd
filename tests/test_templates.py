import json

import pytest
import yaml

from sequence_graph.templates import SequenceTemplate, TemplateLibrary, preview_graph, validate_template

SEQUENCE = {
    "action": {
        "type": "INITIATED",
        "data": {},
        "conditions": [{
            "rule": {"type": "GROUP", "op": "AND", "children": [
                {"type": "WAIT", "value": "WAIT", "metadata": {"wait": 0}},
            ]},
            "action": {
                "type": "SEND_CONNECTION_REQUEST",
                "data": {},
                "metadata": {"isEnd": True, "canHaveActions": True},
            },
        }],
    },
}


def _template(template_id, category="cold-outreach", **extra):
    raw = {
        "id": template_id,
        "name": template_id.replace("-", " ").title(),
        "description": f"{template_id} sequence",
        "category": category,
        "sequence": SEQUENCE,
    }
    raw.update(extra)
    return raw


@pytest.fixture
def library(tmp_path):
    (tmp_path / "intro.json").write_text(json.dumps(_template("cold-intro", actions=["SEND_CONNECTION_REQUEST"])))
    (tmp_path / "more.yaml").write_text(yaml.safe_dump({"templates": [
        _template("gentle-nudge", category="follow-up"),
        _template("warm-up", category="engagement", description="Like a post first"),
        {"id": "broken", "name": "Broken"},
    ]}))
    (tmp_path / "bad.json").write_text("{nope")
    (tmp_path / "notes.txt").write_text("ignored")
    return TemplateLibrary(tmp_path)


def test_loads_valid_templates_from_json_and_yaml(library):
    templates = library.load()
    assert sorted(templates) == ["cold-intro", "gentle-nudge", "warm-up"]
    intro = templates["cold-intro"]
    assert isinstance(intro, SequenceTemplate)
    assert intro.actions == ["SEND_CONNECTION_REQUEST"]
    assert intro.category_label == "Cold Outreach"


def test_invalid_files_and_entries_are_logged(tmp_path, caplog):
    (tmp_path / "bad.json").write_text("{nope")
    (tmp_path / "broken.yaml").write_text(yaml.safe_dump({"id": "x", "name": "X", "category": "spam", "sequence": {}}))
    with caplog.at_level("WARNING"):
        assert TemplateLibrary(tmp_path).load() == {}
    assert "Failed to read template file" in caplog.text
    assert "invalid category 'spam'" in caplog.text


def test_duplicate_ids_keep_the_first(tmp_path, caplog):
    (tmp_path / "a.json").write_text(json.dumps(_template("dup", name="First")))
    (tmp_path / "b.json").write_text(json.dumps(_template("dup", name="Second")))
    with caplog.at_level("WARNING"):
        templates = TemplateLibrary(tmp_path).load()
    assert templates["dup"].name == "First"
    assert "Duplicate template id 'dup'" in caplog.text


def test_missing_directory_gives_no_templates(tmp_path):
    assert TemplateLibrary(tmp_path / "nowhere").list_templates() == []


def test_category_filter_and_lookup(library):
    assert [t.id for t in library.list_templates("follow-up")] == ["gentle-nudge"]
    assert library.get_template("warm-up").category == "engagement"
    assert library.get_template("missing") is None


def test_search_matches_name_description_and_category(library):
    assert [t.id for t in library.search("INTRO")] == ["cold-intro"]
    assert [t.id for t in library.search("like a post")] == ["warm-up"]
    assert [t.id for t in library.search("follow")] == ["gentle-nudge"]
    assert len(library.search("")) == 3


def test_empty_yaml_description_is_searchable(tmp_path):
    (tmp_path / "bare.yaml").write_text(
        "id: bare\nname: Bare\ndescription:\ncategory: nurture\nsequence:\n  action: {type: INITIATED}\n"
    )
    library = TemplateLibrary(tmp_path)
    assert library.get_template("bare").description == ""
    assert [t.id for t in library.search("nurture")] == ["bare"]
    assert library.search("nothing matches") == []


def test_grouped_by_category(library):
    groups = library.grouped()
    assert set(groups) == {"cold-outreach", "follow-up", "engagement"}
    assert [t.id for t in groups["cold-outreach"]] == ["cold-intro"]


def test_cache_until_cleared(library, tmp_path):
    first = library.load()
    (tmp_path / "late.json").write_text(json.dumps(_template("late", category="nurture")))
    assert library.load() is first
    library.clear_cache()
    assert "late" in library.load()


def test_validate_template():
    assert validate_template(_template("ok")) == []
    errors = validate_template({"id": "x", "sequence": []}, "file.json")
    assert "file.json: missing required 'name'" in errors
    assert "file.json: 'sequence' must be an object" in errors


def test_preview_renders_ends_as_terminals(library, config):
    graph = preview_graph(library.get_template("cold-intro"), config)
    kinds = [n.kind for n in graph.nodes.values()]
    assert kinds == ["start", "delay", "action", "terminal"]
    assert graph.node("root").position == (-90, 0)
    assert graph.node("terminal_3").position == (-90, 300)
