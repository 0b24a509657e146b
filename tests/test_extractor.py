# tests/test_extractor.py

import pytest
from flowguard.agents.extractor_agent import ExtractorAgent, find_json_object
from flowguard.core.errors import UpstreamGenerationError


def test_brace_inside_string_does_not_end_object():
    text = 'here is your result: {"a": "}"} trailing'
    assert find_json_object(text) == '{"a": "}"}'


def test_unbalanced_text_returns_nothing():
    # the closing brace belongs to the inner object only
    assert find_json_object('see {"a": {"b": "}"}') is None
    assert find_json_object('started {"name": "x", "nodes": [') is None


def test_escaped_quotes_are_respected():
    text = 'ok {"a": "say \\"}\\" now", "b": {"c": 1}} done'
    assert find_json_object(text) == '{"a": "say \\"}\\" now", "b": {"c": 1}}'


def test_prose_around_graph_is_dropped(graph_json):
    text = f"Here is your workflow:\n```json\n{graph_json}\n```\nConfigure the Slack credential."
    assert ExtractorAgent.extract(text) == graph_json


def test_no_object_is_an_upstream_failure():
    with pytest.raises(UpstreamGenerationError) as exc:
        ExtractorAgent.extract("I could not build that, sorry.")
    assert exc.value.kind == "upstream_generation_error"


def test_extraction_is_deterministic():
    text = 'a {"x": [1, {"y": "{"}]} b {"z": 2}'
    assert find_json_object(text) == find_json_object(text) == '{"x": [1, {"y": "{"}]}'
