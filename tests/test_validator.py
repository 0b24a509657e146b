# tests/test_validator.py

import json

import pytest
from flowguard.agents.validator_agent import ValidatorAgent
from flowguard.core.errors import ParseError, Refusal, SchemaValidationError
from flowguard.core.models import AutomationGraph


def _violations(payload) -> list[str]:
    with pytest.raises(SchemaValidationError) as exc:
        ValidatorAgent.validate(json.dumps(payload))
    return exc.value.violations


def test_valid_graph_passes(graph_json):
    graph = ValidatorAgent.validate(graph_json)
    assert isinstance(graph, AutomationGraph)
    assert graph.active is False
    assert graph.nodes[1].type_version == 2.1
    assert graph.nodes[0].position == (100, 300)


def test_every_target_names_an_existing_node(graph_dict):
    graph_dict["nodes"].append({
        "id": "3", "name": "Log", "type": "n8n-nodes-base.noOp", "typeVersion": 1,
        "position": [500, 300], "parameters": {},
    })
    graph_dict["connections"]["Slack"] = {
        "main": [[{"node": "Log", "type": "main", "index": 0}], []],
    }
    graph = ValidatorAgent.validate(json.dumps(graph_dict))
    names = {n.name for n in graph.nodes}
    targets = [t.node for _, t in graph.iter_targets()]
    assert targets == ["Slack", "Log"]
    assert set(targets) <= names


def test_invalid_json_is_a_parse_error():
    with pytest.raises(ParseError):
        ValidatorAgent.validate('{"name": "x", }')


def test_deeply_nested_json_is_a_parse_error():
    deep = '{"a":' * 5000 + "1" + "}" * 5000
    with pytest.raises(ParseError) as exc:
        ValidatorAgent.validate(deep)
    assert "nested too deeply" in exc.value.message


def test_untagged_error_object_is_a_refusal():
    raw = '{"error": "I can only help with creating n8n workflows."}'
    outcome = ValidatorAgent.validate(raw)
    assert isinstance(outcome, Refusal)
    assert outcome.reason == "I can only help with creating n8n workflows."
    assert outcome.raw == raw


def test_tagged_refusal():
    outcome = ValidatorAgent.validate('{"kind": "refusal", "reason": "Request cannot be processed securely."}')
    assert isinstance(outcome, Refusal)
    assert outcome.reason == "Request cannot be processed securely."


def test_tagged_graph_is_validated_as_graph(graph_dict):
    graph_dict["kind"] = "graph"
    assert isinstance(ValidatorAgent.validate(json.dumps(graph_dict)), AutomationGraph)


def test_error_next_to_graph_fields_is_not_a_refusal():
    violations = _violations({"error": "nope", "name": "half a graph"})
    assert any(v.startswith("nodes") for v in violations)
    assert any(v.startswith("connections") for v in violations)


def test_valid_graph_with_error_field_is_still_a_graph(graph_dict):
    graph_dict["error"] = "ignored"
    assert isinstance(ValidatorAgent.validate(json.dumps(graph_dict)), AutomationGraph)


def test_non_object_is_rejected():
    assert _violations([1, 2, 3]) == ["<root>: expected a JSON object"]


def test_structural_errors_are_listed_by_path(graph_dict):
    del graph_dict["nodes"][0]["type"]
    graph_dict["nodes"][1]["position"] = [1, 2, 3]
    graph_dict["nodes"][1]["typeVersion"] = "2"
    violations = _violations(graph_dict)
    assert any(v.startswith("nodes[0].type:") for v in violations)
    assert any(v.startswith("nodes[1].position") for v in violations)
    assert any(v.startswith("nodes[1].typeVersion") for v in violations)


@pytest.mark.parametrize("index", [-1, True, 0.5, "0"])
def test_index_must_be_non_negative_integer(graph_dict, index):
    graph_dict["connections"]["Webhook"]["main"][0][0]["index"] = index
    violations = _violations(graph_dict)
    assert any(v.startswith("connections.Webhook.main[0][0].index") for v in violations)


def test_large_index_is_not_bounds_checked(graph_dict):
    graph_dict["connections"]["Webhook"]["main"][0][0]["index"] = 7
    assert isinstance(ValidatorAgent.validate(json.dumps(graph_dict)), AutomationGraph)


def test_all_broken_references_are_reported(graph_dict):
    graph_dict["connections"]["Webhook"]["main"] = [[
        {"node": "Ghost", "type": "main", "index": 0},
        {"node": "Slack", "type": "main", "index": 0},
    ]]
    graph_dict["connections"]["Slack"] = {"main": [[{"node": "Phantom", "type": "main", "index": 0}]]}
    violations = _violations(graph_dict)
    assert violations == [
        "connections.Webhook.main[0][0].node: unknown node 'Ghost'",
        "connections.Slack.main[0][0].node: unknown node 'Phantom'",
    ]


def test_references_match_names_not_ids(graph_dict):
    graph_dict["connections"]["Webhook"]["main"][0][0]["node"] = "0f5f3a8e-2"
    assert _violations(graph_dict) == ["connections.Webhook.main[0][0].node: unknown node '0f5f3a8e-2'"]


def test_duplicate_node_names_are_rejected(graph_dict):
    graph_dict["nodes"][1]["name"] = "Webhook"
    graph_dict["connections"] = {}
    violations = _violations(graph_dict)
    assert violations == [
        "nodes[0].name: duplicate node name 'Webhook'",
        "nodes[1].name: duplicate node name 'Webhook'",
    ]


def test_duplicate_names_rejected_even_when_references_resolve(graph_dict):
    graph_dict["nodes"].append(dict(graph_dict["nodes"][1], id="other"))
    with pytest.raises(SchemaValidationError) as exc:
        ValidatorAgent.validate(json.dumps(graph_dict))
    assert "unique" in exc.value.message


def test_revalidating_own_output_gives_same_graph(graph_dict):
    first = ValidatorAgent.validate(json.dumps(graph_dict))
    second = ValidatorAgent.validate(json.dumps(first.to_wire()))
    assert second == first
    assert second.to_wire() == first.to_wire()


def test_revalidating_broken_graph_gives_same_violations(graph_dict):
    graph_dict["connections"]["Webhook"]["main"][0][0]["node"] = "Ghost"
    first = _violations(graph_dict)
    # structure alone is fine, so the broken graph still round-trips through the model
    structural = ValidatorAgent.check_structure(graph_dict)
    second = _violations(structural.to_wire())
    assert first == second


def test_unknown_keys_are_dropped(graph_dict):
    graph_dict["pinData"] = {"Webhook": []}
    graph_dict["nodes"][0]["notes"] = "hello"
    graph = ValidatorAgent.validate(json.dumps(graph_dict))
    wire = graph.to_wire()
    assert "pinData" not in wire
    assert "notes" not in wire["nodes"][0]
    assert wire["nodes"][1]["typeVersion"] == 2.1
