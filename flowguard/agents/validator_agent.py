# flowguard/agents/validator_agent.py

from __future__ import annotations
import json
import logging
from collections import Counter
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from flowguard.core.errors import ParseError, Refusal, SchemaValidationError
from flowguard.core.models import AutomationGraph

logger = logging.getLogger(__name__)

# top-level keys that mark an object as (an attempt at) a graph
_GRAPH_FIELDS = {"name", "nodes", "connections", "settings", "active", "id", "tags"}


def _format_loc(loc: tuple) -> str:
    out = ""
    for part in loc:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "<root>"


def _structural_violations(exc: ValidationError) -> List[str]:
    seen: List[str] = []
    for err in exc.errors():
        line = f"{_format_loc(err['loc'])}: {err['msg']}"
        if line not in seen:
            seen.append(line)
    return seen


def _as_refusal(data: Any, raw: str) -> Optional[Refusal]:
    if not isinstance(data, dict):
        return None

    if data.get("kind") == "refusal":
        reason = data.get("reason", data.get("error"))
        if not isinstance(reason, str) or not reason.strip():
            raise SchemaValidationError(
                "Refusal is missing its reason.", ["reason: expected a non-empty string"]
            )
        return Refusal(reason, raw)

    # Untagged decline: `error` is the only recognizable field.
    error = data.get("error")
    if isinstance(error, str) and not (_GRAPH_FIELDS & data.keys()):
        return Refusal(error, raw)
    return None


class ValidatorAgent:
    """
    Decides whether a candidate is a well-formed automation graph.

    Gates run in order and stop at the first failing gate:
      1) JSON parse                -> ParseError
      2) refusal shape             -> Refusal (returned, not raised)
      3) structure vs. the model   -> SchemaValidationError
      4) connection references     -> SchemaValidationError (all broken refs)
      5) unique node names         -> SchemaValidationError
    """

    @staticmethod
    def parse(json_text: str) -> Any:
        try:
            return json.loads(json_text)
        except (TypeError, ValueError) as e:
            logger.info("Candidate is not valid JSON: %s", e)
            raise ParseError(f"Generated content is not valid JSON: {e}") from e
        except RecursionError as e:
            logger.info("Candidate is nested too deeply to parse")
            raise ParseError("Generated content is nested too deeply to parse.") from e

    @staticmethod
    def validate(json_text: str) -> Union[AutomationGraph, Refusal]:
        data = ValidatorAgent.parse(json_text)
        return ValidatorAgent.validate_object(data, raw=json_text)

    @staticmethod
    def validate_object(data: Any, raw: Optional[str] = None) -> Union[AutomationGraph, Refusal]:
        if raw is None:
            raw = json.dumps(data)

        refusal = _as_refusal(data, raw)
        if refusal is not None:
            logger.info("Model declined the request: %s", refusal.reason)
            return refusal

        graph = ValidatorAgent.check_structure(data)
        ValidatorAgent.check_references(graph)
        ValidatorAgent.check_unique_names(graph)
        return graph

    @staticmethod
    def check_structure(data: Any) -> AutomationGraph:
        if not isinstance(data, dict):
            raise SchemaValidationError(
                "Generated workflow does not match the required n8n structure.",
                ["<root>: expected a JSON object"],
            )
        try:
            return AutomationGraph.model_validate(data)
        except ValidationError as e:
            violations = _structural_violations(e)
            logger.info("Schema validation failed: %s", violations)
            raise SchemaValidationError(
                "Generated workflow does not match the required n8n structure.", violations
            ) from e
        except RecursionError as e:
            raise SchemaValidationError(
                "Generated workflow does not match the required n8n structure.",
                ["<root>: nested too deeply"],
            ) from e

    @staticmethod
    def check_references(graph: AutomationGraph) -> None:
        names = {node.name for node in graph.nodes}
        violations = [
            f"{path}.node: unknown node '{target.node}'"
            for path, target in graph.iter_targets()
            if target.node not in names
        ]
        if violations:
            logger.info("Broken connection references: %s", violations)
            raise SchemaValidationError(
                "Generated workflow connects to nodes that do not exist.", violations
            )

    @staticmethod
    def check_unique_names(graph: AutomationGraph) -> None:
        counts = Counter(node.name for node in graph.nodes)
        violations = [
            f"nodes[{idx}].name: duplicate node name '{node.name}'"
            for idx, node in enumerate(graph.nodes)
            if counts[node.name] > 1
        ]
        if violations:
            logger.info("Duplicate node names: %s", violations)
            raise SchemaValidationError("Node names must be unique.", violations)
