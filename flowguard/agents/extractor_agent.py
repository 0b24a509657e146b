# flowguard/agents/extractor_agent.py

from __future__ import annotations
from typing import Optional

from flowguard.core.errors import UpstreamGenerationError


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first top-level, brace-balanced object in `text`, or None.

    Braces inside JSON string literals (including escaped quotes) do not
    count toward depth. Only the first '{' is considered as a start: if it
    never closes, nothing is returned rather than a nested fragment.
    """
    if not text:
        return None
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        ch = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:pos + 1]
    return None


class ExtractorAgent:
    """
    Pulls the candidate graph JSON out of free-form model output.
    """

    @staticmethod
    def extract(text: str) -> str:
        candidate = find_json_object(text)
        if candidate is None:
            raise UpstreamGenerationError("Model did not return a valid JSON object.")
        return candidate
