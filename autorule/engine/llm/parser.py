"""Parsers for LLM responses."""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from autorule.core.logging import get_logger

logger = get_logger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_FLAT_OBJECT = re.compile(r"\{[^{}]*\}", re.DOTALL)


@dataclass
class Decision:
    """Match decision for one condition."""

    matches: bool
    confidence: float
    reasoning: str


@dataclass
class ToolChoice:
    """Interpreter output: a tool call, or a direct answer when tool_name is None."""

    tool_name: str | None
    arguments: dict[str, Any] = field(default_factory=dict)
    result: str | None = None


def extract_json(response: str) -> dict[str, Any] | None:
    """Pull the first JSON object out of a model response.

    Tries the whole text, then a fenced code block, then the outermost
    braces, then the first brace-free object.
    """
    text = response.strip()
    candidates = [text]

    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())

    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])

    flat = _FLAT_OBJECT.search(text)
    if flat:
        candidates.append(flat.group())

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_decision(response: str) -> Decision:
    """Parse a match response into a decision.

    Note:
        Falls back to a no-match decision if parsing fails
    """
    data = extract_json(response)
    if data is None:
        logger.warning("No JSON found in LLM response", response=response[:200])
        return _fallback_decision("No JSON found in response")

    matches = data.get("matches", data.get("should_trigger", False))
    if isinstance(matches, str):
        matches = matches.lower() == "true"

    try:
        confidence = float(data.get("confidence", 0.0))
    except (TypeError, ValueError):
        confidence = 0.0
    confidence = max(0.0, min(1.0, confidence))

    reasoning = data.get("reasoning") or data.get("reason") or "No reasoning provided"

    return Decision(
        matches=bool(matches),
        confidence=confidence,
        reasoning=str(reasoning),
    )


def parse_tool_choice(response: str) -> ToolChoice:
    """Parse an interpreter response.

    A response without JSON is taken as a direct text answer.
    """
    data = extract_json(response)
    if data is None:
        return ToolChoice(tool_name=None, result=response.strip())

    tool_name = data.get("tool_name") or data.get("tool")
    arguments = data.get("arguments") or data.get("parameters") or {}
    if not isinstance(arguments, dict):
        arguments = {}

    result = data.get("result")
    return ToolChoice(
        tool_name=str(tool_name) if tool_name else None,
        arguments=arguments,
        result=None if result is None else str(result),
    )


def _fallback_decision(reason: str) -> Decision:
    """Safe fallback decision (no match)."""
    return Decision(
        matches=False,
        confidence=0.0,
        reasoning=f"Fallback decision: {reason}",
    )
