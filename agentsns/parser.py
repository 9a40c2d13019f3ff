"""
Extraction of decisions from free-form model output.

Models wrap JSON in prose and code fences. The parser looks for the first
JSON object or array that decodes, trying a bounded number of start
positions, and falls back once to a sanitized copy of the text.
"""

import json
import re
from typing import Any

from agentsns.decisions import Decision, decision_from_dict
from agentsns.exceptions import (
    MalformedDecisionError,
    NoJsonFoundError,
    NoValidActionsError,
)
from agentsns.logging import get_logger

MAX_CANDIDATE_STARTS = 16

_FENCE = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)
_LINE_COMMENT = re.compile(r"(?m)^\s*//.*$")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_SMART_QUOTES = str.maketrans({
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
})

_decoder = json.JSONDecoder()
logger = get_logger("engine")


def strip_code_fence(text: str) -> str:
    """Return the contents of the first fenced block, or the trimmed text."""
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _escape_raw_newlines(text: str) -> str:
    """Escape CR/LF characters that appear inside JSON string literals."""
    out = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char == "\n":
                out.append("\\n")
                continue
            elif char == "\r":
                out.append("\\r")
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def sanitize_json_text(text: str) -> str:
    """
    Repair common model JSON mistakes.

    Straightens curly quotes, drops // and /* */ comments, removes trailing
    commas and escapes raw newlines inside strings.
    """
    result = text.translate(_SMART_QUOTES)
    result = _BLOCK_COMMENT.sub("", result)
    result = _LINE_COMMENT.sub("", result)
    result = _TRAILING_COMMA.sub(r"\1", result)
    return _escape_raw_newlines(result)


def _candidate_starts(text: str) -> list[int]:
    starts = []
    for index, char in enumerate(text):
        if char in "{[":
            starts.append(index)
            if len(starts) >= MAX_CANDIDATE_STARTS:
                break
    return starts


def _scan(text: str) -> Any:
    """
    Decode the first JSON object or array found in text.

    raw_decode returns the one complete value starting at a position, which
    is the longest valid JSON substring from there because objects and
    arrays are self-delimiting.
    """
    for start in _candidate_starts(text):
        try:
            value, _ = _decoder.raw_decode(text, start)
        except ValueError:
            continue
        return value
    raise ValueError("no decodable JSON value")


def extract_json_payload(raw_text: str) -> Any:
    """
    Extract the first JSON object or array from model output.

    Args:
        raw_text: Model output

    Returns:
        The decoded value (dict or list)

    Raises:
        NoJsonFoundError: If the text is empty or has no "{" / "["
        MalformedDecisionError: If nothing decodes, even after sanitizing
    """
    if not raw_text or not raw_text.strip():
        raise NoJsonFoundError("Empty LLM output")

    # Fenced contents first, then the whole text
    candidates = [strip_code_fence(raw_text), raw_text.strip()]
    if not any("{" in c or "[" in c for c in candidates):
        raise NoJsonFoundError("No JSON object or array in LLM output")

    for text in candidates:
        try:
            return _scan(text)
        except ValueError:
            pass

    for text in candidates:
        try:
            return _scan(sanitize_json_text(text))
        except ValueError:
            pass

    raise MalformedDecisionError("Failed to extract valid JSON from LLM output")


def extract_decisions(raw_text: str) -> list[Decision]:
    """
    Turn model output into validated decisions.

    A single object is treated as a one-element list. Elements that are not
    valid decisions are dropped.

    Args:
        raw_text: Model output

    Returns:
        Non-empty list of decisions in their original order

    Raises:
        NoJsonFoundError: If no JSON is present
        MalformedDecisionError: If JSON is present but undecodable
        NoValidActionsError: If no element is a valid decision
    """
    payload = extract_json_payload(raw_text)
    items = payload if isinstance(payload, list) else [payload]

    decisions: list[Decision] = []
    for index, item in enumerate(items):
        try:
            decisions.append(decision_from_dict(item))
        except MalformedDecisionError as e:
            logger.info("Dropping decision %d: %s", index, e.message)

    if not decisions:
        raise NoValidActionsError("LLM decision does not include valid actions")
    return decisions
