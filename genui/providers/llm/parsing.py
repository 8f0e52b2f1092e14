"""Tolerant parsing of structured model output.

Models wrap JSON in prose or code fences, use smart quotes and leave trailing
commas. `parse_structured` tries a strict parse first, then extracts the
outermost JSON value, normalizes it and hands it to json_repair, which quotes
bare keys and values and balances unclosed brackets.
"""

import json
import re
from typing import Any

from json_repair import repair_json

from genui.providers.llm.base import ParseError

_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?([\s\S]*?)\n?```")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    match = _FENCE.search(text)
    return match.group(1) if match else text


def extract_json_value(text: str) -> str:
    """Slice the outermost JSON object or array out of surrounding prose.

    The slice runs to the matching close bracket, or to the end of the text
    when the value is truncated.
    """
    start = -1
    for index, char in enumerate(text):
        if char in "{[":
            start = index
            break
    if start < 0:
        return text.strip()

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return text[start:]


def normalize_json_text(text: str) -> str:
    """Swap smart quotes for ASCII ones and drop trailing commas."""
    return _TRAILING_COMMA.sub(r"\1", text.translate(_SMART_QUOTES))


def parse_structured(text: str) -> Any:
    """Parse model output as JSON, repairing it when strict parsing fails.

    Raises:
        ParseError: if no JSON object or array can be recovered
    """
    raw = (text or "").strip()
    if not raw:
        raise ParseError("Empty structured response")

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass

    candidate = normalize_json_text(extract_json_value(strip_code_fences(raw)))
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    repaired = repair_json(candidate, return_objects=True)
    if not isinstance(repaired, (dict, list)) or (not repaired and candidate[:1] not in "{["):
        raise ParseError(f"Could not parse structured response: {raw[:200]}")
    return repaired
