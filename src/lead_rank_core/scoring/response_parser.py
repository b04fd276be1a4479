"""
Oracle response parsing

Extracts JSON objects and arrays from raw model output. Models sometimes wrap them
in a markdown code block or surround them with prose.
"""

import json
import re


class ResponseParseError(Exception):
    """Raised when no JSON object can be extracted from a model response"""
    pass


_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def parse_json_object(raw: str) -> dict:
    """
    Extract a JSON object from a model response

    Parse order:
    1. Contents of a fenced code block, or the whole text
    2. The outermost {...} span of the text

    Args:
        raw: Raw model output

    Returns:
        The decoded JSON object

    Raises:
        ResponseParseError: If the text holds no JSON object
    """
    text = (raw or "").strip()

    match = _CODE_BLOCK_RE.search(text)
    candidates = [match.group(1) if match else text]

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate.strip())
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return data

    raise ResponseParseError(f"Failed to parse JSON object from response: {text[:200]}")


def parse_json_value(raw: str) -> dict | list:
    """
    Extract a JSON object or array from a model response

    Same parse order as parse_json_object, also trying the outermost [...] span.

    Raises:
        ResponseParseError: If the text holds neither
    """
    text = (raw or "").strip()

    match = _CODE_BLOCK_RE.search(text)
    candidates = [match.group(1) if match else text]
    for opening, closing in (("[", "]"), ("{", "}")):
        start, end = text.find(opening), text.rfind(closing)
        if start != -1 and end > start:
            candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate.strip())
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, (dict, list)):
            return data

    raise ResponseParseError(f"Failed to parse JSON from response: {text[:200]}")
