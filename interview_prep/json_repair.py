"""Tolerant recovery of JSON objects from free-form model output."""

import json
import re
from typing import Any

from interview_prep.logging import get_logger

log = get_logger("interview_prep.json_repair")

_OPENING_FENCE_RE = re.compile(r"\A\s*```(?:json|JSON)?[ \t]*\n?")
_CLOSING_FENCE_RE = re.compile(r"\n?[ \t]*```\s*\Z")


def strip_code_fences(text: str) -> str:
    """Remove one opening and one closing Markdown fence; fences elsewhere are kept."""
    return _CLOSING_FENCE_RE.sub("", _OPENING_FENCE_RE.sub("", text)).strip()


def _loads_object(candidate: str) -> dict[str, Any] | None:
    try:
        value = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_json_safe(text: Any) -> dict[str, Any]:
    """Return the first JSON object recoverable from ``text``, or ``{}``.

    Model answers are often wrapped in Markdown fences, surrounded by prose or
    cut off mid-object. After a direct parse fails, the text is scanned from
    the first ``{`` while tracking string literals (with backslash escapes) so
    braces inside strings do not affect nesting depth. Every point where the
    depth returns to zero closes a candidate; the first candidate that parses
    into an object wins.

    Never raises.
    """
    if not isinstance(text, str):
        return {}

    direct = _loads_object(text.strip())
    if direct is not None:
        return direct

    cleaned = strip_code_fences(text)
    direct = _loads_object(cleaned)
    if direct is not None:
        return direct

    start = cleaned.find("{")
    if start == -1:
        return {}

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(cleaned)):
        char = cleaned[index]
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
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                candidate = _loads_object(cleaned[start : index + 1])
                if candidate is not None:
                    return candidate

    log.debug("json_repair.no_object", length=len(cleaned))
    return {}
