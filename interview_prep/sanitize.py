"""Input hygiene applied before any stage runs."""

import re

MAX_INPUT_LENGTH = 100

_DANGEROUS_CHARS_RE = re.compile(r"[<>\"'`]")
# Korean (jamo + syllables), ASCII letters, digits and whitespace.
_ALLOWED_INPUT_RE = re.compile(r"^[a-zA-Z0-9\s\u3131-\uD79D]+$")


def sanitize_input(value: object) -> str:
    """Strip markup/quote characters, truncate to 100 characters and trim."""
    if not isinstance(value, str):
        return ""
    return _DANGEROUS_CHARS_RE.sub("", value)[:MAX_INPUT_LENGTH].strip()


def is_allowed_input(value: str) -> bool:
    """Allow-list check run client-side before a report is requested."""
    return bool(value) and _ALLOWED_INPUT_RE.fullmatch(value) is not None
