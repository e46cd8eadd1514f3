from __future__ import annotations

import json
from typing import Any

from upsc_digest.core.errors import ModelOutputError


def _balanced_end(text: str, start: int) -> int | None:
    """Index just past the object opening at ``start``, or None if it never closes."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
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
                return i + 1
    return None


def extract_json_object(text: str | None) -> dict[str, Any]:
    """Return the first balanced ``{...}`` in model output that parses as a JSON object.

    Model output is untrusted: it may be wrapped in prose or markdown fences
    despite instructions. Candidates that do not parse are skipped.
    """
    if not text:
        raise ModelOutputError("empty model response")
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        # an unclosed brace in prose may still precede a complete object
        if end is not None:
            try:
                obj = json.loads(text[start:end])
            except json.JSONDecodeError:
                obj = None
            if isinstance(obj, dict):
                return obj
        start = text.find("{", start + 1)
    raise ModelOutputError("No JSON object found in model response")
