"""Tolerant JSON extraction for model replies.

Models wrap JSON in code fences, prepend prose, emit a BOM or leave raw newlines
inside string literals. We undo the common cases before `json.loads`.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict


_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _escape_raw_whitespace_in_strings(s: str) -> str:
    out = []
    in_string = False
    escaped = False
    for ch in s:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch == "\n":
                out.append("\\n")
                continue
            elif ch == "\r":
                out.append("\\r")
                continue
            elif ch == "\t":
                out.append("\\t")
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def clean_json_text(text: str) -> str:
    s = (text or "").lstrip("\ufeff")
    s = _CONTROL_CHARS_RE.sub("", s).strip()
    m = _FENCE_RE.search(s)
    if m:
        s = m.group(1).strip()
    start = s.find("{")
    end = s.rfind("}")
    if start != -1 and end > start:
        s = s[start : end + 1]
    return s


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse the first JSON object in `text`; raises ValueError when none can be recovered."""
    s = clean_json_text(text)
    if not s:
        raise ValueError("empty response")
    try:
        data = json.loads(s)
    except json.JSONDecodeError:
        try:
            data = json.loads(_escape_raw_whitespace_in_strings(s))
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data
