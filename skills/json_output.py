"""Tolerant JSON loading for model output.

Models wrap JSON in Markdown fences, prepend chatter, and emit LaTeX-ish
backslashes that are not legal JSON escapes.  ``load_json_output`` tries the
strict parse first and repairs only when it has to; ``iter_json_objects``
salvages complete ``{...}`` objects from otherwise broken text.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)

# Placeholder for an already-valid "\\" while repairing
_ESCAPED_BACKSLASH = "\x00\x01"


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def repair_json_escapes(text: str) -> str:
    r"""Double every backslash that does not start a legal JSON escape.

    ``\(`` or ``\s`` become ``\\(`` / ``\\s``.  ``\f``, ``\b``, ``\n``, ``\r``
    and ``\t`` followed by two or more letters are LaTeX commands
    (``\frac``, ``\text``), not control characters, and are doubled too.
    """
    text = text.replace("\\\\", _ESCAPED_BACKSLASH)
    text = re.sub(r'\\(?!["\\/bfnrtu])', r"\\\\", text)
    text = re.sub(r"\\([bfnrt])([a-zA-Z]{2,})", r"\\\\\1\2", text)
    return text.replace(_ESCAPED_BACKSLASH, "\\\\")


def load_json_output(raw: str | None) -> Any:
    """Parse model output as JSON.  Raises ``ValueError`` when it cannot."""
    if raw is None or not raw.strip():
        raise ValueError("empty model output")
    text = strip_code_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    return json.loads(repair_json_escapes(text))


def iter_json_objects(text: str) -> Iterator[dict]:
    """Yield every balanced ``{...}`` object in *text* that parses.

    Scans string-aware, so braces inside quoted values do not count.  An
    object that fails to parse even after escape repair is skipped.
    """
    pos = 0
    while True:
        start = text.find("{", pos)
        if start == -1:
            return
        end = _matching_brace(text, start)
        if end == -1:
            return
        block = text[start : end + 1]
        pos = end + 1
        for candidate in (block, repair_json_escapes(block)):
            try:
                obj = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(obj, dict):
                yield obj
            break
        else:
            logger.warning("Dropped malformed JSON block (len=%d)", len(block))


def _matching_brace(text: str, start: int) -> int:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
        elif ch == "\\" and in_string:
            escaped = True
        elif ch == '"':
            in_string = not in_string
        elif in_string:
            continue
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1
