"""
Structured-output extractor — recovers one JSON object from model text.

Models wrap their payload in prose, markdown fences and reasoning blocks,
and sometimes stop mid-object.  `extract_json_object()` peels those layers
and classifies what is left:

  - OutputTruncated    end of text reached inside an open object/array/string
  - OutputParseFailed  empty text, no object, mismatched brackets, bad JSON

Both are retryable (see services/retry_policy.py).
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from spec_forge.errors import OutputParseFailed, OutputTruncated, RetryableOutputError

logger = logging.getLogger(__name__)

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_THINK_OPEN = re.compile(r"<think>", re.IGNORECASE)
_FENCE = "```"
_FENCE_TAG = re.compile(r"[A-Za-z0-9_+-]*")

_CLOSERS = {"{": "}", "[": "]"}

# What a JSON object looks like right after its opening brace
_OBJECT_START = re.compile(r"\{\s*(\"|\}|$)")

# Scanner states
_OUTSIDE = 0
_IN_STRING = 1
_ESCAPED = 2


def extract_json_object(raw_text: Optional[str]) -> dict[str, Any]:
    """
    Return the first well-formed JSON object found in *raw_text*.

    The body of a ``` fence is tried first; if nothing in it decodes, the
    whole (unfenced) text is scanned and the fence's error is reported
    when that fails too.
    """
    if raw_text is None or not raw_text.strip():
        raise OutputParseFailed("Empty model output")

    text = strip_think_blocks(raw_text)
    fenced = strip_code_fence(text)
    try:
        return _first_object(fenced)
    except RetryableOutputError as fence_error:
        if fenced == text:
            raise
        logger.debug("[EXTRACT] Nothing decodable inside the fence, scanning full text")
        try:
            return _first_object(text)
        except RetryableOutputError:
            raise fence_error from None


def _first_object(text: str) -> dict[str, Any]:
    errors: list[RetryableOutputError] = []
    start = text.find("{")
    while start >= 0:
        try:
            end = _scan_balanced(text, start)
        except OutputTruncated as exc:
            # A real object cut short ends the search; a stray '{' in prose does not.
            if _OBJECT_START.match(text, start):
                raise
            errors.append(exc)
            start = text.find("{", start + 1)
            continue
        except OutputParseFailed as exc:
            errors.append(exc)
            start = text.find("{", start + 1)
            continue

        candidate = text[start:end]
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError as exc:
            errors.append(OutputParseFailed(f"Invalid JSON at offset {start + exc.pos}: {exc.msg}"))
            start = text.find("{", end)
            continue

        if not isinstance(value, dict):
            errors.append(OutputParseFailed("Top-level JSON value is not an object"))
            start = text.find("{", end)
            continue

        if end < len(text.rstrip()):
            logger.debug(f"[EXTRACT] Ignored {len(text) - end} trailing chars after JSON object")
        return value

    if not errors:
        raise OutputParseFailed("No JSON object found in model output")
    raise errors[0]


def strip_think_blocks(text: str) -> str:
    """Drop <think>…</think> reasoning; an unclosed <think> drops the rest."""
    text = _THINK_BLOCK.sub("", text)
    match = _THINK_OPEN.search(text)
    if match:
        text = text[: match.start()]
    return text


def strip_code_fence(text: str) -> str:
    """Keep only the body of the first ``` fence, if there is one with an object in it."""
    open_at = text.find(_FENCE)
    if open_at < 0:
        return text

    body_start = open_at + len(_FENCE)
    tag = _FENCE_TAG.match(text, body_start)
    if tag:
        body_start = tag.end()

    close_at = text.find(_FENCE, body_start)
    body = text[body_start:] if close_at < 0 else text[body_start:close_at]
    if "{" not in body:
        return text
    return body


def _scan_balanced(text: str, start: int) -> int:
    """
    Scan from the '{' at *start* and return the index just past the
    matching '}'.  Brackets inside strings (escapes included) are ignored.
    """
    stack: list[str] = []
    state = _OUTSIDE

    for i in range(start, len(text)):
        ch = text[i]

        if state == _ESCAPED:
            state = _IN_STRING
            continue
        if state == _IN_STRING:
            if ch == "\\":
                state = _ESCAPED
            elif ch == '"':
                state = _OUTSIDE
            continue

        if ch == '"':
            state = _IN_STRING
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in ("}", "]"):
            if not stack or _CLOSERS[stack.pop()] != ch:
                raise OutputParseFailed(f"Mismatched '{ch}' at offset {i}")
            if not stack:
                return i + 1

    where = "string" if state != _OUTSIDE else f"{len(stack)} bracket(s)"
    raise OutputTruncated(f"Model output ended with an open {where}")
