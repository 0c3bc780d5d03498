from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime
from typing import Any, List

import yaml

from .errors import ExtractionError

logger = logging.getLogger(__name__)

_OPEN_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*")
_CLOSE_FENCE_RE = re.compile(r"\s*```\s*$")
_SPAN_RE = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")
_IDENT_START = re.compile(r"[A-Za-z_$]")
_IDENT_CHAR = re.compile(r"[A-Za-z0-9_$]")


def extract(text: str, allow_relaxed: bool = False) -> Any:
    """Pull a structured value out of loosely formatted text.

    Tries, in order: the text as-is, the text with a surrounding code fence
    removed, the first outermost ``{...}``/``[...]`` span, and (only when
    ``allow_relaxed``) the relaxed object-literal grammar. Service output must
    never be parsed with ``allow_relaxed``; it is meant for user-pasted backups.
    """
    raw = text if isinstance(text, str) else ""
    stripped = raw.strip()

    try:
        return json.loads(stripped)
    except ValueError:
        pass

    # Fences only at the edges; string values may contain ``` themselves.
    clean = _CLOSE_FENCE_RE.sub("", _OPEN_FENCE_RE.sub("", stripped)).strip()
    if clean != stripped:
        try:
            return json.loads(clean)
        except ValueError:
            pass

    match = _SPAN_RE.search(clean)
    if match:
        try:
            return json.loads(match.group(0))
        except ValueError:
            pass

    if allow_relaxed:
        candidates = [clean]
        if match and match.group(0) != clean:
            candidates.append(match.group(0))
        for candidate in candidates:
            try:
                return parse_relaxed(candidate)
            except ValueError:
                continue

    logger.warning("No structured payload found in %d characters of text", len(raw))
    raise ExtractionError("Could not find any structured data in the text.", text=raw)


def parse_relaxed(text: str) -> Any:
    """Parse a JavaScript-style object literal without evaluating it.

    Accepts unquoted keys, single-quoted strings, trailing commas and
    ``//``/``/* */`` comments. The result must be a mapping or a list.
    """
    normalized = _normalize_literal(text).strip()
    # Only flow collections; block YAML would read "a: b" prose as a mapping.
    if not normalized or normalized[0] not in "{[":
        raise ValueError("Object literal must start with '{' or '['")
    try:
        value = json.loads(normalized)
    except ValueError:
        try:
            value = yaml.safe_load(normalized)
        except yaml.YAMLError as exc:
            raise ValueError(f"Not an object literal: {exc}") from exc
    if not isinstance(value, (dict, list)):
        raise ValueError("Object literal must be a mapping or a list")
    return _plain(value)


def _normalize_literal(text: str) -> str:
    out: List[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]

        if ch == '"':
            end = _string_end(text, i, '"')
            out.append(text[i:end])
            i = end
            continue

        if ch == "'":
            end = _string_end(text, i, "'")
            out.append(json.dumps(_unescape_single(text[i + 1:end - 1]), ensure_ascii=False))
            i = end
            continue

        if text.startswith("//", i):
            newline = text.find("\n", i)
            i = n if newline == -1 else newline
            continue

        if text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = n if close == -1 else close + 2
            continue

        if ch == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j < n and text[j] in "}]":
                i += 1
                continue

        if _IDENT_START.match(ch) and _last_significant(out) in ("{", ","):
            j = i + 1
            while j < n and _IDENT_CHAR.match(text[j]):
                j += 1
            k = j
            while k < n and text[k].isspace():
                k += 1
            if k < n and text[k] == ":":
                out.append(json.dumps(text[i:j]))
                i = j
                continue
            out.append(text[i:j])
            i = j
            continue

        out.append(ch)
        i += 1
    return "".join(out)


def _string_end(text: str, start: int, quote: str) -> int:
    i = start + 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == quote:
            return i + 1
        i += 1
    raise ValueError("Unterminated string literal")


def _unescape_single(body: str) -> str:
    escapes = {"n": "\n", "t": "\t", "r": "\r"}
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(escapes.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _last_significant(out: List[str]) -> str:
    for chunk in reversed(out):
        stripped = chunk.strip()
        if stripped:
            return stripped[-1]
    return ""


def _plain(value: Any) -> Any:
    # YAML turns bare dates into date objects; keep everything JSON-shaped.
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
