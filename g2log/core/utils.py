"""Shared utility functions for g2log.

This module contains reusable helper functions used across the codebase:
- Template rendering (_render_error_template)
- JSON helpers (_safe_json_loads, _strip_jsonc)
- String normalization
- Path and identifier sanitization
- Header redaction for debug output

These utilities have minimal dependencies and can be used by any module.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

_TEMPLATE_IF_TOKEN_RE = re.compile(r"\{\{\s*(#if\s+(\w+)|/if)\s*\}\}")

# -----------------------------------------------------------------------------
# Template Rendering
# -----------------------------------------------------------------------------

def _render_error_template(template: str, values: dict[str, Any]) -> str:
    """Render a user-supplied template, honoring {{#if}} conditionals.

    Lines inside a falsy ``{{#if name}}`` block are dropped, as are lines whose
    ``{placeholder}`` resolves to an empty value.
    """
    rendered_lines: list[str] = []
    condition_stack: list[bool] = []

    def _conditions_active() -> bool:
        return all(condition_stack) if condition_stack else True

    for raw_line in (template or "").splitlines():
        last_index = 0
        line_parts: list[str] = []

        for match in _TEMPLATE_IF_TOKEN_RE.finditer(raw_line):
            segment = raw_line[last_index:match.start()]
            if segment and _conditions_active():
                line_parts.append(segment)

            token = match.group(1) or ""
            var_name = match.group(2)
            if token.startswith("#if"):
                condition_stack.append(_template_value_present(values.get(var_name or "")))
            elif condition_stack:
                condition_stack.pop()

            last_index = match.end()

        tail_segment = raw_line[last_index:]
        if tail_segment and _conditions_active():
            line_parts.append(tail_segment)

        if not line_parts:
            if raw_line.strip() or not _conditions_active():
                continue
            rendered_lines.append("")
            continue

        line = "".join(line_parts)

        drop_line = False
        for name, value in values.items():
            placeholder = f"{{{name}}}"
            if placeholder in line:
                if not _template_value_present(value):
                    drop_line = True
                line = line.replace(placeholder, "" if value is None else str(value))
        if drop_line:
            continue
        rendered_lines.append(line)
    return "\n".join(rendered_lines).strip()


def _template_value_present(value: Any) -> bool:
    """Return True when a placeholder value should be rendered."""
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (list, tuple, set, dict)):
        return bool(value)
    if isinstance(value, (int, float)):
        return True
    return bool(value)


# -----------------------------------------------------------------------------
# JSON Helpers
# -----------------------------------------------------------------------------

def _safe_json_loads(payload: Optional[str]) -> Any:
    """Return parsed JSON or None without raising."""
    if not payload:
        return None
    try:
        return json.loads(payload)
    except (TypeError, ValueError):
        return None


def _strip_jsonc(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments plus trailing commas from JSONC text.

    String literals are left untouched, so URLs such as ``https://...`` survive.
    """
    out: list[str] = []
    i = 0
    length = len(text)
    in_string = False
    while i < length:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
            continue
        if ch == "/" and i + 1 < length:
            nxt = text[i + 1]
            if nxt == "/":
                end = text.find("\n", i)
                i = length if end == -1 else end
                continue
            if nxt == "*":
                end = text.find("*/", i + 2)
                i = length if end == -1 else end + 2
                continue
        out.append(ch)
        i += 1
    return _drop_trailing_commas("".join(out))


def _drop_trailing_commas(text: str) -> str:
    out: list[str] = []
    in_string = False
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch == ",":
            j = i + 1
            while j < length and text[j].isspace():
                j += 1
            if j >= length or text[j] not in "}]":
                out.append(ch)
        else:
            out.append(ch)
        i += 1
    return "".join(out)


# -----------------------------------------------------------------------------
# String Normalization
# -----------------------------------------------------------------------------

def _normalize_optional_str(value: Any) -> Optional[str]:
    """Convert arbitrary input into a trimmed string or None."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def _sanitize_path_component(value: str, *, fallback: str = "unknown", max_length: int = 128) -> str:
    """Return a filesystem-safe path component to prevent traversal/odd characters."""
    text = str(value or "").strip()
    if not text:
        return fallback
    cleaned = re.sub(r"[^\w.-]+", "_", text)
    cleaned = cleaned.strip("._-") or fallback
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length].rstrip("._-") or fallback
    return cleaned


def _redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` with the bearer token shortened."""
    redacted = dict(headers)
    auth = redacted.get("Authorization")
    if auth:
        token = auth[len("Bearer "):] if auth.startswith("Bearer ") else auth
        redacted["Authorization"] = f"Bearer {token[:6]}..." if len(token) > 6 else "Bearer ***"
    return redacted
