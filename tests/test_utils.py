"""Tests for small helpers in g2log/core/utils.py."""

from __future__ import annotations

import json

import pytest

from g2log.core.utils import (
    _normalize_optional_str,
    _redact_headers,
    _safe_json_loads,
    _sanitize_path_component,
    _strip_jsonc,
)


class TestStripJsonc:
    def test_comments_removed_outside_strings(self):
        text = '{\n  // line\n  "url": "https://api.deepseek.com", /* block */ "n": 1\n}'
        assert json.loads(_strip_jsonc(text)) == {"url": "https://api.deepseek.com", "n": 1}

    def test_trailing_commas_removed(self):
        assert json.loads(_strip_jsonc('{"a": [1, 2, ], "b": {"c": 3,},}')) == {"a": [1, 2], "b": {"c": 3}}

    def test_commas_inside_strings_kept(self):
        text = '{"t": "a, }", "u": "b,]"}'
        assert json.loads(_strip_jsonc(text)) == {"t": "a, }", "u": "b,]"}

    def test_escaped_quotes(self):
        text = '{"t": "say \\"hi\\" // still text"}'
        assert json.loads(_strip_jsonc(text)) == {"t": 'say "hi" // still text'}

    def test_unterminated_block_comment(self):
        assert _strip_jsonc('{"a": 1} /* open').strip() == '{"a": 1}'


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Alice", "Alice"),
        ("../etc/passwd", "etc_passwd"),
        ("a b/c", "a_b_c"),
        ("", "fallback"),
        ("...", "fallback"),
    ],
)
def test_sanitize_path_component(value, expected):
    assert _sanitize_path_component(value, fallback="fallback") == expected


def test_sanitize_path_component_length():
    assert _sanitize_path_component("x" * 300, max_length=10) == "x" * 10


def test_redact_headers():
    headers = {"Authorization": "Bearer sk-abcdef123456", "Accept": "text/event-stream"}
    redacted = _redact_headers(headers)
    assert redacted["Authorization"] == "Bearer sk-abc..."
    assert redacted["Accept"] == "text/event-stream"
    assert headers["Authorization"] == "Bearer sk-abcdef123456"
    assert _redact_headers({"Authorization": "Bearer abc"})["Authorization"] == "Bearer ***"
    assert _redact_headers({}) == {}


def test_json_helpers():
    assert _safe_json_loads('{"a": 1}') == {"a": 1}
    assert _safe_json_loads("not json") is None
    assert _safe_json_loads(None) is None


@pytest.mark.parametrize("value, expected", [(None, None), ("  x ", "x"), ("   ", None), (5, "5")])
def test_normalize_optional_str(value, expected):
    assert _normalize_optional_str(value) == expected
