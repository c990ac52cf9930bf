"""Tests for prompt template substitution."""

from __future__ import annotations

import pytest

from g2log.core.config import DEFAULT_PROMPT_TEMPLATE
from g2log.summary.prompt import ALL_AUTHORS_LABEL, render_prompt


@pytest.mark.parametrize(
    "template",
    [
        "Logs:\n{{GIT_LOGS}}\nby {{AUTHOR}} from {{SINCE}} to {{UNTIL}}",
        "Logs:\n{log_content}\nby {author} from {since} to {until}",
        "Logs:\n{{GIT_LOGS}}\nby {author} from {{SINCE}} to {until}",
    ],
)
def test_both_spellings_are_substituted(template):
    rendered = render_prompt(template, logs="a: fix", author="Alice", since="2024-03-01", until="2024-03-07")
    assert rendered == "Logs:\na: fix\nby Alice from 2024-03-01 to 2024-03-07"


def test_empty_author_renders_all_authors():
    assert render_prompt("{author}", logs="", author="") == ALL_AUTHORS_LABEL
    assert render_prompt("{{AUTHOR}}", logs="", author="   ") == ALL_AUTHORS_LABEL


def test_repeated_placeholders():
    assert render_prompt("{{SINCE}}|{since}|{{SINCE}}", logs="", since="s") == "s|s|s"


def test_substituted_values_are_not_rescanned():
    logs = "fix: handle {author} and {{UNTIL}} in templates"
    rendered = render_prompt("{log_content}", logs=logs, author="Bob", until="now")
    assert rendered == logs


def test_unknown_placeholders_are_left_verbatim():
    template = "{{GIT_LOGS}} {unknown} {{OTHER}} {"
    assert render_prompt(template, logs="L") == "L {unknown} {{OTHER}} {"


def test_default_template_contains_logs():
    rendered = render_prompt(DEFAULT_PROMPT_TEMPLATE, logs="2024-03-01 10:00:00: Add login page")
    assert "2024-03-01 10:00:00: Add login page" in rendered
    assert "{{GIT_LOGS}}" not in rendered
