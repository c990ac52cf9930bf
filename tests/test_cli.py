"""Tests for the typer CLI: config commands and the summary run."""

from __future__ import annotations

import json

import pytest
from aioresponses import aioresponses
from typer.testing import CliRunner

from g2log import __version__
from g2log.cli import app
from g2log.core.config import API_KEY_ENV, DEFAULT_PROMPT_TEMPLATE, load_settings

DEEPSEEK_URL = "https://api.deepseek.com/chat/completions"
RANGE = ["--since", "2024-02-28 00:00:00 +0000", "--until", "2024-03-05 00:00:00 +0000"]

runner = CliRunner()


def _stream_body(*contents: str) -> bytes:
    chunks = [f"data: {json.dumps({'choices': [{'delta': {'content': text}}]})}\n\n" for text in contents]
    return ("".join(chunks) + "data: [DONE]\n\n").encode()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"g2log {__version__}"


# -----------------------------------------------------------------------------
# config commands
# -----------------------------------------------------------------------------

def test_set_key_and_show_masks_key(config_path):
    result = runner.invoke(app, ["config", "set-key", "sk-very-secret"])
    assert result.exit_code == 0, result.output
    assert load_settings(config_path).profiles["deepseek"].api_key.plain == "sk-very-secret"

    shown = runner.invoke(app, ["config", "show"])
    assert shown.exit_code == 0, shown.output
    assert "sk-very-secret" not in shown.output
    assert "***" in shown.output


def test_set_key_for_other_profile(config_path):
    result = runner.invoke(app, ["config", "set-key", "zk-1", "--profile", "zhipu"])
    assert result.exit_code == 0, result.output
    settings = load_settings(config_path)
    assert settings.profiles["zhipu"].api_key.plain == "zk-1"
    assert settings.profiles["deepseek"].api_key.plain == ""


def test_use_profile(config_path):
    assert runner.invoke(app, ["config", "use", "openai"]).exit_code == 0
    assert load_settings(config_path).current_profile == "openai"

    result = runner.invoke(app, ["config", "use", "missing"])
    assert result.exit_code == 1
    assert "Unknown profile" in result.output


def test_profiles_table_lists_builtins():
    result = runner.invoke(app, ["config", "profiles"])
    assert result.exit_code == 0, result.output
    for name in ("deepseek", "openai", "zhipu"):
        assert name in result.output


def test_set_profile_field_and_setting(config_path):
    assert runner.invoke(app, ["config", "set", "model", "deepseek-reasoner"]).exit_code == 0
    assert runner.invoke(app, ["config", "set", "temperature", "0.2", "--profile", "openai"]).exit_code == 0
    assert runner.invoke(app, ["config", "set", "verify_tls", "false"]).exit_code == 0
    settings = load_settings(config_path)
    assert settings.profiles["deepseek"].model == "deepseek-reasoner"
    assert settings.profiles["openai"].temperature == 0.2
    assert settings.verify_tls is False


def test_set_rejects_unknown_field(config_path):
    result = runner.invoke(app, ["config", "set", "colour", "blue"])
    assert result.exit_code == 1
    assert "Unknown setting" in result.output
    assert not config_path.exists()


def test_set_author_and_range(config_path):
    assert runner.invoke(app, ["config", "set-author", "  Alice "]).exit_code == 0
    assert runner.invoke(app, ["config", "set-range", "--since", "1 week ago"]).exit_code == 0
    settings = load_settings(config_path)
    assert settings.default_author == "Alice"
    assert settings.default_since == "1 week ago"
    assert settings.default_until == "today"

    assert runner.invoke(app, ["config", "set-range"]).exit_code == 1


def test_config_option_on_subcommand(tmp_path):
    other = tmp_path / "elsewhere" / "config.jsonc"
    result = runner.invoke(app, ["config", "--config", str(other), "set-author", "Zed"])
    assert result.exit_code == 0, result.output
    assert load_settings(other).default_author == "Zed"


def test_config_option_on_main(tmp_path):
    other = tmp_path / "main-option.jsonc"
    result = runner.invoke(app, ["--config", str(other), "config", "set-author", "Yan"])
    assert result.exit_code == 0, result.output
    assert load_settings(other).default_author == "Yan"


def test_broken_config_file_reports_error(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text("{broken", encoding="utf-8")
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 1
    assert "Config error" in result.output


def test_repository_commands(config_path, git_repo):
    added = runner.invoke(app, ["config", "add-repo", "web", str(git_repo)])
    assert added.exit_code == 0, added.output
    assert "web" in load_settings(config_path).repositories

    listed = runner.invoke(app, ["config", "repos"])
    assert listed.exit_code == 0
    assert "web" in listed.output

    removed = runner.invoke(app, ["config", "remove-repo", "web"])
    assert removed.exit_code == 0
    assert load_settings(config_path).repositories == {}

    assert runner.invoke(app, ["config", "remove-repo", "web"]).exit_code == 1


def test_add_repo_missing_path(tmp_path):
    result = runner.invoke(app, ["config", "add-repo", "x", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_repos_empty():
    result = runner.invoke(app, ["config", "repos"])
    assert result.exit_code == 0
    assert "No repositories registered" in result.output


def test_find_and_add(config_path, git_repo, tmp_path):
    result = runner.invoke(app, ["config", "find", str(tmp_path), "--add"])
    assert result.exit_code == 0, result.output
    assert "project" in result.output
    repositories = load_settings(config_path).repositories
    assert list(repositories) == ["project"]


def test_find_add_suffixes_repeated_directory_names(config_path, tmp_path):
    root = tmp_path / "src"
    for group in ("a", "b"):
        (root / group / "web" / ".git").mkdir(parents=True)
    result = runner.invoke(app, ["config", "find", str(root), "--add"])
    assert result.exit_code == 0, result.output
    assert "'web-2'" in result.output
    repositories = load_settings(config_path).repositories
    assert repositories == {
        "web": str((root / "a" / "web").resolve()),
        "web-2": str((root / "b" / "web").resolve()),
    }

    # Re-running keeps existing aliases instead of adding more suffixes.
    assert runner.invoke(app, ["config", "find", str(root), "--add"]).exit_code == 0
    assert load_settings(config_path).repositories == repositories


def test_find_nothing(tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()
    result = runner.invoke(app, ["config", "find", str(empty)])
    assert result.exit_code == 0
    assert "No git repositories found" in result.output


def test_config_remove_after_confirmation(config_path):
    assert runner.invoke(app, ["config", "set-key", "sk-test"]).exit_code == 0
    assert config_path.exists()
    result = runner.invoke(app, ["config", "remove"], input="y\n")
    assert result.exit_code == 0, result.output
    assert not config_path.parent.exists()


def test_config_remove_declined_keeps_files(config_path):
    assert runner.invoke(app, ["config", "set-key", "sk-test"]).exit_code == 0
    result = runner.invoke(app, ["config", "remove"], input="n\n")
    assert result.exit_code == 1
    assert config_path.exists()


def test_config_remove_yes_skips_prompt(config_path):
    assert runner.invoke(app, ["config", "set-key", "sk-test"]).exit_code == 0
    assert runner.invoke(app, ["config", "remove", "--yes"]).exit_code == 0
    assert not config_path.parent.exists()


def test_config_remove_without_directory(config_path):
    result = runner.invoke(app, ["config", "remove", "--yes"])
    assert result.exit_code == 0
    assert "Nothing to remove" in result.output


def test_prompt_template_commands(config_path, tmp_path):
    template_file = tmp_path / "prompt.txt"
    template_file.write_text("Summarize {log_content}", encoding="utf-8")
    assert runner.invoke(app, ["config", "set-prompt-template", str(template_file)]).exit_code == 0
    assert load_settings(config_path).prompt_template == "Summarize {log_content}"

    assert runner.invoke(app, ["config", "reset-prompt-template"]).exit_code == 0
    assert load_settings(config_path).prompt_template == DEFAULT_PROMPT_TEMPLATE

    empty = tmp_path / "empty.txt"
    empty.write_text("  ", encoding="utf-8")
    assert runner.invoke(app, ["config", "set-prompt-template", str(empty)]).exit_code == 1
    assert runner.invoke(app, ["config", "set-prompt-template", str(tmp_path / "none.txt")]).exit_code == 1


# -----------------------------------------------------------------------------
# summary run
# -----------------------------------------------------------------------------

@pytest.fixture
def in_repo(monkeypatch, git_repo):
    monkeypatch.chdir(git_repo)
    monkeypatch.setenv(API_KEY_ENV, "sk-test")
    return git_repo


def test_summary_no_stream_saves_markdown(in_repo, tmp_path):
    output = tmp_path / "out" / "summary.md"
    with aioresponses() as mock_http:
        mock_http.post(DEEPSEEK_URL, status=200, body=_stream_body("【2024-03-01】\n", "web: login page"))
        result = runner.invoke(app, ["--local", "--no-stream", "-a", "Alice", "-o", str(output), *RANGE])
    assert result.exit_code == 0, result.output
    assert "2 commits from 1 repository" in result.output
    assert "login page" in result.output
    assert output.read_text(encoding="utf-8").endswith("\n\n【2024-03-01】\nweb: login page\n")
    assert output.read_text(encoding="utf-8").startswith("# Alice work summary (")


def test_summary_streams_and_saves_default_name(in_repo, config_path):
    with aioresponses() as mock_http:
        mock_http.post(DEEPSEEK_URL, status=200, body=_stream_body("Busy ", "week"))
        result = runner.invoke(app, ["--local", *RANGE])
    assert result.exit_code == 0, result.output
    assert "Busy week" in result.output
    saved = list(config_path.parent.glob("worklog_team_2024-02-28*_to_2024-03-05*.md"))
    assert len(saved) == 1
    assert "Busy week" in saved[0].read_text(encoding="utf-8")


def test_summary_html_output(in_repo, tmp_path):
    output = tmp_path / "summary.html"
    with aioresponses() as mock_http:
        mock_http.post(DEEPSEEK_URL, status=200, body=_stream_body("【2024-03-02】\nfixed crash"))
        result = runner.invoke(app, ["--local", "--html", "-o", str(output), *RANGE])
    assert result.exit_code == 0, result.output
    assert "<h3>2024-03-02</h3>" in output.read_text(encoding="utf-8")


def test_summary_show_prompt(in_repo):
    with aioresponses() as mock_http:
        mock_http.post(DEEPSEEK_URL, status=200, body=_stream_body("ok"))
        result = runner.invoke(app, ["--local", "--show-prompt", "-a", "Bob", *RANGE, "-o", "summary.md"])
    assert result.exit_code == 0, result.output
    assert "Fix crash on startup" in result.output
    assert (in_repo / "summary.md").exists()


def test_summary_no_commits(in_repo, tmp_path):
    output = tmp_path / "notice.txt"
    result = runner.invoke(app, ["--local", "-a", "Nobody", "-o", str(output), *RANGE])
    assert result.exit_code == 0, result.output
    assert "No commits found" in result.output
    assert output.read_text(encoding="utf-8").startswith("No commits found for Nobody")


def test_summary_outside_repository(monkeypatch, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    monkeypatch.chdir(outside)
    result = runner.invoke(app, ["--local"])
    assert result.exit_code == 1
    assert "Not inside a git repository" in result.output


def test_summary_failure_saves_raw_log(in_repo, tmp_path, config_path):
    output = tmp_path / "failed.md"
    with aioresponses() as mock_http:
        mock_http.post(
            DEEPSEEK_URL,
            status=401,
            body=json.dumps({"error": {"message": "Authentication Fails"}}),
            content_type="application/json",
        )
        result = runner.invoke(app, ["--local", "-o", str(output), *RANGE])
    assert result.exit_code == 1
    assert "Authentication Fails" in result.output
    raw = output.read_text(encoding="utf-8")
    assert raw.startswith("# Git commit log (2024-02-28 00:00:00 +0000 to 2024-03-05 00:00:00 +0000)\n\n")
    assert "Add login page" in raw
    assert "Fix crash on startup" in raw
    assert (config_path.parent / "logs" / "last_error.log").exists()


def test_summary_missing_key(monkeypatch, git_repo):
    monkeypatch.chdir(git_repo)
    result = runner.invoke(app, ["--local", *RANGE])
    assert result.exit_code == 1
    assert "API key is not configured" in result.output


def test_summary_unknown_profile(in_repo):
    result = runner.invoke(app, ["--local", "--profile", "nope", *RANGE])
    assert result.exit_code == 1
    assert "Unknown profile" in result.output


def test_summary_reads_configured_repositories(monkeypatch, git_repo, tmp_path):
    monkeypatch.setenv(API_KEY_ENV, "sk-test")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)
    assert runner.invoke(app, ["config", "add-repo", "web", str(git_repo)]).exit_code == 0
    output = tmp_path / "multi.md"
    with aioresponses() as mock_http:
        mock_http.post(DEEPSEEK_URL, status=200, body=_stream_body("multi"))
        result = runner.invoke(app, ["--show-prompt", "-o", str(output), *RANGE])
    assert result.exit_code == 0, result.output
    assert "Reading 1 configured repositories" in result.output
    assert "web | 2024-03-01 10:00:00 | Add login page" in result.output
