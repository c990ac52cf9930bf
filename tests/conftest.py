"""Test configuration helpers for unit tests."""

from __future__ import annotations

import os
import shutil

# GitPython refuses to import without a git executable unless told to stay quiet.
os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")

import pytest

from g2log.core.config import API_KEY_ENV, CONFIG_PATH_ENV, LOG_LEVEL_ENV, SECRET_KEY_ENV, Settings
from g2log.core.timing_logger import clear_timing_context, close_timing_file

HAS_GIT = shutil.which("git") is not None


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """Keep tests away from the real ~/.g2log and the caller's credentials."""
    for name in (API_KEY_ENV, SECRET_KEY_ENV, LOG_LEVEL_ENV):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv(CONFIG_PATH_ENV, str(tmp_path / "home" / ".g2log" / "config.jsonc"))
    yield
    clear_timing_context()
    close_timing_file()


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "home" / ".g2log" / "config.jsonc"


@pytest.fixture
def settings() -> Settings:
    """Settings with a usable key on the default profile."""
    settings = Settings()
    settings.set_api_key("sk-test-key")
    return settings


@pytest.fixture
def git_repo(tmp_path):
    """A repository with three commits by two authors on fixed dates."""
    if not HAS_GIT:
        pytest.skip("git executable not available")
    import git

    repo_path = tmp_path / "project"
    repo_path.mkdir()
    repo = git.Repo.init(repo_path)
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Alice")
        cw.set_value("user", "email", "alice@example.com")
        cw.set_value("commit", "gpgsign", "false")

    # 2024-03-01 10:00, 2024-03-02 11:30 and 2024-03-03 09:15 UTC
    commits = [
        ("Alice", "alice@example.com", "1709287200", "Add login page", "Supports OAuth"),
        ("Bob", "bob@example.com", "1709379000", "Fix crash on startup", ""),
        ("Alice", "alice@example.com", "1709457300", "Refactor session store", ""),
    ]
    for idx, (name, email, stamp, subject, body) in enumerate(commits):
        (repo_path / f"file{idx}.txt").write_text(f"{subject}\n", encoding="utf-8")
        repo.index.add([f"file{idx}.txt"])
        actor = git.Actor(name, email)
        message = f"{subject}\n\n{body}" if body else subject
        repo.index.commit(
            message,
            author=actor,
            committer=actor,
            author_date=f"{stamp} +0000",
            commit_date=f"{stamp} +0000",
        )
    repo.close()
    return repo_path
