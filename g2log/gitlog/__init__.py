"""Commit log extraction from one or more git repositories."""

from .reader import (
    CollectedLogs,
    RepoLog,
    collect_logs,
    find_git_repositories,
    find_git_repository,
    read_repo_log,
)

__all__ = [
    "CollectedLogs",
    "RepoLog",
    "collect_logs",
    "find_git_repositories",
    "find_git_repository",
    "read_repo_log",
]
