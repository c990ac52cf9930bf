"""Git commit log extraction.

Produces the plain-text log that is fed into the summary prompt, from the
current repository or from every configured repository.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import git

from ..core.errors import GitLogError
from ..core.timing_logger import timed

LOGGER = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
# git emits \x1e (%x1e) before each commit; it is counted and then removed.
_RECORD_MARK = "\x1e"
_SINGLE_REPO_FORMAT = "%ad: %s%n%b%n"
_SKIP_DIRS = frozenset({"node_modules", ".venv", "venv", "__pycache__", ".tox", "dist", "build"})


@dataclass
class RepoLog:
    """Log text of one repository."""

    path: str
    text: str
    commit_count: int
    alias: Optional[str] = None


@dataclass
class CollectedLogs:
    """Aggregated result of reading several repositories."""

    text: str = ""
    commit_count: int = 0
    repo_count: int = 0
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not self.text.strip()


def find_git_repository(start: str | Path = ".") -> Optional[Path]:
    """Return the working-tree root containing ``start``, or None."""
    try:
        repo = git.Repo(Path(start).expanduser(), search_parent_directories=True)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError):
        return None
    try:
        return Path(repo.working_tree_dir) if repo.working_tree_dir else None
    finally:
        repo.close()


@timed
def find_git_repositories(root: str | Path, *, max_depth: int = 3) -> list[Path]:
    """Find repositories at or below ``root`` (nested repositories are not descended into)."""
    base = Path(root).expanduser().resolve()
    if not base.is_dir():
        raise GitLogError(f"Not a directory: {base}", path=str(base))
    found: list[Path] = []
    base_depth = len(base.parts)
    for current, dirs, _files in os.walk(base):
        current_path = Path(current)
        if (current_path / ".git").exists():
            found.append(current_path)
            dirs[:] = []
            continue
        if len(current_path.parts) - base_depth >= max_depth:
            dirs[:] = []
            continue
        dirs[:] = sorted(d for d in dirs if not d.startswith(".") and d not in _SKIP_DIRS)
    return found


def _log_args(
    *,
    author: Optional[str],
    since: Optional[str],
    until: Optional[str],
    pretty: str,
) -> list[str]:
    args = ["--no-merges", f"--date=format:{DATE_FORMAT}", f"--pretty=format:%x1e{pretty}"]
    if author and author.strip():
        args.append(f"--author={author.strip()}")
    if since:
        args.append(f"--since={since}")
    if until:
        args.append(f"--until={until}")
    return args


@timed
def read_repo_log(
    path: str | Path,
    *,
    author: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    alias: Optional[str] = None,
) -> RepoLog:
    """Run ``git log`` for one repository.

    Without ``alias`` each commit renders as ``"<date>: <subject>\\n<body>"``;
    with it as ``"<alias> | <date> | <subject>\\n<body>"``.

    Raises:
        GitLogError: The path is not a repository or git failed.
    """
    repo_path = Path(path).expanduser()
    pretty = f"{alias.replace('%', '%%')} | %ad | %s%n%b%n" if alias else _SINGLE_REPO_FORMAT
    try:
        repo = git.Repo(repo_path, search_parent_directories=alias is None)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError) as exc:
        raise GitLogError(f"Not a git repository: {repo_path}", path=str(repo_path)) from exc
    try:
        raw = repo.git.log(*_log_args(author=author, since=since, until=until, pretty=pretty))
    except git.GitCommandError as exc:
        stderr = (exc.stderr or "").strip() or str(exc)
        raise GitLogError(f"git log failed in {repo_path}: {stderr}", path=str(repo_path)) from exc
    finally:
        repo.close()

    count = raw.count(_RECORD_MARK)
    text = raw.replace(_RECORD_MARK, "").strip("\n")
    LOGGER.debug("Read %d commits from %s", count, repo_path)
    return RepoLog(path=str(repo_path), text=text, commit_count=count, alias=alias)


@timed
def collect_logs(
    repositories: Mapping[str, str],
    *,
    author: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
) -> CollectedLogs:
    """Read every configured repository in order and join the non-empty logs.

    A repository that cannot be read is skipped and recorded in ``failures``.
    """
    result = CollectedLogs()
    chunks: list[str] = []
    for alias, repo_path in repositories.items():
        try:
            repo_log = read_repo_log(repo_path, author=author, since=since, until=until, alias=alias)
        except GitLogError as exc:
            LOGGER.warning("Skipping repository %s: %s", alias, exc)
            result.failures[alias] = str(exc)
            continue
        if not repo_log.text.strip():
            continue
        chunks.append(repo_log.text)
        result.commit_count += repo_log.commit_count
        result.repo_count += 1
    result.text = "\n\n".join(chunks)
    return result
