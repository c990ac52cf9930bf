"""File naming, Markdown output and terminal rendering for summaries."""

from __future__ import annotations

import datetime
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown

from ..core.utils import _sanitize_path_component

LOGGER = logging.getLogger(__name__)


def summary_title(author: Optional[str]) -> str:
    author = (author or "").strip()
    return f"{author} work summary" if author else "Team work summary"


def _normalize_date(value: Optional[str]) -> str:
    """ISO-parsable values become ``YYYY-MM-DD``; anything else is kept as typed."""
    text = (value or "").strip()
    if not text:
        return "unknown"
    try:
        return datetime.datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        return text


def default_output_name(
    author: Optional[str],
    since: Optional[str],
    until: Optional[str],
    *,
    extension: str = "md",
) -> str:
    """Return ``worklog_<author|team>_<since>_to_<until>.<ext>`` with path-safe parts."""
    who = _sanitize_path_component((author or "").strip(), fallback="team", max_length=48)
    start = _sanitize_path_component(_normalize_date(since), fallback="unknown", max_length=32)
    end = _sanitize_path_component(_normalize_date(until), fallback="unknown", max_length=32)
    return f"worklog_{who}_{start}_to_{end}.{extension.lstrip('.')}"


def format_markdown(
    summary: str,
    *,
    author: Optional[str],
    since: Optional[str],
    until: Optional[str],
    title: Optional[str] = None,
) -> str:
    header = f"# {title or summary_title(author)} ({since or 'unknown'} to {until or 'unknown'})"
    return f"{header}\n\n{summary.strip()}\n"


def write_summary_file(
    summary: str,
    path: str | Path,
    *,
    author: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    title: Optional[str] = None,
) -> Path:
    """Write ``summary`` as Markdown with a title header and return the path."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(format_markdown(summary, author=author, since=since, until=until, title=title), encoding="utf-8")
    LOGGER.debug("Saved summary to %s", target)
    return target


def render_markdown(text: str, console: Optional[Console] = None) -> None:
    (console or Console()).print(Markdown(text))
