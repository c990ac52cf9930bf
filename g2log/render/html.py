"""HTML rendering of a finished summary.

The summary text is Markdown as the model wrote it, plus the ``【date】``
headings the default prompt asks for. It is converted with ``markdown`` and
placed into the ``templates/summary.html`` page, which can then be opened in
the default browser.
"""

from __future__ import annotations

import datetime
import logging
import re
import webbrowser
from pathlib import Path
from typing import Optional

import markdown
from jinja2 import Environment, PackageLoader

LOGGER = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "nl2br", "sane_lists"]

_jinja_env = Environment(
    loader=PackageLoader("g2log", "templates"),
    autoescape=True,
)

_BRACKET_HEADING_RE = re.compile(r"^[ \t]*【([^】\n]*)】([^\n]*)$", re.MULTILINE)
_DOT_BULLET_RE = re.compile(r"^([ \t]*)•[ \t]+", re.MULTILINE)
_LIST_ITEM_RE = re.compile(r"^[ \t]*(?:[-*+]|\d+\.)[ \t]+")


def _separate_lists(text: str) -> str:
    """Insert the blank line Markdown needs between a paragraph line and a list."""
    lines: list[str] = []
    for line in text.split("\n"):
        if _LIST_ITEM_RE.match(line) and lines and lines[-1].strip() and not _LIST_ITEM_RE.match(lines[-1]):
            lines.append("")
        lines.append(line)
    return "\n".join(lines)


def _prepare_markdown(text: str) -> str:
    text = text.replace("\r\n", "\n").strip()
    # Raw HTML from the model is shown as text, never interpreted.
    text = text.replace("<", "&lt;")
    text = _BRACKET_HEADING_RE.sub(lambda m: f"\n### {m.group(1)}{m.group(2).rstrip()}\n", text)
    text = _DOT_BULLET_RE.sub(r"\1- ", text)
    return _separate_lists(text)


def render_body(text: str) -> str:
    """Convert summary text to an HTML fragment."""
    if not text.strip():
        return ""
    return markdown.markdown(_prepare_markdown(text), extensions=MARKDOWN_EXTENSIONS, output_format="html")


def text_to_html(text: str, title: str = "Git work summary", *, generated_at: Optional[datetime.datetime] = None) -> str:
    """Return a complete HTML page for ``text``.

    ``【heading】`` lines become ``<h3>`` headings and the rest is rendered as
    Markdown, with single newlines kept as ``<br>``. Raw HTML in the text is
    escaped.
    """
    stamp = (generated_at or datetime.datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    return _jinja_env.get_template("summary.html").render(
        title=title,
        generated_at=stamp,
        body_html=render_body(text),
    )


def save_html(text: str, path: str | Path, *, title: str = "Git work summary") -> Path:
    """Write the HTML page for ``text`` to ``path`` and return it."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text_to_html(text, title), encoding="utf-8")
    LOGGER.debug("Saved HTML summary to %s", target)
    return target


def open_in_browser(path: str | Path) -> bool:
    """Open ``path`` in the default browser; False when no browser is available."""
    uri = Path(path).expanduser().resolve().as_uri()
    try:
        opened = webbrowser.open(uri)
    except webbrowser.Error as exc:
        LOGGER.warning("Could not open browser for %s: %s", uri, exc)
        return False
    if not opened:
        LOGGER.warning("No browser available to open %s", uri)
    return bool(opened)
