"""Summary output: Markdown files, terminal rendering and HTML pages."""

from .html import open_in_browser, render_body, save_html, text_to_html
from .terminal import (
    default_output_name,
    format_markdown,
    render_markdown,
    summary_title,
    write_summary_file,
)

__all__ = [
    "open_in_browser",
    "render_body",
    "save_html",
    "text_to_html",
    "default_output_name",
    "format_markdown",
    "render_markdown",
    "summary_title",
    "write_summary_file",
]
