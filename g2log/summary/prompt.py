"""Prompt template substitution.

Every variable has two accepted spellings so that user-customized templates
keep working:

=========  ===============  ===============
variable   mustache form    brace form
=========  ===============  ===============
logs       ``{{GIT_LOGS}}``  ``{log_content}``
author     ``{{AUTHOR}}``    ``{author}``
since      ``{{SINCE}}``     ``{since}``
until      ``{{UNTIL}}``     ``{until}``
=========  ===============  ===============

Substitution is a single pass: inserted values are never re-scanned, so a
commit message containing ``{author}`` stays as written. Unknown
placeholders are left verbatim.
"""

from __future__ import annotations

import re

ALL_AUTHORS_LABEL = "all authors"

PLACEHOLDERS: dict[str, str] = {
    "{{GIT_LOGS}}": "logs",
    "{log_content}": "logs",
    "{{AUTHOR}}": "author",
    "{author}": "author",
    "{{SINCE}}": "since",
    "{since}": "since",
    "{{UNTIL}}": "until",
    "{until}": "until",
}

# Longest spellings first so ``{{AUTHOR}}`` is never read as ``{AUTHOR}``.
_PLACEHOLDER_RE = re.compile(
    "|".join(re.escape(token) for token in sorted(PLACEHOLDERS, key=len, reverse=True))
)


def render_prompt(template: str, *, logs: str, author: str = "", since: str = "", until: str = "") -> str:
    """Substitute every supported placeholder in ``template``.

    An empty ``author`` renders as ``"all authors"``.
    """
    values = {
        "logs": logs,
        "author": author.strip() if author and author.strip() else ALL_AUTHORS_LABEL,
        "since": since,
        "until": until,
    }
    return _PLACEHOLDER_RE.sub(lambda match: values[PLACEHOLDERS[match.group(0)]], template)
