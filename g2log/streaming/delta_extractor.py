"""Chat-completion delta extraction.

Maps one decoded SSE event body to zero or more :class:`DeltaFragment` values.
Only ``choices[0].delta`` is inspected; reasoning text is emitted before main
content from the same event. Malformed or unexpected payloads produce no
fragments and never raise.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

LOGGER = logging.getLogger(__name__)

_PREVIEW_CHARS = 200


class DeltaKind(str, Enum):
    CONTENT = "content"
    REASONING = "reasoning"


@dataclass(frozen=True, slots=True)
class DeltaFragment:
    """One piece of generated text."""

    kind: DeltaKind
    text: str

    @property
    def is_content(self) -> bool:
        return self.kind is DeltaKind.CONTENT


class DeltaExtractor:
    """Extracts fragments from OpenAI-compatible chat-completion chunks.

    Args:
        include_reasoning: Emit ``reasoning_content`` as REASONING fragments.
            When False reasoning text is dropped.
        logger: Logger for skipped events (DEBUG level).
    """

    def __init__(self, *, include_reasoning: bool = False, logger: Optional[logging.Logger] = None) -> None:
        self.include_reasoning = include_reasoning
        self.logger = logger or LOGGER

    def extract(self, body: str) -> list[DeltaFragment]:
        """Return the fragments carried by one event body."""
        try:
            payload = json.loads(body)
        except (TypeError, ValueError) as exc:
            self.logger.debug("Skipping malformed SSE event (%s): %.*s", exc, _PREVIEW_CHARS, body)
            return []

        delta = _first_delta(payload)
        if delta is None:
            self.logger.debug("Skipping SSE event without choices[0].delta: %.*s", _PREVIEW_CHARS, body)
            return []

        fragments: list[DeltaFragment] = []
        if self.include_reasoning:
            reasoning = delta.get("reasoning_content")
            if isinstance(reasoning, str) and reasoning:
                fragments.append(DeltaFragment(DeltaKind.REASONING, reasoning))
        content = delta.get("content")
        if isinstance(content, str) and content:
            fragments.append(DeltaFragment(DeltaKind.CONTENT, content))
        return fragments


def _first_delta(payload: Any) -> Optional[dict[str, Any]]:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    return delta if isinstance(delta, dict) else None
