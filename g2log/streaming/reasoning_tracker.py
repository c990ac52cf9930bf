"""Reasoning phase tracking for one streamed response."""

from __future__ import annotations

import logging
from typing import Optional

from .delta_extractor import DeltaFragment, DeltaKind

LOGGER = logging.getLogger(__name__)


class ReasoningTracker:
    """Detects the edge where a response leaves its thinking phase.

    The first CONTENT fragment that follows at least one REASONING fragment
    marks the transition. ``observe`` reports it exactly once per response;
    content that never had reasoning in front of it produces no transition.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or LOGGER
        self.reasoning_chars = 0
        self.content_chars = 0
        self._seen_reasoning = False
        self._transitioned = False

    def observe(self, fragment: DeltaFragment) -> bool:
        """Record ``fragment``; return True if a phase marker belongs before it."""
        if fragment.kind is DeltaKind.REASONING:
            self._seen_reasoning = True
            self.reasoning_chars += len(fragment.text)
            return False
        self.content_chars += len(fragment.text)
        if self._seen_reasoning and not self._transitioned:
            self._transitioned = True
            self.logger.debug("Reasoning finished after %d chars", self.reasoning_chars)
            return True
        return False
