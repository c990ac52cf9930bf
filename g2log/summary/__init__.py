"""Summary generation: prompt rendering and request orchestration."""

from .orchestrator import PreparedSummary, SummaryOrchestrator, create_http_session
from .prompt import PLACEHOLDERS, render_prompt

__all__ = [
    "PreparedSummary",
    "SummaryOrchestrator",
    "create_http_session",
    "PLACEHOLDERS",
    "render_prompt",
]
