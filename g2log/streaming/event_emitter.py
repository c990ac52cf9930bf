"""Live output sinks.

The streaming client writes every fragment to a :class:`LiveSink` as soon as
it is decoded. Presentation is the sink's concern:
- ConsoleSink: rich console echo (reasoning dimmed, a divider between phases)
- CollectingSink: records calls in order, used by tests and --no-stream
- NullSink: discards everything
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from .constants import PHASE_TRANSITION_TEXT


@runtime_checkable
class LiveSink(Protocol):
    """Receiver of incremental output for one request."""

    def emit_status(self, message: str) -> None: ...

    def emit_reasoning(self, text: str) -> None: ...

    def emit_phase_transition(self) -> None: ...

    def emit_content(self, text: str) -> None: ...

    def finish(self) -> None: ...


class NullSink:
    """Sink that ignores all output."""

    def emit_status(self, message: str) -> None:
        pass

    def emit_reasoning(self, text: str) -> None:
        pass

    def emit_phase_transition(self) -> None:
        pass

    def emit_content(self, text: str) -> None:
        pass

    def finish(self) -> None:
        pass


class CollectingSink:
    """Sink that records ``(kind, text)`` tuples in arrival order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.finished = False

    def emit_status(self, message: str) -> None:
        self.events.append(("status", message))

    def emit_reasoning(self, text: str) -> None:
        self.events.append(("reasoning", text))

    def emit_phase_transition(self) -> None:
        self.events.append(("transition", PHASE_TRANSITION_TEXT))

    def emit_content(self, text: str) -> None:
        self.events.append(("content", text))

    def finish(self) -> None:
        self.finished = True

    @property
    def content(self) -> str:
        return "".join(text for kind, text in self.events if kind == "content")

    @property
    def reasoning(self) -> str:
        return "".join(text for kind, text in self.events if kind == "reasoning")

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]


class ConsoleSink:
    """Echo fragments to the terminal as they arrive.

    Args:
        console: Console receiving the summary text (stdout by default).
        status_console: Console receiving status lines (stderr by default).
        show_reasoning: Echo reasoning text; when False it is dropped.
        show_status: Print status lines.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        *,
        status_console: Optional[Console] = None,
        show_reasoning: bool = True,
        show_status: bool = True,
    ) -> None:
        self.console = console or Console(highlight=False)
        self.status_console = status_console or Console(stderr=True, highlight=False)
        self.show_reasoning = show_reasoning
        self.show_status = show_status
        self._line_open = False

    def _write(self, text: str, style: Optional[str] = None) -> None:
        self.console.print(Text(text, style=style or ""), end="", soft_wrap=True)
        self._line_open = not text.endswith("\n")

    def _close_line(self) -> None:
        if self._line_open:
            self.console.print()
            self._line_open = False

    def emit_status(self, message: str) -> None:
        if self.show_status:
            self.status_console.print(Text(message, style="dim"))

    def emit_reasoning(self, text: str) -> None:
        if self.show_reasoning:
            self._write(text, "dim")

    def emit_phase_transition(self) -> None:
        self._close_line()
        self.console.print(Rule(Text(PHASE_TRANSITION_TEXT, style="dim"), style="dim"))

    def emit_content(self, text: str) -> None:
        self._write(text)

    def finish(self) -> None:
        self._close_line()
