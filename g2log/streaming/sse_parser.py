"""Incremental Server-Sent Events decoder.

Turns an arbitrarily chunked byte stream into complete ``data:`` payloads:
- Lines are split on ``\\n`` (a trailing ``\\r`` is dropped)
- A blank line ends an event; several ``data:`` lines are joined with ``\\n``
- Comment lines (``:``) and other fields (``event:``, ``id:``, ``retry:``) are ignored
- Bytes are buffered, so multi-byte UTF-8 characters may straddle chunks

The decoder returns the ``[DONE]`` sentinel like any other payload; callers
use :func:`is_done_sentinel` to stop reading.
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


def is_done_sentinel(event: Optional[str]) -> bool:
    """Return True for the end-of-stream marker."""
    return event is not None and event.strip() == DONE_SENTINEL


class SSEDecoder:
    """Stateful SSE frame decoder for one HTTP response.

    Example:
        decoder = SSEDecoder()
        for chunk in chunks:
            for body in decoder.feed(chunk):
                ...
        tail = decoder.flush()
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or LOGGER
        self._buf = bytearray()
        self._data_parts: list[bytes] = []

    def feed(self, chunk: bytes | bytearray | str) -> list[str]:
        """Append ``chunk`` and return the event bodies it completed.

        Args:
            chunk: Raw bytes from the transport (text is encoded as UTF-8).

        Returns:
            Ordered list of event bodies, possibly empty.
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        if not chunk:
            return []
        self._buf.extend(chunk)

        events: list[str] = []
        start_idx = 0
        while True:
            newline_idx = self._buf.find(b"\n", start_idx)
            if newline_idx == -1:
                break
            line = bytes(self._buf[start_idx:newline_idx])
            start_idx = newline_idx + 1
            event = self._consume_line(line)
            if event is not None:
                events.append(event)

        if start_idx:
            del self._buf[:start_idx]
        return events

    def flush(self) -> Optional[str]:
        """Return a trailing event terminated by end-of-stream instead of a blank line.

        Tolerates an empty or whitespace-only buffer. The decoder is empty
        afterwards and can be reused.
        """
        if self._buf:
            leftover = bytes(self._buf)
            self._buf.clear()
            self._consume_line(leftover)
        return self._dispatch()

    def _consume_line(self, line: bytes) -> Optional[str]:
        """Process one line; return an event body when ``line`` terminates one."""
        if line.endswith(b"\r"):
            line = line[:-1]
        if not line.strip():
            return self._dispatch()
        if line.startswith(b":"):
            return None
        stripped = line.lstrip()
        if stripped.startswith(b"data:"):
            self._data_parts.append(stripped[5:].lstrip())
        return None

    def _dispatch(self) -> Optional[str]:
        if not self._data_parts:
            return None
        blob = b"\n".join(self._data_parts).strip()
        self._data_parts.clear()
        if not blob:
            return None
        return blob.decode("utf-8", errors="replace")
