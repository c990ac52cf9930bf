"""Logging system with per-request log capture.

This module handles all logging-related functionality:
- SessionLogger: context-aware handler attached to the ``g2log`` logger
- Per-request in-memory buffers, written to ``logs/last_error.log`` after a failed run
- Console output on stderr (stdout carries the streamed summary)

The SessionLogger uses contextvars to track the request_id and the level
requested for the current run, so every module can keep using a plain
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
import traceback
from collections import deque
from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "g2log"


class SessionLogger:
    """Per-request log capture for the ``g2log`` logger tree.

    Attributes:
        request_id: ContextVar storing the per-request buffer key.
        log_level:  ContextVar storing the minimum level written to stderr.
        logs:       Map of request_id -> fixed-size deque of structured log events.
    """

    request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
    log_level: ContextVar[int] = ContextVar("log_level", default=logging.WARNING)
    max_lines: int = 2000
    logs: Dict[str, deque[dict[str, Any]]] = {}
    _state_lock = threading.Lock()
    _handler: Optional[logging.Handler] = None
    _console_formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    @classmethod
    def get_logger(cls, name: str = ROOT_LOGGER_NAME) -> logging.Logger:
        """Return ``name`` after making sure the capture handler is installed.

        The handler lives on the ``g2log`` logger, so records from every
        ``g2log.*`` module pass through it. Calling this repeatedly is safe.
        """
        root = logging.getLogger(ROOT_LOGGER_NAME)
        with cls._state_lock:
            if cls._handler is None or cls._handler not in root.handlers:
                handler = logging.Handler(level=logging.DEBUG)
                handler.addFilter(cls._attach_context)
                handler.emit = cls.process_record  # type: ignore[method-assign]
                root.addHandler(handler)
                cls._handler = handler
        root.setLevel(logging.DEBUG)
        if not any(isinstance(h, logging.NullHandler) for h in logging.getLogger().handlers):
            logging.getLogger().addHandler(logging.NullHandler())
        return logging.getLogger(name)

    @classmethod
    def _attach_context(cls, record: logging.LogRecord) -> bool:
        """Attach the request id and the active console level to ``record``."""
        record.request_id = cls.request_id.get()
        record.session_log_level = cls.log_level.get()
        return True

    @classmethod
    def bind(cls, request_id: str, level: int | str = logging.WARNING) -> tuple[Token, Token]:
        """Start capturing for ``request_id``; returns tokens for :meth:`unbind`."""
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
            if not isinstance(level, int):
                level = logging.WARNING
        return cls.request_id.set(request_id), cls.log_level.set(level)

    @classmethod
    def unbind(cls, tokens: tuple[Token, Token]) -> None:
        request_token, level_token = tokens
        cls.request_id.reset(request_token)
        cls.log_level.reset(level_token)

    @classmethod
    def _build_event(cls, record: logging.LogRecord) -> dict[str, Any]:
        """Return a structured log event extracted from a LogRecord."""
        event: dict[str, Any] = {
            "created": float(getattr(record, "created", time.time())),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", None),
            "func": record.funcName,
            "lineno": record.lineno,
            "message": record.getMessage(),
        }
        if record.exc_info:
            event["exception"] = "".join(traceback.format_exception(*record.exc_info))
        return event

    @classmethod
    def format_event_as_text(cls, event: dict[str, Any]) -> str:
        created = float(event.get("created") or time.time())
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(created))
        msecs = int((created - int(created)) * 1000)
        line = f"{stamp}.{msecs:03d} [{event.get('level') or 'INFO'}] {event.get('logger')}: {event.get('message') or ''}"
        if event.get("exception"):
            line += "\n" + str(event["exception"]).rstrip("\n")
        return line

    @classmethod
    def process_record(cls, record: logging.LogRecord) -> None:
        """Write ``record`` to stderr when enabled and buffer it per request."""
        try:
            if record.levelno >= int(getattr(record, "session_log_level", logging.WARNING)):
                sys.stderr.write(cls._console_formatter.format(record) + "\n")
                sys.stderr.flush()
            request_id = getattr(record, "request_id", None)
            if request_id:
                event = cls._build_event(record)
                with cls._state_lock:
                    buffer = cls.logs.get(request_id)
                    if buffer is None or buffer.maxlen != cls.max_lines:
                        buffer = deque(buffer or (), maxlen=cls.max_lines)
                        cls.logs[request_id] = buffer
                    buffer.append(event)
        except Exception:
            # Logging must never break the summary run.
            logging.Handler.handleError(cls._handler or logging.Handler(), record)

    @classmethod
    def get_events(cls, request_id: str) -> list[dict[str, Any]]:
        with cls._state_lock:
            return list(cls.logs.get(request_id) or ())

    @classmethod
    def dump(cls, request_id: str) -> str:
        """Return the buffered log lines of ``request_id`` as text."""
        return "\n".join(cls.format_event_as_text(event) for event in cls.get_events(request_id))

    @classmethod
    def discard(cls, request_id: str) -> None:
        with cls._state_lock:
            cls.logs.pop(request_id, None)
