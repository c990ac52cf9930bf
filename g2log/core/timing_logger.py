"""Function timing instrumentation with JSONL file output.

Provides:
- @timed decorator recording entry/exit of sync and async callables
- timing_scope() context manager for code blocks
- timing_mark() for point-in-time events (first byte, stream end, ...)

Events are only recorded while a timing context is active for the current
task (see ``set_timing_context``), so the instrumentation costs a single
ContextVar lookup when disabled.

Enable via settings: ``enable_timing_log = true`` and ``timing_log_file``.
"""

from __future__ import annotations

import datetime
import functools
import inspect
import json
import threading
import time
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TextIO, TypeVar

_PACKAGE_PREFIX = "g2log."

_file_lock = threading.Lock()
_file_path: Optional[Path] = None
_file_handle: Optional[TextIO] = None

_timing_enabled: ContextVar[bool] = ContextVar("timing_enabled", default=False)
_timing_request_id: ContextVar[Optional[str]] = ContextVar("timing_request_id", default=None)


def _iso_utc(wall_ts: float) -> str:
    dt = datetime.datetime.fromtimestamp(wall_ts, tz=datetime.timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _record(event: str, label: str, perf_ts: float, elapsed_ms: Optional[float] = None) -> None:
    """Append one timing record to the open timing file."""
    request_id = _timing_request_id.get()
    if not request_id:
        return
    record: Dict[str, Any] = {
        "ts": _iso_utc(time.time()),
        "perf_ts": round(perf_ts, 6),
        "event": event,
        "label": label,
        "request_id": request_id,
    }
    if elapsed_ms is not None:
        record["elapsed_ms"] = round(elapsed_ms, 3)

    with _file_lock:
        if _file_handle is not None:
            try:
                _file_handle.write(json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n")
                _file_handle.flush()
            except OSError:
                pass


# -----------------------------------------------------------------------------
# File configuration
# -----------------------------------------------------------------------------


def configure_timing_file(file_path: str | Path) -> bool:
    """Open ``file_path`` for appending timing records.

    Parent directories are created as needed. An already open file for the
    same path is reused.

    Returns:
        True if the file is ready for writing, False otherwise.
    """
    global _file_path, _file_handle

    path = Path(file_path).expanduser()
    with _file_lock:
        if _file_handle is not None and _file_path == path:
            return True
        if _file_handle is not None:
            _file_handle.close()
            _file_handle = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            _file_handle = open(path, "a", encoding="utf-8")
        except OSError:
            _file_path = None
            _file_handle = None
            return False
        _file_path = path
        return True


def close_timing_file() -> None:
    """Close the timing log file. Safe to call multiple times."""
    global _file_path, _file_handle

    with _file_lock:
        if _file_handle is not None:
            _file_handle.close()
        _file_handle = None
        _file_path = None


# -----------------------------------------------------------------------------
# Context management
# -----------------------------------------------------------------------------


def set_timing_context(request_id: str, enabled: bool) -> None:
    """Bind timing to ``request_id`` for the current task."""
    _timing_request_id.set(request_id)
    _timing_enabled.set(enabled)


def clear_timing_context() -> None:
    _timing_request_id.set(None)
    _timing_enabled.set(False)


# -----------------------------------------------------------------------------
# Recording API
# -----------------------------------------------------------------------------


def timing_mark(label: str) -> None:
    """Record a point-in-time event such as ``http.first_chunk``."""
    if not _timing_enabled.get():
        return
    _record("mark", label, time.perf_counter())


@contextmanager
def timing_scope(label: str) -> Iterator[None]:
    """Record enter/exit events with elapsed time around a code block.

    Usage:
        with timing_scope("git.collect_logs"):
            collect_logs(...)
    """
    if not _timing_enabled.get():
        yield
        return
    start = time.perf_counter()
    _record("enter", label, start)
    try:
        yield
    finally:
        end = time.perf_counter()
        _record("exit", label, end, (end - start) * 1000)


F = TypeVar("F", bound=Callable[..., Any])


def timed(func: F) -> F:
    """Decorator recording entrance/exit of ``func`` under its qualified name.

    Works with both sync and async functions. The ``g2log.`` module prefix is
    dropped from labels for readability.
    """
    module = getattr(func, "__module__", "") or ""
    if module.startswith(_PACKAGE_PREFIX):
        module = module[len(_PACKAGE_PREFIX):]
    qualname = getattr(func, "__qualname__", "") or getattr(func, "__name__", "unknown")
    label = f"{module}.{qualname}" if module else qualname

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            if not _timing_enabled.get():
                return await func(*args, **kwargs)
            with timing_scope(label):
                return await func(*args, **kwargs)

        return async_wrapper  # type: ignore[return-value]

    @functools.wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        if not _timing_enabled.get():
            return func(*args, **kwargs)
        with timing_scope(label):
            return func(*args, **kwargs)

    return sync_wrapper  # type: ignore[return-value]
