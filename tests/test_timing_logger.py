"""Tests for timing_logger.py.

Tests:
- Recording is a no-op without an enabled timing context
- timing_mark / timing_scope / @timed (sync and async) records
- JSONL file output and handle reuse
"""

from __future__ import annotations

import asyncio
import json

import pytest

from g2log.core import timing_logger as tl


@pytest.fixture(autouse=True)
def _reset_timing_state():
    tl.close_timing_file()
    tl.clear_timing_context()
    yield
    tl.close_timing_file()
    tl.clear_timing_context()


@pytest.fixture
def timing_file(tmp_path):
    path = tmp_path / "logs" / "timing.jsonl"
    assert tl.configure_timing_file(path) is True
    return path


def _records(path):
    text = path.read_text(encoding="utf-8") if path.exists() else ""
    return [json.loads(line) for line in text.splitlines() if line.strip()]


class TestDisabled:
    def test_mark_without_context_records_nothing(self, timing_file):
        tl.timing_mark("http.first_chunk")
        assert _records(timing_file) == []

    def test_disabled_context_records_nothing(self, timing_file):
        tl.set_timing_context("req-off", False)
        tl.timing_mark("x")
        with tl.timing_scope("y"):
            pass
        assert _records(timing_file) == []

    def test_timed_passthrough_when_disabled(self, timing_file):
        @tl.timed
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        assert _records(timing_file) == []

    def test_enabled_context_without_file_is_harmless(self):
        tl.set_timing_context("req-nofile", True)
        tl.timing_mark("x")
        with tl.timing_scope("y"):
            pass


class TestRecording:
    def test_mark_records_event(self, timing_file):
        tl.set_timing_context("req-1", True)
        tl.timing_mark("http.request_start")
        records = _records(timing_file)
        assert len(records) == 1
        assert records[0]["event"] == "mark"
        assert records[0]["label"] == "http.request_start"
        assert records[0]["request_id"] == "req-1"
        assert records[0]["ts"].endswith("Z")

    def test_scope_records_enter_and_exit_with_elapsed(self, timing_file):
        tl.set_timing_context("req-2", True)
        with tl.timing_scope("block"):
            pass
        records = _records(timing_file)
        assert [r["event"] for r in records] == ["enter", "exit"]
        assert records[1]["elapsed_ms"] >= 0

    def test_scope_records_exit_on_exception(self, timing_file):
        tl.set_timing_context("req-3", True)
        with pytest.raises(RuntimeError):
            with tl.timing_scope("failing"):
                raise RuntimeError("boom")
        assert [r["event"] for r in _records(timing_file)] == ["enter", "exit"]

    def test_timed_sync_label_drops_package_prefix(self, timing_file):
        @tl.timed
        def work():
            return "ok"

        tl.set_timing_context("req-4", True)
        assert work() == "ok"
        labels = {r["label"] for r in _records(timing_file)}
        assert len(labels) == 1
        label = labels.pop()
        assert label.endswith("work")
        assert not label.startswith("g2log.")

    def test_timed_library_function_label(self, timing_file):
        from g2log.core.config import load_settings

        tl.set_timing_context("req-lib", True)
        load_settings()
        assert "core.config.load_settings" in [r["label"] for r in _records(timing_file)]

    @pytest.mark.asyncio
    async def test_timed_async(self, timing_file):
        @tl.timed
        async def fetch():
            await asyncio.sleep(0)
            return 42

        tl.set_timing_context("req-5", True)
        assert await fetch() == 42
        assert [r["event"] for r in _records(timing_file)] == ["enter", "exit"]


class TestFileOutput:
    def test_records_are_appended_in_order(self, timing_file):
        tl.set_timing_context("req-f", True)
        tl.timing_mark("a")
        tl.timing_mark("b")
        tl.close_timing_file()
        assert [r["label"] for r in _records(timing_file)] == ["a", "b"]

    def test_configure_same_path_twice_reuses_handle(self, tmp_path):
        path = tmp_path / "timing.jsonl"
        assert tl.configure_timing_file(path) is True
        handle = tl._file_handle
        assert tl.configure_timing_file(path) is True
        assert tl._file_handle is handle

    def test_configure_unwritable_path_returns_false(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        assert tl.configure_timing_file(blocker / "timing.jsonl") is False
        assert tl._file_handle is None

    def test_close_is_idempotent(self):
        tl.close_timing_file()
        tl.close_timing_file()
        assert tl._file_handle is None
