"""Tests for the incremental SSE decoder.

Covers:
- Events split across arbitrary chunk boundaries (including inside UTF-8)
- CRLF line endings, comments and non-data fields
- Multi-line data joining
- [DONE] passthrough and flush of an unterminated trailing event
"""

from __future__ import annotations

import json

import pytest

from g2log.streaming.sse_parser import DONE_SENTINEL, SSEDecoder, is_done_sentinel


def _decode_all(chunks: list[bytes]) -> list[str]:
    decoder = SSEDecoder()
    events: list[str] = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    tail = decoder.flush()
    if tail is not None:
        events.append(tail)
    return events


def _split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


STREAM = (
    'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n'
    'data: {"choices":[{"delta":{"content":"lo 世界"}}]}\n\n'
    "data: [DONE]\n\n"
).encode("utf-8")


def test_single_event_in_one_chunk():
    decoder = SSEDecoder()
    assert decoder.feed(b'data: {"a": 1}\n\n') == ['{"a": 1}']


def test_event_is_held_until_blank_line():
    decoder = SSEDecoder()
    assert decoder.feed(b"data: partial") == []
    assert decoder.feed(b"\n") == []
    assert decoder.feed(b"\n") == ["partial"]


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 64])
def test_chunk_boundaries_do_not_change_result(size):
    assert _decode_all(_split_every(STREAM, size)) == _decode_all([STREAM])


def test_utf8_character_split_across_chunks():
    payload = "data: 你好\n\n".encode("utf-8")
    # Split in the middle of the first three-byte character.
    first, second = payload[:7], payload[7:]
    decoder = SSEDecoder()
    assert decoder.feed(first) == []
    assert decoder.feed(second) == ["你好"]


def test_crlf_line_endings():
    assert _decode_all([b"data: one\r\n\r\ndata: two\r\n\r\n"]) == ["one", "two"]


def test_comments_and_other_fields_are_ignored():
    raw = b": keep-alive\nevent: message\nid: 7\nretry: 1000\ndata: body\n\n"
    assert _decode_all([raw]) == ["body"]


def test_comment_only_block_dispatches_nothing():
    assert _decode_all([b": ping\n\n: ping\n\n"]) == []


def test_multiple_data_lines_are_joined_with_newline():
    assert _decode_all([b"data: first\ndata: second\n\n"]) == ["first\nsecond"]


def test_data_without_space_after_colon():
    assert _decode_all([b'data:{"x":true}\n\n']) == ['{"x":true}']


def test_empty_data_is_not_dispatched():
    assert _decode_all([b"data:\n\ndata:   \n\n"]) == []


def test_done_sentinel_is_returned_as_body():
    events = _decode_all([b"data: [DONE]\n\n"])
    assert events == [DONE_SENTINEL]
    assert is_done_sentinel(events[0])


def test_is_done_sentinel_rejects_other_values():
    assert not is_done_sentinel(None)
    assert not is_done_sentinel("")
    assert not is_done_sentinel('{"done": true}')
    assert is_done_sentinel(" [DONE] ")


def test_flush_returns_unterminated_trailing_event():
    decoder = SSEDecoder()
    assert decoder.feed(b'data: {"tail": 1}') == []
    assert decoder.flush() == '{"tail": 1}'
    assert decoder.flush() is None


def test_flush_with_accumulated_data_lines():
    decoder = SSEDecoder()
    decoder.feed(b"data: a\ndata: b\n")
    assert decoder.flush() == "a\nb"


def test_flush_tolerates_whitespace_only_buffer():
    decoder = SSEDecoder()
    decoder.feed(b"   ")
    assert decoder.flush() is None


def test_flush_on_fresh_decoder():
    assert SSEDecoder().flush() is None


def test_text_chunks_are_accepted():
    decoder = SSEDecoder()
    assert decoder.feed("data: text\n\n") == ["text"]


def test_empty_chunk_is_noop():
    decoder = SSEDecoder()
    assert decoder.feed(b"") == []
    assert decoder.flush() is None


def test_many_events_in_one_chunk_preserve_order():
    bodies = [json.dumps({"i": i}) for i in range(20)]
    raw = "".join(f"data: {body}\n\n" for body in bodies).encode()
    assert _decode_all([raw]) == bodies


def test_invalid_utf8_is_replaced_not_raised():
    events = _decode_all([b"data: \xff\xfeok\n\n"])
    assert len(events) == 1
    assert events[0].endswith("ok")
    assert "�" in events[0]
