"""Streaming response processing subsystem.

This package contains the streaming pipeline shared by every provider:
- sse_parser: incremental Server-Sent Events decoding
- delta_extractor: ``choices[0].delta`` to content/reasoning fragments
- reasoning_tracker: one-time thinking -> answer phase edge
- event_emitter: live output sinks
- streaming_core: the HTTP client that ties them together
"""

from .delta_extractor import DeltaExtractor, DeltaFragment, DeltaKind
from .event_emitter import CollectingSink, ConsoleSink, LiveSink, NullSink
from .reasoning_tracker import ReasoningTracker
from .sse_parser import DONE_SENTINEL, SSEDecoder, is_done_sentinel
from .streaming_core import StreamingHandler, StreamOutcome

__all__ = [
    "DeltaExtractor",
    "DeltaFragment",
    "DeltaKind",
    "CollectingSink",
    "ConsoleSink",
    "LiveSink",
    "NullSink",
    "ReasoningTracker",
    "DONE_SENTINEL",
    "SSEDecoder",
    "is_done_sentinel",
    "StreamingHandler",
    "StreamOutcome",
]
