"""Streaming chat-completion client.

``StreamingHandler.stream`` performs one POST, pushes the response body through
the SSE decoder and the delta extractor, writes every fragment to the live sink
as soon as it is decoded and resolves to exactly one :class:`StreamOutcome`.

Failure rules:
- An empty API key fails before any connection is attempted.
- A non-2xx status reads the whole error body; it is never parsed as SSE.
- Transport errors while connecting may be retried (``connect_retries``);
  once the response is streaming they fail the request immediately.
- A failed request carries no partial text, even though fragments already
  written to the sink stay visible.
- Cancellation closes the connection and stops all sink writes.
- Errors raised by the sink propagate unchanged; they are not network errors.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..api.chat_completions import RequestSpec
from ..core.errors import (
    MissingCredentialError,
    ProviderNetworkError,
    SummaryError,
    _build_provider_http_error,
)
from ..core.timing_logger import timed, timing_mark
from ..requests.debug import _debug_print_error_response, _debug_print_request
from .constants import RETRY_WAIT_MAX, RETRY_WAIT_MIN, RETRY_WAIT_MULTIPLIER
from .delta_extractor import DeltaExtractor, DeltaFragment
from .event_emitter import LiveSink, NullSink
from .reasoning_tracker import ReasoningTracker
from .sse_parser import SSEDecoder, is_done_sentinel

LOGGER = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)
_REQUEST_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)
_RETRYABLE_CONNECT_ERRORS = (aiohttp.ClientConnectionError, asyncio.TimeoutError)


# -----------------------------------------------------------------------------
# Outcome
# -----------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class StreamOutcome:
    """Terminal state of one request: the full text or an error, never both."""

    text: str = ""
    error: Optional[SummaryError] = None

    @classmethod
    def success(cls, text: str) -> "StreamOutcome":
        return cls(text=text)

    @classmethod
    def failure(cls, error: SummaryError) -> "StreamOutcome":
        return cls(text="", error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        """Return the text or raise the error."""
        if self.error is not None:
            raise self.error
        return self.text


@dataclass(slots=True)
class _StreamState:
    """Mutable per-request state; only this request writes to ``sink``."""

    sink: LiveSink
    tracker: ReasoningTracker
    parts: list[str] = field(default_factory=list)
    chunks: int = 0
    events: int = 0
    done: bool = False
    closed: bool = False

    def forward(self, fragment: DeltaFragment) -> None:
        if self.closed:
            return
        if self.tracker.observe(fragment):
            self.sink.emit_phase_transition()
        if fragment.is_content:
            self.sink.emit_content(fragment.text)
            self.parts.append(fragment.text)
        else:
            self.sink.emit_reasoning(fragment.text)

    def resolve(self, outcome: StreamOutcome) -> StreamOutcome:
        if not self.closed:
            self.sink.finish()
            self.closed = True
        return outcome


# -----------------------------------------------------------------------------
# StreamingHandler
# -----------------------------------------------------------------------------

class StreamingHandler:
    """Drives one streaming chat-completion request into a live sink.

    Args:
        sink: Receiver of live output; defaults to a sink that discards it.
        logger: Logger for diagnostics.
        connect_retries: Extra attempts when opening the connection fails.
        timeout: Optional per-request ``aiohttp.ClientTimeout``. None keeps the
            session's own timeout.
    """

    def __init__(
        self,
        sink: Optional[LiveSink] = None,
        *,
        logger: Optional[logging.Logger] = None,
        connect_retries: int = 0,
        timeout: Optional[aiohttp.ClientTimeout] = None,
    ) -> None:
        self.sink: LiveSink = sink or NullSink()
        self.logger = logger or LOGGER
        self.connect_retries = max(0, int(connect_retries))
        self.timeout = timeout

    @timed
    async def stream(
        self,
        session: aiohttp.ClientSession,
        request: RequestSpec,
        extractor: DeltaExtractor,
    ) -> StreamOutcome:
        """Send ``request`` and stream the reply.

        Args:
            session: Open aiohttp session used for the POST.
            request: The immutable request description.
            extractor: Provider-specific delta extractor.

        Returns:
            StreamOutcome: success with the concatenated main content, or a
            failure carrying a :class:`SummaryError`.
        """
        state = _StreamState(sink=self.sink, tracker=ReasoningTracker(logger=self.logger))

        if not request.has_credential:
            return state.resolve(StreamOutcome.failure(MissingCredentialError(provider=request.provider)))

        retryer = AsyncRetrying(
            stop=stop_after_attempt(self.connect_retries + 1),
            wait=wait_exponential(multiplier=RETRY_WAIT_MULTIPLIER, min=RETRY_WAIT_MIN, max=RETRY_WAIT_MAX),
            retry=retry_if_exception_type(_RETRYABLE_CONNECT_ERRORS),
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            async for attempt in retryer:
                with attempt:
                    await self._run_once(session, request, extractor, state)
        except asyncio.CancelledError:
            state.closed = True
            self.logger.debug("%s stream cancelled after %d chunks", request.provider, state.chunks)
            raise
        except SummaryError as exc:
            self.logger.info("%s request failed: %s", request.provider, exc)
            return state.resolve(StreamOutcome.failure(exc))
        except _REQUEST_ERRORS as exc:
            error = ProviderNetworkError(_describe_transport_error(exc), provider=request.provider)
            self.logger.info("%s", error)
            return state.resolve(StreamOutcome.failure(error))

        timing_mark("http.stream_end")
        self.logger.debug(
            "%s stream finished: %d chunks, %d events, %d content chars, %d reasoning chars",
            request.provider,
            state.chunks,
            state.events,
            state.tracker.content_chars,
            state.tracker.reasoning_chars,
        )
        return state.resolve(StreamOutcome.success("".join(state.parts)))

    async def _run_once(
        self,
        session: aiohttp.ClientSession,
        request: RequestSpec,
        extractor: DeltaExtractor,
        state: _StreamState,
    ) -> None:
        """One connection attempt; raises on HTTP or transport failure."""
        body = request.to_body()
        headers = request.headers()
        _debug_print_request(request.url, headers, body, logger=self.logger)
        self.sink.emit_status(f"Requesting summary from {request.provider or 'provider'} ({request.model})...")

        post_kwargs: dict[str, Any] = {"json": body, "headers": headers}
        if self.timeout is not None:
            post_kwargs["timeout"] = self.timeout

        timing_mark("http.request_start")
        async with session.post(request.url, **post_kwargs) as resp:
            timing_mark("http.headers_received")
            if not 200 <= resp.status < 300:
                body_text = await _debug_print_error_response(resp, logger=self.logger)
                raise _build_provider_http_error(
                    resp.status,
                    resp.reason or "",
                    body_text,
                    provider=request.provider,
                    requested_model=request.model,
                )

            decoder = SSEDecoder(logger=self.logger)
            async with aclosing(self._read_chunks(resp, request)) as chunks:
                async for chunk in chunks:
                    if state.chunks == 0:
                        timing_mark("http.first_chunk")
                    state.chunks += 1
                    self._process_events(decoder.feed(chunk), extractor, state)
                    if state.done:
                        break
            if not state.done:
                tail = decoder.flush()
                if tail is not None:
                    self._process_events([tail], extractor, state)

    async def _read_chunks(self, resp: aiohttp.ClientResponse, request: RequestSpec) -> AsyncIterator[bytes]:
        """Yield body chunks; read failures become :class:`ProviderNetworkError`."""
        try:
            async for chunk in resp.content.iter_any():
                yield chunk
        except _TRANSPORT_ERRORS as exc:
            raise ProviderNetworkError(_describe_transport_error(exc), provider=request.provider) from exc

    def _process_events(self, events: list[str], extractor: DeltaExtractor, state: _StreamState) -> None:
        for event in events:
            if is_done_sentinel(event):
                state.done = True
                return
            state.events += 1
            for fragment in extractor.extract(event):
                state.forward(fragment)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            "Connection attempt %d failed (%s); retrying",
            retry_state.attempt_number,
            _describe_transport_error(exc) if isinstance(exc, BaseException) else "unknown error",
        )


def _describe_transport_error(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "request timed out"
    text = str(exc).strip()
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__
