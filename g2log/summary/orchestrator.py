"""Summary orchestration.

Builds the prompt and request from explicit :class:`Settings`, selects the
provider variant, drives the streaming client and returns the summary text.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from ..api.chat_completions import RequestSpec, build_request_spec
from ..core.config import ProviderProfile, Settings
from ..core.timing_logger import timed
from ..models.registry import ProviderSpec, resolve_provider
from ..streaming.event_emitter import LiveSink, NullSink
from ..streaming.streaming_core import StreamingHandler, StreamOutcome
from .prompt import render_prompt

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PreparedSummary:
    """Everything needed to send one summary request."""

    profile_name: str
    profile: ProviderProfile
    provider: ProviderSpec
    prompt: str
    request: RequestSpec

    @property
    def reasoning_enabled(self) -> bool:
        return self.request.enable_thinking


def create_http_session(settings: Settings, *, logger: Optional[logging.Logger] = None) -> aiohttp.ClientSession:
    """Return a ClientSession honoring the configured timeouts and TLS policy.

    Both timeouts default to None, so a slow stream is never cut off unless
    the user asked for it.
    """
    log = logger or LOGGER
    timeout = aiohttp.ClientTimeout(
        total=settings.http_total_timeout_seconds,
        sock_connect=settings.http_connect_timeout_seconds,
    )
    connector = aiohttp.TCPConnector(ssl=bool(settings.verify_tls))
    log.debug(
        "HTTP timeouts: connect=%s total=%s verify_tls=%s",
        settings.http_connect_timeout_seconds if settings.http_connect_timeout_seconds is not None else "disabled",
        settings.http_total_timeout_seconds if settings.http_total_timeout_seconds is not None else "disabled",
        settings.verify_tls,
    )
    return aiohttp.ClientSession(connector=connector, timeout=timeout, json_serialize=json.dumps)


class SummaryOrchestrator:
    """Turns commit-log text into an AI summary.

    Args:
        settings: Configuration passed explicitly at call time.
        sink: Live output sink receiving fragments as they stream in.
        profile_name: Profile to use instead of ``settings.current_profile``.
        logger: Logger for diagnostics.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        sink: Optional[LiveSink] = None,
        profile_name: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self.sink: LiveSink = sink or NullSink()
        self.profile_name = profile_name
        self.logger = logger or LOGGER

    @timed
    def prepare(self, log_text: str, *, author: str = "", since: str = "", until: str = "") -> PreparedSummary:
        """Render the prompt and build the request for the active profile.

        Raises:
            ConfigError: When the selected profile does not exist.
        """
        profile_name, profile = self.settings.active_profile(self.profile_name)
        provider = resolve_provider(profile_name, profile)
        prompt = render_prompt(
            self.settings.prompt_template,
            logs=log_text,
            author=author,
            since=since,
            until=until,
        )
        request = build_request_spec(
            provider,
            profile,
            prompt=prompt,
            system_prompt=self.settings.system_prompt,
        )
        self.logger.debug(
            "Prepared %s request for profile %r: model=%s url=%s prompt=%d chars",
            provider.display_name,
            profile_name,
            request.model,
            request.url,
            len(prompt),
        )
        return PreparedSummary(
            profile_name=profile_name,
            profile=profile,
            provider=provider,
            prompt=prompt,
            request=request,
        )

    @timed
    async def run(
        self,
        prepared: PreparedSummary,
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> StreamOutcome:
        """Stream ``prepared`` and return the outcome without raising.

        A session is created (and closed) when none is supplied.
        """
        handler = StreamingHandler(
            self.sink,
            logger=self.logger,
            connect_retries=self.settings.http_connect_retries,
        )
        extractor = prepared.provider.extractor(prepared.profile, logger=self.logger)
        if session is not None:
            return await handler.stream(session, prepared.request, extractor)
        async with create_http_session(self.settings, logger=self.logger) as owned_session:
            return await handler.stream(owned_session, prepared.request, extractor)

    async def summarize(
        self,
        log_text: str,
        author: str = "",
        since: str = "",
        until: str = "",
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> str:
        """Return the summary text for ``log_text``.

        Raises:
            SummaryError: The request failed; the message names the provider.
            ConfigError: The selected profile does not exist.
        """
        prepared = self.prepare(log_text, author=author, since=since, until=until)
        outcome = await self.run(prepared, session=session)
        return outcome.unwrap()
