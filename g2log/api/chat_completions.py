"""Chat-completions request construction.

One request shape serves every provider:

    POST {base_url}/chat/completions
    Authorization: Bearer {api_key}
    {"model", "messages", "stream": true, "temperature"?, "max_tokens"?, "thinking"?}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..core.config import ProviderProfile
    from ..models.registry import ProviderSpec

CHAT_COMPLETIONS_ENDPOINT = "chat/completions"


def build_api_url(base_url: str, endpoint: str = CHAT_COMPLETIONS_ENDPOINT) -> str:
    """Join ``base_url`` and ``endpoint`` with exactly one ``/``.

    >>> build_api_url("https://api.x.com/")
    'https://api.x.com/chat/completions'
    """
    return f"{(base_url or '').strip().rstrip('/')}/{endpoint.lstrip('/')}"


def build_headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "Accept": "text/event-stream",
    }


@dataclass(frozen=True, slots=True)
class RequestSpec:
    """Immutable description of one streaming chat-completion request."""

    url: str
    api_key: str = field(repr=False)
    model: str
    messages: tuple[dict[str, str], ...]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    enable_thinking: bool = False
    extra_body: dict[str, Any] = field(default_factory=dict)
    provider: str = ""
    stream: bool = True

    @property
    def has_credential(self) -> bool:
        return bool((self.api_key or "").strip())

    def headers(self) -> dict[str, str]:
        return build_headers(self.api_key)

    def to_body(self) -> dict[str, Any]:
        """Return the JSON request body; optional knobs are omitted when unset."""
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [dict(message) for message in self.messages],
            "stream": self.stream,
        }
        if self.temperature is not None:
            body["temperature"] = self.temperature
        if self.max_tokens is not None:
            body["max_tokens"] = self.max_tokens
        body.update(self.extra_body)
        return body


def build_messages(prompt: str, system_prompt: Optional[str]) -> tuple[dict[str, str], ...]:
    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return tuple(messages)


def build_request_spec(
    provider: ProviderSpec,
    profile: ProviderProfile,
    *,
    prompt: str,
    system_prompt: Optional[str] = None,
) -> RequestSpec:
    """Build the request for ``profile`` using ``provider`` defaults for blank fields."""
    return RequestSpec(
        url=build_api_url(profile.api_base_url or provider.default_base_url),
        api_key=profile.api_key.plain,
        model=profile.model or provider.default_model,
        messages=build_messages(prompt, system_prompt),
        temperature=profile.temperature,
        max_tokens=profile.max_tokens,
        enable_thinking=provider.reasoning_enabled(profile),
        extra_body=provider.extra_body(profile),
        provider=provider.display_name,
    )
