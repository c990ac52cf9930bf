"""Error handling and user-facing error formatting.

This module holds the failure taxonomy of a summary request:
- SummaryError: base class, always labelled with the provider name
- MissingCredentialError: no API key, raised before any network I/O
- ProviderHTTPError: non-2xx response with the upstream error message
- ProviderNetworkError: connection-level failure (DNS, refused, reset, TLS)
- GitLogError: a repository could not be read

Per-event problems inside an otherwise healthy stream (malformed JSON, an
unexpected payload shape) are not exceptions; the delta extractor logs and
skips them.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from .config import DEFAULT_SUMMARY_ERROR_TEMPLATE
from .utils import _normalize_optional_str, _render_error_template, _safe_json_loads

# -----------------------------------------------------------------------------
# Exception Classes
# -----------------------------------------------------------------------------

class SummaryError(RuntimeError):
    """Base class for failures of one summary request."""

    def __init__(self, message: str, *, provider: Optional[str] = None, hint: Optional[str] = None) -> None:
        self.provider = (provider or "").strip() or None
        self.hint = hint
        self.detail = message
        super().__init__(f"{self.provider} {message}" if self.provider else message)

    def template_values(self) -> dict[str, Any]:
        return {
            "heading": self.provider or "g2log",
            "summary": str(self),
            "hint": self.hint,
        }

    def to_markdown(self, *, template: Optional[str] = None, endpoint: Optional[str] = None) -> str:
        """Return a markdown block describing the failure."""
        values = self.template_values()
        values["endpoint"] = endpoint
        return _render_error_template(template or DEFAULT_SUMMARY_ERROR_TEMPLATE, values)


class MissingCredentialError(SummaryError):
    """The active profile has no API key."""

    def __init__(self, *, provider: Optional[str] = None, profile: Optional[str] = None) -> None:
        self.profile = profile
        hint = (
            f"Set one with `g2log config set-key <KEY>` (profile `{profile}`) "
            "or export G2LOG_API_KEY."
            if profile
            else "Set one with `g2log config set-key <KEY>` or export G2LOG_API_KEY."
        )
        super().__init__("API key is not configured", provider=provider, hint=hint)


class ProviderHTTPError(SummaryError):
    """The provider answered with a non-success HTTP status."""

    def __init__(
        self,
        *,
        status: int,
        reason: str = "",
        provider: Optional[str] = None,
        upstream_message: Optional[str] = None,
        error_code: Optional[Any] = None,
        error_type: Optional[str] = None,
        request_id: Optional[str] = None,
        raw_body: Optional[str] = None,
        requested_model: Optional[str] = None,
    ) -> None:
        self.status = status
        self.reason = (reason or "").strip()
        self.upstream_message = _normalize_optional_str(upstream_message)
        self.error_code = error_code
        self.error_type = _normalize_optional_str(error_type)
        self.request_id = _normalize_optional_str(request_id)
        self.raw_body = raw_body or ""
        self.requested_model = _normalize_optional_str(requested_model)
        detail = self.upstream_message or self.reason or "no response body"
        super().__init__(f"API request failed ({status}): {detail}", provider=provider, hint=_status_hint(status))

    @property
    def message(self) -> str:
        return self.upstream_message or self.reason

    def template_values(self) -> dict[str, Any]:
        values = super().template_values()
        values.update(
            {
                "status": self.status,
                "reason": self.reason,
                "upstream_message": self.upstream_message,
                "error_code": self.error_code,
                "error_type": self.error_type,
                "request_id": self.request_id,
                "requested_model": self.requested_model,
            }
        )
        return values


class ProviderNetworkError(SummaryError):
    """The connection failed before or during streaming."""

    def __init__(self, message: str, *, provider: Optional[str] = None) -> None:
        self.message = message
        super().__init__(
            f"API request failed: network error: {message}",
            provider=provider,
            hint="Check the profile's api_base_url and your network connection.",
        )


class GitLogError(RuntimeError):
    """A repository could not be opened or its log could not be read."""

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message)


# -----------------------------------------------------------------------------
# Error Helper Functions
# -----------------------------------------------------------------------------

def _status_hint(status: int) -> Optional[str]:
    if status in {401, 403}:
        return "The API key was rejected. Check it with `g2log config show`."
    if status == 404:
        return "The endpoint was not found. Check the profile's api_base_url and model."
    if status == 429:
        return "The provider is rate limiting requests. Try again later."
    if status >= 500:
        return "The provider reported a server error. Try again later."
    return None


def _extract_error_details(body_text: Optional[str]) -> dict[str, Any]:
    """Normalize provider error bodies into structured fields.

    Understands ``{"error": {"message", "code", "type"}}`` (OpenAI style),
    ``{"error": "..."}`` and ``{"message": "..."}``. Any other JSON body is
    reported compactly; non-JSON bodies are reported as raw text.
    """
    text = (body_text or "").strip()
    parsed = _safe_json_loads(text) if text else None
    message: Optional[str] = None
    code: Any = None
    error_type: Optional[str] = None
    request_id: Optional[str] = None

    if isinstance(parsed, dict):
        error_section = parsed.get("error")
        if isinstance(error_section, str):
            message = error_section
        elif isinstance(error_section, dict):
            message = _normalize_optional_str(error_section.get("message"))
            code = error_section.get("code")
            error_type = _normalize_optional_str(error_section.get("type"))
            request_id = _normalize_optional_str(error_section.get("request_id"))
        if not message and isinstance(parsed.get("message"), str):
            message = parsed["message"]
        code = code if code is not None else parsed.get("code")
        request_id = request_id or _normalize_optional_str(parsed.get("request_id"))

    if not message:
        if parsed is not None:
            message = json.dumps(parsed, ensure_ascii=False, separators=(",", ":"))
        else:
            message = text or None

    return {
        "upstream_message": message,
        "error_code": code,
        "error_type": error_type,
        "request_id": request_id,
        "raw_body": body_text or "",
    }


def _build_provider_http_error(
    status: int,
    reason: str,
    body_text: Optional[str],
    *,
    provider: Optional[str] = None,
    requested_model: Optional[str] = None,
) -> ProviderHTTPError:
    """Create a structured error for a non-2xx provider response."""
    details = _extract_error_details(body_text)
    return ProviderHTTPError(
        status=status,
        reason=reason,
        provider=provider,
        upstream_message=details["upstream_message"],
        error_code=details["error_code"],
        error_type=details["error_type"],
        request_id=details["request_id"],
        raw_body=details["raw_body"],
        requested_model=requested_model,
    )
