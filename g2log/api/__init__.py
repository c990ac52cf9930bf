"""Chat-completions wire format.

- chat_completions: RequestSpec, endpoint construction, request body and headers
"""

from .chat_completions import (
    CHAT_COMPLETIONS_ENDPOINT,
    RequestSpec,
    build_api_url,
    build_headers,
    build_messages,
    build_request_spec,
)

__all__ = [
    "CHAT_COMPLETIONS_ENDPOINT",
    "RequestSpec",
    "build_api_url",
    "build_headers",
    "build_messages",
    "build_request_spec",
]
