"""Debug utilities for request/response logging.

Request headers are logged with the bearer token shortened and message
contents truncated; commit logs can be large and are shown in full only via
``--show-prompt``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..core.utils import _redact_headers

_MESSAGE_PREVIEW_CHARS = 150


def _preview_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    preview = dict(payload)
    messages = preview.get("messages")
    if isinstance(messages, list):
        trimmed = []
        for message in messages:
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                content = message["content"]
                if len(content) > _MESSAGE_PREVIEW_CHARS:
                    content = f"{content[:_MESSAGE_PREVIEW_CHARS]}... ({len(message['content'])} chars)"
                message = {**message, "content": content}
            trimmed.append(message)
        preview["messages"] = trimmed
    return preview


def _debug_print_request(
    url: str,
    headers: Dict[str, str],
    payload: Optional[Dict[str, Any]],
    *,
    logger: logging.Logger,
) -> None:
    """Log sanitized request metadata when DEBUG logging is enabled."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("Chat completion request: POST %s", url)
    logger.debug("Chat completion request headers: %s", json.dumps(_redact_headers(headers), indent=2))
    if payload is not None:
        logger.debug(
            "Chat completion request payload: %s",
            json.dumps(_preview_payload(payload), indent=2, ensure_ascii=False),
        )


async def _debug_print_error_response(resp: Any, *, logger: logging.Logger) -> str:
    """Read the full error body, log it at DEBUG and return it.

    Args:
        resp: aiohttp.ClientResponse with a non-success status.

    Returns:
        str: Response body text, or a placeholder when it could not be read.
    """
    try:
        text = await resp.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as exc:
        text = f"<<failed to read body: {exc}>>"
    if logger.isEnabledFor(logging.DEBUG):
        payload = {
            "status": getattr(resp, "status", None),
            "reason": getattr(resp, "reason", None),
            "url": str(getattr(resp, "url", "")),
            "body": text,
        }
        logger.debug("Chat completion error response: %s", json.dumps(payload, indent=2, ensure_ascii=False))
    return text
