"""Request-side helpers: sanitized debug logging of outgoing requests and error bodies."""

from .debug import _debug_print_error_response, _debug_print_request

__all__ = [
    "_debug_print_error_response",
    "_debug_print_request",
]
