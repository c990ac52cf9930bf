"""g2log: AI work summaries from git commit logs.

This package provides:
- Streaming subsystem: SSE decoding, delta extraction, live output sinks
- Provider variants and chat-completions request building
- Summary orchestration, git log extraction and output rendering
- Infrastructure modules: config, errors, logging, timing

Imports are deferred until an attribute is accessed via __getattr__, so
``import g2log`` does not pull in aiohttp, rich or GitPython.
"""

from importlib.metadata import PackageNotFoundError, version as _get_version
from typing import TYPE_CHECKING

try:
    __version__ = _get_version("g2log")
except PackageNotFoundError:
    __version__ = "0.0.0"

if TYPE_CHECKING:
    from .api.chat_completions import RequestSpec, build_request_spec
    from .core.config import ConfigError, ProviderProfile, Settings, load_settings, save_settings
    from .core.errors import (
        GitLogError,
        MissingCredentialError,
        ProviderHTTPError,
        ProviderNetworkError,
        SummaryError,
    )
    from .gitlog.reader import collect_logs, read_repo_log
    from .models.registry import ProviderSpec, resolve_provider
    from .streaming.delta_extractor import DeltaExtractor, DeltaFragment, DeltaKind
    from .streaming.event_emitter import CollectingSink, ConsoleSink, LiveSink, NullSink
    from .streaming.sse_parser import SSEDecoder
    from .streaming.streaming_core import StreamingHandler, StreamOutcome
    from .summary.orchestrator import SummaryOrchestrator

__all__ = [
    "__version__",
    "RequestSpec",
    "build_request_spec",
    "ConfigError",
    "ProviderProfile",
    "Settings",
    "load_settings",
    "save_settings",
    "GitLogError",
    "MissingCredentialError",
    "ProviderHTTPError",
    "ProviderNetworkError",
    "SummaryError",
    "collect_logs",
    "read_repo_log",
    "ProviderSpec",
    "resolve_provider",
    "DeltaExtractor",
    "DeltaFragment",
    "DeltaKind",
    "CollectingSink",
    "ConsoleSink",
    "LiveSink",
    "NullSink",
    "SSEDecoder",
    "StreamingHandler",
    "StreamOutcome",
    "SummaryOrchestrator",
]

# Mapping of attribute name to (module_path, attr_name_in_module)
_LAZY_IMPORTS = {
    "RequestSpec": (".api.chat_completions", "RequestSpec"),
    "build_request_spec": (".api.chat_completions", "build_request_spec"),
    "ConfigError": (".core.config", "ConfigError"),
    "ProviderProfile": (".core.config", "ProviderProfile"),
    "Settings": (".core.config", "Settings"),
    "load_settings": (".core.config", "load_settings"),
    "save_settings": (".core.config", "save_settings"),
    "GitLogError": (".core.errors", "GitLogError"),
    "MissingCredentialError": (".core.errors", "MissingCredentialError"),
    "ProviderHTTPError": (".core.errors", "ProviderHTTPError"),
    "ProviderNetworkError": (".core.errors", "ProviderNetworkError"),
    "SummaryError": (".core.errors", "SummaryError"),
    "collect_logs": (".gitlog.reader", "collect_logs"),
    "read_repo_log": (".gitlog.reader", "read_repo_log"),
    "ProviderSpec": (".models.registry", "ProviderSpec"),
    "resolve_provider": (".models.registry", "resolve_provider"),
    "DeltaExtractor": (".streaming.delta_extractor", "DeltaExtractor"),
    "DeltaFragment": (".streaming.delta_extractor", "DeltaFragment"),
    "DeltaKind": (".streaming.delta_extractor", "DeltaKind"),
    "CollectingSink": (".streaming.event_emitter", "CollectingSink"),
    "ConsoleSink": (".streaming.event_emitter", "ConsoleSink"),
    "LiveSink": (".streaming.event_emitter", "LiveSink"),
    "NullSink": (".streaming.event_emitter", "NullSink"),
    "SSEDecoder": (".streaming.sse_parser", "SSEDecoder"),
    "StreamingHandler": (".streaming.streaming_core", "StreamingHandler"),
    "StreamOutcome": (".streaming.streaming_core", "StreamOutcome"),
    "SummaryOrchestrator": (".summary.orchestrator", "SummaryOrchestrator"),
}


def __getattr__(name: str):
    """Resolve public names on first access and cache them in module globals."""
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        import importlib

        module = importlib.import_module(module_path, __name__)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals()) | set(_LAZY_IMPORTS))
