"""Core infrastructure module.

Foundation services required by every other package:
- Configuration schema and persistence (Settings, ProviderProfile, EncryptedStr)
- Error taxonomy
- Session logging
- Timing instrumentation
- Pure utility functions
"""

from .config import (
    ConfigError,
    EncryptedStr,
    ProviderProfile,
    Settings,
    load_settings,
    resolve_config_path,
    save_settings,
)
from .errors import (
    GitLogError,
    MissingCredentialError,
    ProviderHTTPError,
    ProviderNetworkError,
    SummaryError,
)
from .logging_system import SessionLogger
from .utils import _render_error_template, _safe_json_loads

__all__ = [
    "ConfigError",
    "EncryptedStr",
    "ProviderProfile",
    "Settings",
    "load_settings",
    "resolve_config_path",
    "save_settings",
    "GitLogError",
    "MissingCredentialError",
    "ProviderHTTPError",
    "ProviderNetworkError",
    "SummaryError",
    "SessionLogger",
    "_render_error_template",
    "_safe_json_loads",
]
