"""Configuration management for g2log.

This module contains the configuration schema, defaults and persistence:
- ProviderProfile: one named AI backend (URL, model, key, sampling knobs)
- Settings: the whole config file (profiles, repositories, prompt, HTTP knobs)
- EncryptedStr: secret value encryption wrapper for stored API keys
- JSONC loading/saving of ``~/.g2log/config.jsonc``
- Prompt and error template constants
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional, cast

from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler, ValidationError
from pydantic_core import core_schema

from .timing_logger import timed
from .utils import _strip_jsonc

LOGGER = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the configuration cannot be read, parsed or updated."""


# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

CONFIG_DIR = Path.home() / ".g2log"
CONFIG_FILENAME = "config.jsonc"
CONFIG_PATH_ENV = "G2LOG_CONFIG_PATH"
API_KEY_ENV = "G2LOG_API_KEY"
SECRET_KEY_ENV = "G2LOG_SECRET_KEY"
LOG_LEVEL_ENV = "G2LOG_LOG_LEVEL"

DEFAULT_PROFILE_NAME = "deepseek"

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional work-summary assistant who turns Git commit records "
    "into clear work reports."
)

DEFAULT_PROMPT_TEMPLATE = """
Write a work summary based on the Git commit records below. Scale the level of detail to the amount and importance of the work actually committed.

Git commit records:

{{GIT_LOGS}}

Requirements:
1. Organize the content by date and by project
2. Adapt the level of detail to the number of commits:
   - Few commits: be brief and highlight the key results
   - Many commits: list each piece of work so nothing important is missed
   - Describe major features and significant bug fixes in more detail
3. Use clear, professional, plain language
4. Highlight important feature work, bug fixes and improvements
5. The result should fit into a daily work report that the team can read and copy
6. Follow this output format strictly (one line per project, project and description on the same line):
   【Date】: YYYY-MM-DD
   Project 1: description of the work
   Project 2: description of the work

   【Date】: YYYY-MM-DD
   Project 1: description of the work
7. Separate different dates with one blank line
8. Put different projects of the same day on consecutive lines without blank lines
9. Do not add anything else, do not use markdown, do not use list markers
"""

DEFAULT_SUMMARY_ERROR_TEMPLATE = (
    "{{#if heading}}\n"
    "### {heading} could not generate the summary\n\n"
    "{{/if}}\n"
    "{{#if summary}}\n"
    "**Error:** {summary}\n\n"
    "{{/if}}\n"
    "{{#if status}}\n"
    "- **HTTP status**: `{status}`\n"
    "{{/if}}\n"
    "{{#if reason}}\n"
    "- **Reason**: {reason}\n"
    "{{/if}}\n"
    "{{#if upstream_message}}\n"
    "- **Provider message**: `{upstream_message}`\n"
    "{{/if}}\n"
    "{{#if error_code}}\n"
    "- **Error code**: `{error_code}`\n"
    "{{/if}}\n"
    "{{#if error_type}}\n"
    "- **Error type**: `{error_type}`\n"
    "{{/if}}\n"
    "{{#if requested_model}}\n"
    "- **Model**: `{requested_model}`\n"
    "{{/if}}\n"
    "{{#if request_id}}\n"
    "- **Request ID**: `{request_id}`\n"
    "{{/if}}\n"
    "{{#if endpoint}}\n"
    "- **Endpoint**: `{endpoint}`\n"
    "{{/if}}\n"
    "{{#if hint}}\n"
    "\n{hint}\n"
    "{{/if}}\n"
)

_ALLOWED_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
ProviderKind = Literal["openai", "deepseek", "zhipu"]


# -----------------------------------------------------------------------------
# EncryptedStr
# -----------------------------------------------------------------------------

class EncryptedStr(str):
    """String wrapper that encrypts API keys at rest when a secret is configured.

    The Fernet key is derived from ``G2LOG_SECRET_KEY``. Without it values are
    stored as plain text.
    """

    _ENCRYPTION_PREFIX = "encrypted:"

    @classmethod
    def _get_encryption_key(cls) -> Optional[bytes]:
        secret = os.getenv(SECRET_KEY_ENV)
        if not secret:
            return None
        return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())

    @classmethod
    def encrypt(cls, value: str) -> str:
        """Return ``encrypted:<token>`` for ``value`` or ``value`` when keyless."""
        if not value or value.startswith(cls._ENCRYPTION_PREFIX):
            return value
        key = cls._get_encryption_key()
        if not key:
            return value
        token = Fernet(key).encrypt(value.encode())
        return f"{cls._ENCRYPTION_PREFIX}{token.decode()}"

    @classmethod
    def decrypt(cls, value: str) -> str:
        """Reverse :meth:`encrypt`; values that cannot be decrypted yield ""."""
        if not value or not value.startswith(cls._ENCRYPTION_PREFIX):
            return value
        key = cls._get_encryption_key()
        if not key:
            LOGGER.warning("API key is encrypted but %s is not set", SECRET_KEY_ENV)
            return ""
        try:
            return Fernet(key).decrypt(value[len(cls._ENCRYPTION_PREFIX):].encode()).decode()
        except InvalidToken:
            LOGGER.warning("Failed to decrypt value: invalid token or key mismatch")
            return ""
        except (ValueError, UnicodeDecodeError) as exc:
            LOGGER.warning("Failed to decrypt value: %s: %s", type(exc).__name__, exc)
            return ""

    @property
    def plain(self) -> str:
        return self.decrypt(str(self))

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source_type: Any, _handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """Accept plain strings and wrap them (encrypted when possible)."""
        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(cls),
                core_schema.chain_schema(
                    [
                        core_schema.str_schema(),
                        core_schema.no_info_plain_validator_function(
                            lambda value: cls(cls.encrypt(value) if value else value)
                        ),
                    ]
                ),
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda instance: str(instance)
            ),
        )


def _resolve_log_level_default() -> LogLevel:
    """Normalize env-provided log level to the allowed literal set."""
    value = (os.getenv(LOG_LEVEL_ENV) or "WARNING").strip().upper()
    if value not in _ALLOWED_LOG_LEVELS:
        value = "WARNING"
    return cast(LogLevel, value)


# -----------------------------------------------------------------------------
# Schema
# -----------------------------------------------------------------------------

class ProviderProfile(BaseModel):
    """One named AI backend."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    api_key: EncryptedStr = Field(
        default_factory=lambda: EncryptedStr(""),
        description="Bearer token for the provider. Falls back to G2LOG_API_KEY when empty.",
    )
    api_base_url: str = Field(
        default="",
        description="Base URL; `chat/completions` is appended to it.",
    )
    model: str = Field(default="", description="Model identifier sent in the request body.")
    temperature: Optional[float] = Field(
        default=None,
        ge=0,
        le=2,
        description="Sampling temperature. Omitted from the request when null.",
    )
    max_tokens: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum output tokens. Omitted from the request when null.",
    )
    enable_thinking: bool = Field(
        default=False,
        description="Request extended reasoning and show the reasoning stream (zhipu only).",
    )
    provider: Optional[ProviderKind] = Field(
        default=None,
        description="Wire variant. Inferred from the profile name when null.",
    )


def _default_profiles() -> dict[str, ProviderProfile]:
    return {
        "deepseek": ProviderProfile(
            api_base_url="https://api.deepseek.com",
            model="deepseek-chat",
            temperature=0.5,
            max_tokens=20480,
        ),
        "openai": ProviderProfile(
            api_base_url="https://api.openai.com/v1",
            model="gpt-4",
            temperature=0.5,
            max_tokens=2048,
        ),
        "zhipu": ProviderProfile(
            api_base_url="https://open.bigmodel.cn/api/paas/v4",
            model="glm-4",
            temperature=0.7,
            max_tokens=2048,
        ),
    }


class Settings(BaseModel):
    """Whole-file configuration, passed explicitly to every component."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    default_author: str = Field(default="", description="Author filter used when --author is omitted.")
    default_since: str = Field(default="today", description="Start of the time range (any git date).")
    default_until: str = Field(default="today", description="End of the time range (any git date).")
    current_profile: str = Field(default=DEFAULT_PROFILE_NAME, description="Name of the active profile.")
    profiles: dict[str, ProviderProfile] = Field(default_factory=_default_profiles)
    repositories: dict[str, str] = Field(
        default_factory=dict,
        description="Alias -> path of repositories aggregated into one summary.",
    )
    prompt_template: str = Field(
        default=DEFAULT_PROMPT_TEMPLATE,
        description="User prompt. Supports {{GIT_LOGS}}/{log_content}, {{AUTHOR}}/{author}, {{SINCE}}/{since}, {{UNTIL}}/{until}.",
    )
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    log_level: LogLevel = Field(
        default_factory=_resolve_log_level_default,
        description="Minimum level written to stderr. Defaults to G2LOG_LOG_LEVEL or WARNING.",
    )
    http_connect_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds to wait for the TCP/TLS connection. Null means no limit.",
    )
    http_total_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Overall request timeout including streaming. Null means no limit.",
    )
    http_connect_retries: int = Field(
        default=0,
        ge=0,
        le=5,
        description="Retries for failures while opening the connection. Never applied after output started.",
    )
    verify_tls: bool = Field(default=True, description="Verify TLS certificates of the provider endpoint.")
    enable_timing_log: bool = Field(default=False, description="Write timing events to timing_log_file.")
    timing_log_file: str = Field(default=str(CONFIG_DIR / "logs" / "timing.jsonl"))
    error_template: str = Field(
        default=DEFAULT_SUMMARY_ERROR_TEMPLATE,
        description="Markdown template used to report failures ({{#if}} blocks supported).",
    )

    @timed
    def active_profile(self, name: Optional[str] = None) -> tuple[str, ProviderProfile]:
        """Return ``(name, profile)`` for ``name`` or the current profile.

        An empty API key is filled from ``G2LOG_API_KEY`` without touching the
        stored profile.

        Raises:
            ConfigError: When the profile does not exist.
        """
        profile_name = (name or self.current_profile or DEFAULT_PROFILE_NAME).strip()
        profile = self.profiles.get(profile_name)
        if profile is None:
            known = ", ".join(sorted(self.profiles)) or "none"
            raise ConfigError(f"Unknown profile '{profile_name}' (known profiles: {known})")
        if not profile.api_key.plain:
            env_key = (os.getenv(API_KEY_ENV) or "").strip()
            if env_key:
                profile = profile.model_copy(update={"api_key": EncryptedStr(env_key)})
        return profile_name, profile

    # ------------------------------------------------------------------
    # Mutators used by the `g2log config` commands
    # ------------------------------------------------------------------

    def use_profile(self, name: str) -> None:
        if name not in self.profiles:
            known = ", ".join(sorted(self.profiles))
            raise ConfigError(f"Unknown profile '{name}' (known profiles: {known})")
        self.current_profile = name

    def set_profile_field(self, field: str, value: Any, *, profile: Optional[str] = None) -> None:
        """Assign ``field`` on ``profile`` (created empty when missing).

        String values such as ``"0.7"`` or ``"true"`` are coerced by pydantic;
        ``""`` or ``"null"`` clear optional fields.
        """
        if field not in ProviderProfile.model_fields:
            raise ConfigError(
                f"Unknown profile field '{field}' (fields: {', '.join(ProviderProfile.model_fields)})"
            )
        profile_name = profile or self.current_profile
        target = self.profiles.get(profile_name)
        if target is None:
            target = ProviderProfile()
            self.profiles[profile_name] = target
        if isinstance(value, str) and value.strip().lower() in {"", "null", "none"} and field != "api_key":
            value = None
        try:
            setattr(target, field, value)
        except ValidationError as exc:
            raise ConfigError(f"Invalid value for {field}: {exc.errors()[0]['msg']}") from exc

    def set_api_key(self, key: str, *, profile: Optional[str] = None) -> None:
        self.set_profile_field("api_key", EncryptedStr(EncryptedStr.encrypt(key.strip())), profile=profile)

    def add_repository(self, alias: str, path: str | Path) -> Path:
        """Register ``path`` under ``alias``; the path must exist."""
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_dir():
            raise ConfigError(f"Repository path does not exist: {resolved}")
        alias = alias.strip()
        if not alias:
            raise ConfigError("Repository alias must not be empty")
        self.repositories = {**self.repositories, alias: str(resolved)}
        return resolved

    def remove_repository(self, alias: str) -> None:
        if alias not in self.repositories:
            raise ConfigError(f"No repository registered under '{alias}'")
        self.repositories = {k: v for k, v in self.repositories.items() if k != alias}

    def unique_repository_alias(self, name: str, path: str | Path) -> str:
        """Return ``name``, or ``name-2``, ``name-3``... when another path already uses it."""
        resolved = str(Path(path).expanduser().resolve())
        alias = name.strip()
        suffix = 1
        while alias in self.repositories and self.repositories[alias] != resolved:
            suffix += 1
            alias = f"{name.strip()}-{suffix}"
        return alias

    def set_field(self, field: str, value: Any) -> None:
        """Assign a scalar top-level setting such as ``verify_tls`` or ``log_level``."""
        if field not in _SCALAR_SETTINGS:
            raise ConfigError(f"Unknown setting '{field}' (settings: {', '.join(sorted(_SCALAR_SETTINGS))})")
        if (
            isinstance(value, str)
            and value.strip().lower() in {"null", "none"}
            and field in _NULLABLE_SETTINGS
        ):
            value = None
        try:
            setattr(self, field, value)
        except ValidationError as exc:
            raise ConfigError(f"Invalid value for {field}: {exc.errors()[0]['msg']}") from exc


_SCALAR_SETTINGS = frozenset(
    {
        "default_author",
        "default_since",
        "default_until",
        "current_profile",
        "system_prompt",
        "log_level",
        "http_connect_timeout_seconds",
        "http_total_timeout_seconds",
        "http_connect_retries",
        "verify_tls",
        "enable_timing_log",
        "timing_log_file",
    }
)
_NULLABLE_SETTINGS = frozenset({"http_connect_timeout_seconds", "http_total_timeout_seconds"})


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------

def resolve_config_path(path: Optional[str | Path] = None) -> Path:
    """Return the config path: explicit > ``G2LOG_CONFIG_PATH`` > ``~/.g2log/config.jsonc``."""
    if path:
        return Path(path).expanduser()
    env_path = (os.getenv(CONFIG_PATH_ENV) or "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return CONFIG_DIR / CONFIG_FILENAME


@timed
def load_settings(path: Optional[str | Path] = None) -> Settings:
    """Load settings from a JSONC file; a missing file yields defaults.

    User profiles are merged over the built-in ones, so a config that only
    customizes ``deepseek`` still offers ``openai`` and ``zhipu``.

    Raises:
        ConfigError: When the file exists but cannot be parsed or validated.
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        LOGGER.debug("No config file at %s; using defaults", config_path)
        return Settings()
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
    try:
        data = json.loads(_strip_jsonc(raw_text)) if raw_text.strip() else {}
    except ValueError as exc:
        raise ConfigError(f"Cannot parse config file {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")

    user_profiles = data.get("profiles")
    if isinstance(user_profiles, dict):
        merged: dict[str, Any] = {name: profile.model_dump() for name, profile in _default_profiles().items()}
        for name, overrides in user_profiles.items():
            base = merged.get(name, {})
            merged[name] = {**base, **overrides} if isinstance(overrides, dict) else overrides
        data["profiles"] = merged
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {config_path}: {exc}") from exc


@timed
def save_settings(settings: Settings, path: Optional[str | Path] = None) -> Path:
    """Write ``settings`` as JSONC, creating the config directory if needed."""
    config_path = resolve_config_path(path)
    payload = json.dumps(settings.model_dump(mode="json"), indent=2, ensure_ascii=False)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(f"// g2log configuration\n{payload}\n", encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot write config file {config_path}: {exc}") from exc
    LOGGER.debug("Saved config to %s", config_path)
    return config_path
