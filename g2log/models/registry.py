"""Provider variants.

All providers share one request shape and one streaming pipeline; a
:class:`ProviderSpec` only describes what differs between them: defaults,
extra request fields and whether the reasoning channel is read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..core.config import ProviderProfile
from ..streaming.delta_extractor import DeltaExtractor

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProviderSpec:
    """One closed-set provider variant."""

    name: str
    display_name: str
    default_base_url: str
    default_model: str
    supports_reasoning: bool = False

    def reasoning_enabled(self, profile: ProviderProfile) -> bool:
        return self.supports_reasoning and bool(profile.enable_thinking)

    def extra_body(self, profile: ProviderProfile) -> dict[str, Any]:
        """Provider-specific request fields merged into the request body."""
        if self.reasoning_enabled(profile):
            return {"thinking": {"type": "enabled"}}
        return {}

    def extractor(self, profile: ProviderProfile, *, logger: Optional[logging.Logger] = None) -> DeltaExtractor:
        return DeltaExtractor(include_reasoning=self.reasoning_enabled(profile), logger=logger)


OPENAI = ProviderSpec(
    name="openai",
    display_name="OpenAI",
    default_base_url="https://api.openai.com/v1",
    default_model="gpt-4",
)
DEEPSEEK = ProviderSpec(
    name="deepseek",
    display_name="DeepSeek",
    default_base_url="https://api.deepseek.com",
    default_model="deepseek-chat",
)
ZHIPU = ProviderSpec(
    name="zhipu",
    display_name="Zhipu",
    default_base_url="https://open.bigmodel.cn/api/paas/v4",
    default_model="glm-4",
    supports_reasoning=True,
)

PROVIDERS: dict[str, ProviderSpec] = {spec.name: spec for spec in (OPENAI, DEEPSEEK, ZHIPU)}
DEFAULT_PROVIDER = DEEPSEEK


def resolve_provider(profile_name: str, profile: Optional[ProviderProfile] = None) -> ProviderSpec:
    """Pick the variant for a profile.

    An explicit ``profile.provider`` wins. Otherwise the profile name selects
    ``openai`` or ``zhipu``; every other name uses the DeepSeek variant.
    """
    if profile is not None and profile.provider:
        return PROVIDERS[profile.provider]
    return PROVIDERS.get((profile_name or "").strip(), DEFAULT_PROVIDER)
