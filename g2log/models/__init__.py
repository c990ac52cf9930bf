"""Provider registry: the closed set of supported chat-completion variants."""

from .registry import DEEPSEEK, OPENAI, PROVIDERS, ZHIPU, ProviderSpec, resolve_provider

__all__ = [
    "DEEPSEEK",
    "OPENAI",
    "PROVIDERS",
    "ZHIPU",
    "ProviderSpec",
    "resolve_provider",
]
