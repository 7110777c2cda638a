"""
Provider registry: one adapter per ProviderId, dispatched by id.

Adapters hold no secrets of their own; they resolve keys through the key
manager on every call, so module-level instances are safe to share.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

from ..schemas import ProviderId
from .anthropic import AnthropicAdapter
from .base import ProviderAdapter, ProviderError, UnknownProviderError
from .deepseek import DeepSeekAdapter
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter
from .openai_compatible import OpenAICompatibleAdapter

ALL_PROVIDERS: List[ProviderId] = [
    ProviderId.ANTHROPIC,
    ProviderId.OPENAI,
    ProviderId.GEMINI,
    ProviderId.DEEPSEEK,
    ProviderId.OPENAI_COMPATIBLE,
]

PROVIDER_ADAPTERS: Dict[ProviderId, ProviderAdapter] = {
    ProviderId.ANTHROPIC: AnthropicAdapter(),
    ProviderId.OPENAI: OpenAIAdapter(),
    ProviderId.GEMINI: GeminiAdapter(),
    ProviderId.DEEPSEEK: DeepSeekAdapter(),
    ProviderId.OPENAI_COMPATIBLE: OpenAICompatibleAdapter(),
}


def get_adapter(provider_id: Union[ProviderId, str]) -> ProviderAdapter:
    try:
        return PROVIDER_ADAPTERS[ProviderId(provider_id)]
    except (ValueError, KeyError):
        raise UnknownProviderError(f"Unknown provider: {getattr(provider_id, 'value', provider_id)}") from None


def is_provider_configured(provider_id: Union[ProviderId, str]) -> bool:
    try:
        return get_adapter(provider_id).is_configured()
    except UnknownProviderError:
        return False


def get_configured_providers() -> List[ProviderId]:
    return [p for p in ALL_PROVIDERS if PROVIDER_ADAPTERS[p].is_configured()]


def provider_status() -> List[Dict[str, Any]]:
    return [
        {
            "id": p.value,
            "displayName": PROVIDER_ADAPTERS[p].display_name,
            "configured": PROVIDER_ADAPTERS[p].is_configured(),
        }
        for p in ALL_PROVIDERS
    ]


__all__ = [
    "ALL_PROVIDERS",
    "AnthropicAdapter",
    "DeepSeekAdapter",
    "GeminiAdapter",
    "OpenAIAdapter",
    "OpenAICompatibleAdapter",
    "PROVIDER_ADAPTERS",
    "ProviderAdapter",
    "ProviderError",
    "UnknownProviderError",
    "get_adapter",
    "get_configured_providers",
    "is_provider_configured",
    "provider_status",
]
