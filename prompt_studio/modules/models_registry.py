"""
Prompt Studio - Model Registry

Static catalogue of provider models (context window, pricing, supported knobs,
capabilities) plus the cost and context-window calculators built on it.

Lookups for an unknown model id fail soft: cost and usage come back zeroed so
that a stale model reference never breaks a cost display.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Union

from .schemas import (
    ContextWindowUsage,
    CostEstimate,
    ModelConfig,
    ModelKnobs,
    ProviderConfig,
    ProviderId,
)

# Registry knob names (camelCase, as listed in supported_knobs).
KNOWN_KNOBS = (
    "temperature",
    "topP",
    "maxOutputTokens",
    "reasoningEffort",
    "toolChoice",
    "responseFormat",
)

_SAMPLING = ("temperature", "topP", "maxOutputTokens")
_REASONING = ("maxOutputTokens", "reasoningEffort")


def _model(
    model_id: str,
    provider: ProviderId,
    display_name: str,
    context_window: int,
    input_price: float,
    output_price: float,
    supported_knobs: Sequence[str],
    capabilities: Sequence[str],
    is_default: bool = False,
) -> ModelConfig:
    return ModelConfig(
        id=model_id,
        provider=provider,
        name=model_id,
        display_name=display_name,
        context_window=context_window,
        input_price_per_million=input_price,
        output_price_per_million=output_price,
        supported_knobs=tuple(supported_knobs),
        capabilities=tuple(capabilities),
        is_default=is_default,
    )


_MODELS: List[ModelConfig] = [
    # =========================================================================
    # ANTHROPIC
    # =========================================================================
    _model(
        "claude-sonnet-4-20250514", ProviderId.ANTHROPIC, "Claude Sonnet 4",
        200_000, 3.0, 15.0, _SAMPLING,
        ["vision", "function_calling", "streaming", "extended_thinking"],
        is_default=True,
    ),
    _model(
        "claude-opus-4-20250514", ProviderId.ANTHROPIC, "Claude Opus 4",
        200_000, 15.0, 75.0, _SAMPLING,
        ["vision", "function_calling", "streaming", "extended_thinking"],
    ),
    _model(
        "claude-3-5-haiku-20241022", ProviderId.ANTHROPIC, "Claude 3.5 Haiku",
        200_000, 0.80, 4.0, _SAMPLING,
        ["vision", "function_calling", "streaming"],
    ),
    # =========================================================================
    # OPENAI
    # =========================================================================
    _model(
        "gpt-4o", ProviderId.OPENAI, "GPT-4o",
        128_000, 2.5, 10.0, _SAMPLING + ("responseFormat",),
        ["vision", "function_calling", "streaming", "json_mode"],
    ),
    _model(
        "gpt-4o-mini", ProviderId.OPENAI, "GPT-4o Mini",
        128_000, 0.15, 0.6, _SAMPLING + ("responseFormat",),
        ["vision", "function_calling", "streaming", "json_mode"],
    ),
    _model(
        "o1", ProviderId.OPENAI, "o1",
        200_000, 15.0, 60.0, _REASONING,
        ["reasoning", "streaming", "vision"],
    ),
    _model(
        "o3-mini", ProviderId.OPENAI, "o3-mini",
        200_000, 1.10, 4.40, _REASONING,
        ["reasoning", "streaming"],
    ),
    _model(
        "o1-mini", ProviderId.OPENAI, "o1-mini",
        128_000, 1.10, 4.40, _REASONING,
        ["reasoning", "streaming"],
    ),
    # =========================================================================
    # GOOGLE GEMINI
    # =========================================================================
    _model(
        "gemini-2.5-pro-preview-05-06", ProviderId.GEMINI, "Gemini 2.5 Pro",
        1_000_000, 1.25, 10.0, _SAMPLING,
        ["vision", "function_calling", "streaming", "thinking", "long_context"],
    ),
    _model(
        "gemini-2.0-flash", ProviderId.GEMINI, "Gemini 2.0 Flash",
        1_000_000, 0.10, 0.40, _SAMPLING,
        ["vision", "function_calling", "streaming", "thinking"],
    ),
    _model(
        "gemini-2.0-flash-lite", ProviderId.GEMINI, "Gemini 2.0 Flash Lite",
        1_000_000, 0.075, 0.30, _SAMPLING,
        ["vision", "function_calling", "streaming"],
    ),
    _model(
        "gemini-1.5-pro", ProviderId.GEMINI, "Gemini 1.5 Pro",
        2_000_000, 1.25, 5.0, _SAMPLING,
        ["vision", "function_calling", "streaming", "long_context"],
    ),
    # =========================================================================
    # DEEPSEEK
    # =========================================================================
    _model(
        "deepseek-chat", ProviderId.DEEPSEEK, "DeepSeek V3",
        64_000, 0.27, 1.10, _SAMPLING,
        ["function_calling", "streaming"],
    ),
    _model(
        "deepseek-reasoner", ProviderId.DEEPSEEK, "DeepSeek R1",
        64_000, 0.55, 2.19, ("temperature", "maxOutputTokens"),
        ["reasoning", "streaming"],
    ),
]

MODEL_REGISTRY: Mapping[str, ModelConfig] = MappingProxyType({m.id: m for m in _MODELS})

DEFAULT_MODEL_ID = "claude-sonnet-4-20250514"

PROVIDER_DISPLAY_NAMES: Mapping[ProviderId, str] = MappingProxyType(
    {
        ProviderId.ANTHROPIC: "Anthropic",
        ProviderId.OPENAI: "OpenAI",
        ProviderId.GEMINI: "Google Gemini",
        ProviderId.DEEPSEEK: "DeepSeek",
        ProviderId.OPENAI_COMPATIBLE: "OpenAI Compatible",
    }
)


# =============================================================================
# LOOKUPS
# =============================================================================


def get_model_by_id(model_id: str) -> Optional[ModelConfig]:
    return MODEL_REGISTRY.get(model_id)


# Alias kept for callers that think in terms of "config".
get_model_config = get_model_by_id


def get_models_by_provider(provider: Union[ProviderId, str]) -> List[ModelConfig]:
    provider_id = ProviderId(provider)
    return [m for m in MODEL_REGISTRY.values() if m.provider == provider_id]


def get_default_model() -> ModelConfig:
    return MODEL_REGISTRY[DEFAULT_MODEL_ID]


def default_providers() -> List[ProviderConfig]:
    """Provider catalogue; the OpenAI-compatible endpoint ships disabled with no models."""
    providers: List[ProviderConfig] = []
    for provider_id, display_name in PROVIDER_DISPLAY_NAMES.items():
        custom = provider_id == ProviderId.OPENAI_COMPATIBLE
        providers.append(
            ProviderConfig(
                id=provider_id,
                display_name=display_name,
                enabled=not custom,
                models=[] if custom else get_models_by_provider(provider_id),
            )
        )
    return providers


# =============================================================================
# COST & CONTEXT WINDOW
# =============================================================================


def calculate_cost(model_id: str, input_tokens: int, output_tokens: int) -> CostEstimate:
    """Dollar cost split by direction; all zero for an unknown model id."""
    model = get_model_by_id(model_id)
    if model is None:
        return CostEstimate(input_cost=0.0, output_cost=0.0, total_cost=0.0)

    input_cost = (input_tokens / 1_000_000) * model.input_price_per_million
    output_cost = (output_tokens / 1_000_000) * model.output_price_per_million
    return CostEstimate(
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
    )


def get_context_window_usage(model_id: str, input_tokens: int, output_tokens: int) -> ContextWindowUsage:
    """Share of the model's context window used, clamped to [0, 100]."""
    model = get_model_by_id(model_id)
    if model is None:
        return ContextWindowUsage(used=0, total=0, percentage=0.0)

    used = input_tokens + output_tokens
    percentage = (used / model.context_window) * 100
    return ContextWindowUsage(
        used=used,
        total=model.context_window,
        percentage=max(0.0, min(100.0, percentage)),
    )


# =============================================================================
# KNOB SUPPORT
# =============================================================================


def filter_supported_knobs(model_id: str, knobs: Optional[ModelKnobs]) -> ModelKnobs:
    """Drop knobs the model does not honor.

    Models missing from the registry (custom endpoints) keep every knob.
    """
    knobs = knobs or ModelKnobs()
    model = get_model_by_id(model_id)
    if model is None:
        return knobs

    unsupported = [k for k in KNOWN_KNOBS if k not in model.supported_knobs]
    return knobs.without(unsupported)
