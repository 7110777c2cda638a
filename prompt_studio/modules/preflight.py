"""
Prompt Studio - Preflight

One call that produces everything shown before a send: assembled messages,
token estimate, cost, context-window usage and validation issues. A prompt
with any error-severity issue is reported as not valid; callers decide
whether to block the send.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Union

from loguru import logger

from .assembler import blocks_to_messages
from .models_registry import calculate_cost, filter_supported_knobs, get_context_window_usage
from .schemas import ModelKnobs, PreflightResult, PromptBlock, ProviderId, ProviderPayload, ValidationSeverity
from .token_estimation import estimate_prompt_tokens
from .validation import validate_prompt


def run_preflight(
    blocks: Sequence[PromptBlock],
    provider: Union[ProviderId, str],
    model: str,
    knobs: Optional[Union[ModelKnobs, Dict[str, Any]]] = None,
    output_tokens: Optional[int] = None,
) -> PreflightResult:
    provider_id = ProviderId(provider)
    if isinstance(knobs, dict):
        knobs = ModelKnobs.model_validate(knobs)

    messages = blocks_to_messages(blocks)
    estimate = estimate_prompt_tokens(blocks, provider_id, output_tokens=output_tokens)
    cost = calculate_cost(model, estimate.input_tokens, estimate.output_tokens)
    usage = get_context_window_usage(model, estimate.input_tokens, estimate.output_tokens)
    issues = validate_prompt(blocks)

    valid = not any(i.severity == ValidationSeverity.ERROR for i in issues)
    logger.debug(
        f"Preflight {provider_id.value}/{model}: {estimate.total_tokens} tokens, "
        f"${cost.total_cost:.4f}, {len(issues)} issue(s), valid={valid}"
    )

    return PreflightResult(
        valid=valid,
        issues=issues,
        payload=ProviderPayload(
            provider=provider_id,
            model=model,
            messages=messages,
            knobs=filter_supported_knobs(model, knobs),
        ),
        token_estimate=estimate,
        cost_estimate=cost,
        context_usage=usage,
    )
