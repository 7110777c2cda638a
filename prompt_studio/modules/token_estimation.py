"""
Prompt Studio - Token Estimation

Heuristic token counting without a tokenizer. The estimate starts from a
per-provider characters-per-token density and applies small corrections for
punctuation, code fences, digit runs and whitespace-heavy text.

All functions are pure and safe to call on every keystroke.
"""

from __future__ import annotations

import math
import re
from typing import Dict, Optional, Sequence, Union

from .schemas import (
    BlockType,
    Confidence,
    Message,
    MessageRole,
    PromptBlock,
    ProviderId,
    TokenEstimate,
)

ProviderLike = Union[ProviderId, str]

DEFAULT_PROVIDER = ProviderId.ANTHROPIC

# Average tokenizer density per provider family (empirically derived).
CHARS_PER_TOKEN: Dict[str, float] = {
    ProviderId.ANTHROPIC.value: 3.5,
    ProviderId.OPENAI.value: 4.0,
    ProviderId.GEMINI.value: 4.0,
    ProviderId.DEEPSEEK.value: 3.8,
    ProviderId.OPENAI_COMPATIBLE.value: 4.0,
}
DEFAULT_CHARS_PER_TOKEN = 4.0

# Wire-format framing charged per message.
MESSAGE_OVERHEAD: Dict[str, int] = {
    ProviderId.ANTHROPIC.value: 4,
    ProviderId.OPENAI.value: 4,
    ProviderId.GEMINI.value: 3,
    ProviderId.DEEPSEEK.value: 4,
    ProviderId.OPENAI_COMPATIBLE.value: 4,
}
DEFAULT_MESSAGE_OVERHEAD = 4

ROLE_TOKENS: Dict[str, int] = {
    MessageRole.SYSTEM.value: 2,
    MessageRole.USER.value: 2,
    MessageRole.ASSISTANT.value: 2,
}

CONVERSATION_OVERHEAD = 3

# Formatting markup (headers, delimiters) that accompanies each block type.
BLOCK_OVERHEAD: Dict[str, int] = {
    BlockType.SYSTEM.value: 5,
    BlockType.ROLE.value: 3,
    BlockType.GOAL.value: 3,
    BlockType.CONSTRAINTS.value: 4,
    BlockType.OUTPUT_FORMAT.value: 5,
    BlockType.EXAMPLES.value: 8,
    BlockType.TOOLS.value: 6,
    BlockType.EVALUATION.value: 4,
    BlockType.ENVIRONMENT.value: 3,
    BlockType.UI_AESTHETIC.value: 3,
    BlockType.ACCESSIBILITY.value: 3,
    BlockType.TESTING.value: 4,
    BlockType.DEPLOYMENT.value: 3,
    BlockType.CUSTOM.value: 2,
}
DEFAULT_BLOCK_OVERHEAD = 2

SPECIAL_CHAR_WEIGHT = 0.3
CODE_BLOCK_WEIGHT = 3
DIGIT_RUN_WEIGHT = 0.2
WHITESPACE_RATIO_THRESHOLD = 0.2
WHITESPACE_DISCOUNT = 0.95

# Structural separator tokens charged per enabled block.
BLOCK_SEPARATOR_TOKENS = 2
DEFAULT_OUTPUT_RATIO = 0.3

MEDIUM_CONFIDENCE_THRESHOLD = 10_000
LOW_CONFIDENCE_THRESHOLD = 50_000

OUTPUT_VERBOSITY_MULTIPLIERS: Dict[str, float] = {
    "minimal": 0.1,
    "standard": 0.3,
    "detailed": 0.6,
    "comprehensive": 1.0,
}
MIN_OUTPUT_ESTIMATE = 100
MAX_OUTPUT_ESTIMATE = 32_000

_SPECIAL_CHARS_RE = re.compile(r"[{}\[\]().,;:!?@#$%^&*+=<>\"/\\|`~-]")
_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_DIGIT_RUN_RE = re.compile(r"[0-9]+")
_WHITESPACE_RE = re.compile(r"\s")


def _provider_key(provider: Optional[ProviderLike]) -> str:
    if provider is None:
        return DEFAULT_PROVIDER.value
    if isinstance(provider, ProviderId):
        return provider.value
    return str(provider)


def estimate_tokens_for_text(text: Optional[str], provider: ProviderLike = DEFAULT_PROVIDER) -> int:
    """Estimate tokens for a text string.

    Args:
        text: Text to estimate (None, empty or non-string input yields 0)
        provider: Provider id selecting the chars-per-token density

    Returns:
        Non-negative integer estimate
    """
    if not text or not isinstance(text, str):
        return 0

    chars_per_token = CHARS_PER_TOKEN.get(_provider_key(provider), DEFAULT_CHARS_PER_TOKEN)

    special_chars = len(_SPECIAL_CHARS_RE.findall(text))
    code_blocks = len(_CODE_BLOCK_RE.findall(text))
    digit_runs = len(_DIGIT_RUN_RE.findall(text))

    tokens: float = math.ceil(len(text) / chars_per_token)
    tokens += special_chars * SPECIAL_CHAR_WEIGHT
    tokens += code_blocks * CODE_BLOCK_WEIGHT
    tokens += digit_runs * DIGIT_RUN_WEIGHT

    whitespace_ratio = len(_WHITESPACE_RE.findall(text)) / len(text)
    if whitespace_ratio > WHITESPACE_RATIO_THRESHOLD:
        tokens *= WHITESPACE_DISCOUNT

    return math.ceil(tokens)


def estimate_tokens_for_message(message: Message, provider: ProviderLike = DEFAULT_PROVIDER) -> int:
    """Content tokens plus role tokens plus per-provider message framing."""
    role = message.role.value if isinstance(message.role, MessageRole) else str(message.role)
    content_tokens = estimate_tokens_for_text(message.content, provider)
    role_tokens = ROLE_TOKENS.get(role, 2)
    overhead = MESSAGE_OVERHEAD.get(_provider_key(provider), DEFAULT_MESSAGE_OVERHEAD)
    return content_tokens + role_tokens + overhead


def estimate_tokens_for_messages(
    messages: Sequence[Message], provider: ProviderLike = DEFAULT_PROVIDER
) -> int:
    total = sum(estimate_tokens_for_message(m, provider) for m in messages)
    # Conversation start/end tokens.
    return total + CONVERSATION_OVERHEAD


def get_block_overhead(block_type: Union[BlockType, str]) -> int:
    key = block_type.value if isinstance(block_type, BlockType) else str(block_type)
    return BLOCK_OVERHEAD.get(key, DEFAULT_BLOCK_OVERHEAD)


def estimate_tokens_for_block(block: PromptBlock, provider: ProviderLike = DEFAULT_PROVIDER) -> int:
    """Title and content tokens plus block-type overhead; 0 for disabled blocks."""
    if not block.enabled:
        return 0

    title_tokens = estimate_tokens_for_text(block.title, provider)
    content_tokens = estimate_tokens_for_text(block.content, provider)
    return title_tokens + content_tokens + get_block_overhead(block.type)


def confidence_for(input_tokens: int) -> Confidence:
    if input_tokens > LOW_CONFIDENCE_THRESHOLD:
        return Confidence.LOW
    if input_tokens > MEDIUM_CONFIDENCE_THRESHOLD:
        return Confidence.MEDIUM
    return Confidence.HIGH


def default_output_tokens(input_tokens: int) -> int:
    return math.ceil(input_tokens * DEFAULT_OUTPUT_RATIO)


def estimate_prompt_tokens(
    blocks: Sequence[PromptBlock],
    provider: ProviderLike = DEFAULT_PROVIDER,
    *,
    output_tokens: Optional[int] = None,
) -> TokenEstimate:
    """Estimate a full prompt from its block list.

    Output tokens default to 30% of input; pass ``output_tokens`` to use an
    explicit, user-chosen value instead. Confidence is derived from the input
    size only.
    """
    enabled_blocks = [b for b in blocks if b.enabled]
    breakdown: Dict[str, int] = {}

    input_tokens = 0
    for block in enabled_blocks:
        block_tokens = estimate_tokens_for_block(block, provider)
        breakdown[block.id] = block_tokens
        input_tokens += block_tokens

    input_tokens += BLOCK_SEPARATOR_TOKENS * len(enabled_blocks)

    if output_tokens is None:
        output_tokens = default_output_tokens(input_tokens)
    output_tokens = max(0, int(output_tokens))

    return TokenEstimate(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        confidence=confidence_for(input_tokens),
        breakdown=breakdown,
    )


def estimate_output_tokens(input_tokens: int, verbosity: str = "standard") -> int:
    """Expected response length for a verbosity level, clamped to [100, 32000]."""
    multiplier = OUTPUT_VERBOSITY_MULTIPLIERS.get(verbosity, OUTPUT_VERBOSITY_MULTIPLIERS["standard"])
    base_output = input_tokens * multiplier
    return math.ceil(max(MIN_OUTPUT_ESTIMATE, min(base_output, MAX_OUTPUT_ESTIMATE)))


def format_token_count(tokens: int) -> str:
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}K"
    return str(tokens)
