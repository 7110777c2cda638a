from __future__ import annotations

import math

import pytest

from prompt_studio.modules.schemas import BlockType, Confidence, Message, MessageRole, PromptBlock, ProviderId
from prompt_studio.modules.token_estimation import (
    confidence_for,
    estimate_output_tokens,
    estimate_prompt_tokens,
    estimate_tokens_for_block,
    estimate_tokens_for_message,
    estimate_tokens_for_messages,
    estimate_tokens_for_text,
    format_token_count,
    get_block_overhead,
)


@pytest.mark.parametrize("text", ["", None])
def test_empty_text_is_zero(text) -> None:
    assert estimate_tokens_for_text(text) == 0


@pytest.mark.parametrize("text", [123, 4.5, ["hello"], {"a": "b"}])
def test_non_string_text_is_zero(text) -> None:
    assert estimate_tokens_for_text(text) == 0


def test_non_string_content_counts_as_empty() -> None:
    message = Message.model_construct(role=MessageRole.USER, content=123)
    assert estimate_tokens_for_message(message) == estimate_tokens_for_message(Message(role=MessageRole.USER, content=""))

    block = PromptBlock.model_construct(id="b", type=BlockType.CUSTOM, title=None, content=42, enabled=True)
    assert estimate_tokens_for_block(block) == get_block_overhead(BlockType.CUSTOM)


def test_plain_text_uses_provider_density() -> None:
    # 8 chars: anthropic 3.5 chars/token, openai 4.0
    assert estimate_tokens_for_text("abcdefgh", ProviderId.ANTHROPIC) == 3
    assert estimate_tokens_for_text("abcdefgh", ProviderId.OPENAI) == 2
    assert estimate_tokens_for_text("abcdefgh", "openai") == 2


def test_unknown_provider_falls_back_to_default_density() -> None:
    assert estimate_tokens_for_text("abcdefgh", "mystery") == 2


def test_special_chars_digits_and_whitespace_adjustments() -> None:
    # ceil(5/3.5)=2, +0.3 for "=", +0.2 for "1", whitespace 2/5 > 0.2 -> *0.95
    assert estimate_tokens_for_text("x = 1") == 3


def test_code_fence_adds_weight() -> None:
    # ceil(7/3.5)=2, 6 backticks * 0.3, one fenced block * 3
    assert estimate_tokens_for_text("```py```") == 7


def test_estimate_is_monotonic_for_growing_text() -> None:
    counts = [estimate_tokens_for_text("word " * n) for n in range(1, 40)]
    assert counts == sorted(counts)


def test_message_adds_role_and_framing() -> None:
    msg = Message(role=MessageRole.USER, content="Hello world")
    assert estimate_tokens_for_message(msg) == 4 + 2 + 4
    assert estimate_tokens_for_message(msg, ProviderId.GEMINI) == 3 + 2 + 3


def test_messages_add_conversation_overhead() -> None:
    messages = [
        Message(role=MessageRole.SYSTEM, content="abcdefg"),
        Message(role=MessageRole.USER, content="Hello world"),
    ]
    assert estimate_tokens_for_messages(messages) == (2 + 2 + 4) + (4 + 2 + 4) + 3
    assert estimate_tokens_for_messages([]) == 3


def test_block_overhead_table() -> None:
    assert get_block_overhead(BlockType.SYSTEM) == 5
    assert get_block_overhead(BlockType.EXAMPLES) == 8
    assert get_block_overhead("custom") == 2
    assert get_block_overhead("not-a-type") == 2


def test_disabled_block_costs_nothing() -> None:
    block = PromptBlock(id="b", type=BlockType.GOAL, title="Goal", content="abcdefgh", enabled=False)
    assert estimate_tokens_for_block(block) == 0


def test_prompt_estimate_counts_enabled_blocks_only() -> None:
    goal = PromptBlock(id="b1", type=BlockType.GOAL, title="Goal", content="abcdefgh")
    hidden = PromptBlock(id="b2", type=BlockType.EXAMPLES, title="Ex", content="x" * 500, enabled=False)

    est = estimate_prompt_tokens([goal, hidden])

    # title 2 + content 3 + goal overhead 3, plus 2 separator tokens
    assert est.input_tokens == 10
    assert est.output_tokens == math.ceil(10 * 0.3)
    assert est.total_tokens == est.input_tokens + est.output_tokens
    assert est.confidence == Confidence.HIGH
    assert est.breakdown == {"b1": 8}


def test_explicit_output_tokens_override_default() -> None:
    goal = PromptBlock(id="b1", type=BlockType.GOAL, title="Goal", content="abcdefgh")
    est = estimate_prompt_tokens([goal], output_tokens=500)
    assert est.output_tokens == 500
    assert est.total_tokens == est.input_tokens + 500


def test_empty_prompt_estimate() -> None:
    est = estimate_prompt_tokens([])
    assert (est.input_tokens, est.output_tokens, est.total_tokens) == (0, 0, 0)
    assert est.confidence == Confidence.HIGH


def test_confidence_thresholds() -> None:
    assert confidence_for(10_000) == Confidence.HIGH
    assert confidence_for(10_001) == Confidence.MEDIUM
    assert confidence_for(50_000) == Confidence.MEDIUM
    assert confidence_for(50_001) == Confidence.LOW


def test_output_estimate_is_clamped() -> None:
    assert estimate_output_tokens(1000) == 300
    assert estimate_output_tokens(10) == 100
    assert estimate_output_tokens(200_000, "comprehensive") == 32_000
    assert estimate_output_tokens(1000, "detailed") == 600


def test_format_token_count() -> None:
    assert format_token_count(999) == "999"
    assert format_token_count(1500) == "1.5K"
    assert format_token_count(2_500_000) == "2.5M"
