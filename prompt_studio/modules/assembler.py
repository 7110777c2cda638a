"""Block list -> normalized message list.

Enabled blocks collapse into at most two messages: one system message built
from the system-class blocks (system, role, constraints, environment) and one
user message built from everything else, both in original block order.
"""

from __future__ import annotations

from typing import List, Sequence

from .schemas import SYSTEM_CLASS_BLOCK_TYPES, Message, MessageRole, PromptBlock

BLOCK_SEPARATOR = "\n\n"


def format_block(block: PromptBlock) -> str:
    header = f"## {block.title}\n" if block.title else ""
    return header + block.content


def is_system_class(block: PromptBlock) -> bool:
    return block.type in SYSTEM_CLASS_BLOCK_TYPES


def blocks_to_messages(blocks: Sequence[PromptBlock]) -> List[Message]:
    """Assemble zero, one or two messages (system first, then user)."""
    enabled = [b for b in blocks if b.enabled]
    system_blocks = [b for b in enabled if is_system_class(b)]
    user_blocks = [b for b in enabled if not is_system_class(b)]

    messages: List[Message] = []
    if system_blocks:
        messages.append(
            Message(
                role=MessageRole.SYSTEM,
                content=BLOCK_SEPARATOR.join(format_block(b) for b in system_blocks),
            )
        )
    if user_blocks:
        messages.append(
            Message(
                role=MessageRole.USER,
                content=BLOCK_SEPARATOR.join(format_block(b) for b in user_blocks),
            )
        )
    return messages


def assemble_prompt_text(blocks: Sequence[PromptBlock]) -> str:
    """Flatten the assembled messages into one reviewable text."""
    return BLOCK_SEPARATOR.join(m.content for m in blocks_to_messages(blocks))
