"""Anthropic Messages API adapter."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from ..key_manager import KeyManager
from ..models_registry import filter_supported_knobs
from ..schemas import ProviderId, ProviderRequest, ProviderResponse, Usage
from .base import (
    Credentials,
    KnobsLike,
    MessagesLike,
    as_int,
    coerce_knobs,
    coerce_messages,
    dig,
    execute_request,
    first_system_content,
    invalid_request,
    not_configured,
)

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


def parse_response(data: Any) -> Tuple[str, Usage]:
    content = dig(data, "content", 0, "text") or ""
    usage = dig(data, "usage")
    if not isinstance(usage, dict):
        usage = {}
    input_tokens = as_int(usage.get("input_tokens"))
    output_tokens = as_int(usage.get("output_tokens"))
    return content, Usage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
    )


class AnthropicAdapter:
    id = ProviderId.ANTHROPIC
    display_name = "Anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        key_manager: Optional[KeyManager] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.credentials = Credentials(self.id, api_key=api_key, key_manager=key_manager)
        self.timeout_seconds = timeout_seconds

    def is_configured(self) -> bool:
        return bool(self.credentials.api_key())

    def build_payload(self, model: str, messages: MessagesLike, knobs: KnobsLike = None) -> ProviderRequest:
        msgs = coerce_messages(messages)
        k = filter_supported_knobs(model, coerce_knobs(knobs))

        system = first_system_content(msgs)
        conversation: List[Dict[str, str]] = [
            {"role": m.role.value, "content": m.content} for m in msgs if m.role.value != "system"
        ]
        # The Messages API rejects an empty message list.
        if not conversation:
            conversation.append({"role": "user", "content": system or "Hello"})

        body: Dict[str, Any] = {
            "model": model,
            "max_tokens": k.max_output_tokens or DEFAULT_MAX_TOKENS,
            "messages": conversation,
        }
        if system is not None:
            body["system"] = system
        if k.temperature is not None:
            body["temperature"] = k.temperature
        if k.top_p is not None:
            body["top_p"] = k.top_p

        return ProviderRequest(
            url=API_URL,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self.credentials.api_key() or "",
                "anthropic-version": API_VERSION,
            },
            body=body,
        )

    async def send(
        self,
        model: str,
        messages: MessagesLike,
        knobs: KnobsLike = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProviderResponse:
        if not self.is_configured():
            return not_configured("Anthropic API key not configured")

        try:
            request = self.build_payload(model, messages, knobs)
        except (TypeError, ValueError) as e:
            return invalid_request(e)

        return await execute_request(
            request,
            provider=self.id,
            parse=parse_response,
            fallback_error="Anthropic API error",
            error_code_field="type",
            secret=self.credentials.api_key(),
            timeout_seconds=self.timeout_seconds,
            cancel_event=cancel_event,
        )
