"""DeepSeek adapter (OpenAI-shaped chat completions)."""

from __future__ import annotations

import asyncio
from typing import Optional

from ..key_manager import KeyManager
from ..models_registry import filter_supported_knobs
from ..schemas import ProviderId, ProviderRequest, ProviderResponse
from .base import (
    Credentials,
    KnobsLike,
    MessagesLike,
    bearer_headers,
    chat_completions_body,
    coerce_knobs,
    coerce_messages,
    execute_request,
    invalid_request,
    not_configured,
    parse_chat_completion,
)

API_URL = "https://api.deepseek.com/v1/chat/completions"


class DeepSeekAdapter:
    id = ProviderId.DEEPSEEK
    display_name = "DeepSeek"

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
        k = filter_supported_knobs(model, coerce_knobs(knobs))
        return ProviderRequest(
            url=API_URL,
            headers=bearer_headers(self.credentials.api_key()),
            body=chat_completions_body(model, coerce_messages(messages), k),
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
            return not_configured("DeepSeek API key not configured")

        try:
            request = self.build_payload(model, messages, knobs)
        except (TypeError, ValueError) as e:
            return invalid_request(e)

        return await execute_request(
            request,
            provider=self.id,
            parse=parse_chat_completion,
            fallback_error="DeepSeek API error",
            secret=self.credentials.api_key(),
            timeout_seconds=self.timeout_seconds,
            cancel_event=cancel_event,
        )
