"""
Google Gemini generateContent adapter.

Gemini wants strictly alternating user/model turns that start with a user
turn, so the message list is reshaped before sending:
- assistant becomes "model"; system messages move to systemInstruction
- consecutive turns with the same role are merged (parts concatenated)
- a leading user turn is synthesized when needed, carrying the system text
  (or "Hello"); systemInstruction is skipped when the first part already
  carries the system text
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..key_manager import KeyManager
from ..models_registry import filter_supported_knobs
from ..schemas import Message, ProviderId, ProviderRequest, ProviderResponse, Usage
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

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MAX_OUTPUT_TOKENS = 8192


def build_contents(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    system = first_system_content(messages)

    contents: List[Dict[str, Any]] = []
    for m in messages:
        if m.role.value == "system":
            continue
        role = "model" if m.role.value == "assistant" else "user"
        if contents and contents[-1]["role"] == role:
            contents[-1]["parts"].append({"text": m.content})
        else:
            contents.append({"role": role, "parts": [{"text": m.content}]})

    if not contents or contents[0]["role"] != "user":
        contents.insert(0, {"role": "user", "parts": [{"text": system or "Hello"}]})

    return contents


def parse_response(data: Any) -> Tuple[str, Usage]:
    content = dig(data, "candidates", 0, "content", "parts", 0, "text") or ""
    usage = dig(data, "usageMetadata")
    if not isinstance(usage, dict):
        usage = {}
    return content, Usage(
        input_tokens=as_int(usage.get("promptTokenCount")),
        output_tokens=as_int(usage.get("candidatesTokenCount")),
        total_tokens=as_int(usage.get("totalTokenCount")),
    )


class GeminiAdapter:
    id = ProviderId.GEMINI
    display_name = "Google Gemini"

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

        contents = build_contents(msgs)

        generation_config: Dict[str, Any] = {
            "maxOutputTokens": k.max_output_tokens or DEFAULT_MAX_OUTPUT_TOKENS,
        }
        if k.temperature is not None:
            generation_config["temperature"] = k.temperature
        if k.top_p is not None:
            generation_config["topP"] = k.top_p

        body: Dict[str, Any] = {"contents": contents, "generationConfig": generation_config}

        system = first_system_content(msgs)
        if system and contents[0]["parts"][0]["text"] != system:
            body["systemInstruction"] = {"parts": [{"text": system}]}

        return ProviderRequest(
            url=f"{API_BASE}/{model}:generateContent?key={self.credentials.api_key() or ''}",
            headers={"Content-Type": "application/json"},
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
            return not_configured("Google API key not configured")

        try:
            request = self.build_payload(model, messages, knobs)
        except (TypeError, ValueError) as e:
            return invalid_request(e)

        return await execute_request(
            request,
            provider=self.id,
            parse=parse_response,
            fallback_error="Gemini API error",
            secret=self.credentials.api_key(),
            timeout_seconds=self.timeout_seconds,
            cancel_event=cancel_event,
        )
