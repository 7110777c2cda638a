"""
Prompt Studio - Provider Adapter Primitives

Every adapter exposes the same contract (ProviderAdapter) and shares the
request executor below. Adapters are plain classes composed from these
helpers; there is no adapter base class.

send() never raises. Invalid messages or knobs, HTTP errors, network errors,
malformed bodies and cancellation are all folded into a ProviderResponse with
success=False.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

import httpx
from loguru import logger

from ..config import http_timeout_seconds
from ..key_manager import KeyManager, get_key_manager, mask_key
from ..schemas import Message, ModelKnobs, ProviderId, ProviderRequest, ProviderResponse, Usage

CANCELLED_MESSAGE = "Request cancelled"

MessagesLike = Sequence[Union[Message, Dict[str, Any]]]
KnobsLike = Optional[Union[ModelKnobs, Dict[str, Any]]]
ResponseParser = Callable[[Any], Tuple[str, Optional[Usage]]]


# =============================================================================
# ERRORS
# =============================================================================


class ProviderError(RuntimeError):
    """Provider-side failure, converted to a ProviderResponse before send() returns."""

    def __init__(self, message: str, *, code: str, provider: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.provider = provider
        self.status = status


class UnknownProviderError(ValueError):
    pass


# =============================================================================
# CONTRACT
# =============================================================================


@runtime_checkable
class ProviderAdapter(Protocol):
    id: ProviderId
    display_name: str

    def is_configured(self) -> bool: ...

    def build_payload(self, model: str, messages: MessagesLike, knobs: KnobsLike = None) -> ProviderRequest: ...

    async def send(
        self,
        model: str,
        messages: MessagesLike,
        knobs: KnobsLike = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProviderResponse: ...


class Credentials:
    """Key (and base URL) lookup for one provider.

    An explicit key wins over the environment; environment values are read
    on every call so a key set after startup is picked up.
    """

    def __init__(
        self,
        provider: ProviderId,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        key_manager: Optional[KeyManager] = None,
    ):
        self.provider = provider
        self._api_key = api_key
        self._base_url = base_url
        self._key_manager = key_manager

    @property
    def key_manager(self) -> KeyManager:
        return self._key_manager or get_key_manager()

    def api_key(self) -> Optional[str]:
        return self._api_key or self.key_manager.get_api_key(self.provider)

    def base_url(self) -> Optional[str]:
        return self._base_url or self.key_manager.get_base_url(self.provider)


# =============================================================================
# HELPERS
# =============================================================================


def coerce_messages(messages: MessagesLike) -> List[Message]:
    return [m if isinstance(m, Message) else Message.model_validate(m) for m in messages]


def coerce_knobs(knobs: KnobsLike) -> ModelKnobs:
    if knobs is None:
        return ModelKnobs()
    if isinstance(knobs, ModelKnobs):
        return knobs
    return ModelKnobs.model_validate(knobs)


def first_system_content(messages: Sequence[Message]) -> Optional[str]:
    for m in messages:
        if m.role.value == "system":
            return m.content
    return None


def dig(data: Any, *path: Union[str, int]) -> Any:
    """Walk nested dicts/lists, returning None on any missing step."""
    cur = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(cur, list) or len(cur) <= step:
                return None
        elif not isinstance(cur, dict):
            return None
        cur = cur[step] if isinstance(step, int) else cur.get(step)
        if cur is None:
            return None
    return cur


def as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def failure(message: str, code: str, status: Optional[int] = None, **extra: Any) -> ProviderResponse:
    return ProviderResponse(success=False, error=message, error_code=code, status=status, **extra)


def not_configured(message: str) -> ProviderResponse:
    return ProviderResponse(success=False, error=message, error_code="not_configured")


def invalid_request(exc: Exception) -> ProviderResponse:
    """Bad input or bad timeout config; reported before any network call."""
    message = str(exc) or type(exc).__name__
    logger.warning(f"Rejected provider request: {message}")
    return ProviderResponse(success=False, error=f"Invalid request: {message}", error_code="invalid_request")


def cancelled_response(latency_ms: Optional[int] = None) -> ProviderResponse:
    return ProviderResponse(success=False, error=CANCELLED_MESSAGE, error_code="cancelled", latency_ms=latency_ms)


def api_error(
    data: Any,
    *,
    provider: ProviderId,
    status: int,
    fallback_message: str,
    code_field: str = "code",
) -> ProviderError:
    """Build a ProviderError from a provider error body ({"error": {...}})."""
    message = dig(data, "error", "message") or fallback_message
    code = dig(data, "error", code_field) or "api_error"
    return ProviderError(str(message), code=str(code), provider=provider.value, status=status)


def redact(text: str, secret: Optional[str]) -> str:
    return text.replace(secret, mask_key(secret)) if secret else text


def _json_body(resp: Any) -> Any:
    if not getattr(resp, "content", b""):
        return {}
    try:
        return resp.json()
    except ValueError:
        return {}


async def _race_cancel(awaitable: Any, cancel_event: asyncio.Event) -> Optional[Any]:
    """Await ``awaitable`` unless ``cancel_event`` fires first (then return None)."""
    request_task = asyncio.ensure_future(awaitable)
    cancel_task = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        if request_task in done:
            return request_task.result()
        request_task.cancel()
        await asyncio.gather(request_task, return_exceptions=True)
        return None
    finally:
        for task in (request_task, cancel_task):
            if not task.done():
                task.cancel()


# =============================================================================
# EXECUTOR
# =============================================================================


async def execute_request(
    request: ProviderRequest,
    *,
    provider: ProviderId,
    parse: ResponseParser,
    fallback_error: str,
    error_code_field: str = "code",
    secret: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> ProviderResponse:
    """POST ``request`` and normalize the outcome into a ProviderResponse."""
    if cancel_event is not None and cancel_event.is_set():
        return cancelled_response(latency_ms=0)

    try:
        timeout = timeout_seconds if timeout_seconds is not None else http_timeout_seconds()
    except (TypeError, ValueError) as e:
        return invalid_request(e)

    safe_url = redact(request.url, secret)
    logger.debug(f"[{provider.value}] {request.method} {safe_url}")

    start = time.time()

    def _elapsed() -> int:
        return int((time.time() - start) * 1000)

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            call = client.request(request.method, request.url, headers=request.headers, json=request.body)
            if cancel_event is None:
                resp = await call
            else:
                resp = await _race_cancel(call, cancel_event)
                if resp is None:
                    logger.info(f"[{provider.value}] request cancelled after {_elapsed()}ms")
                    return cancelled_response(latency_ms=_elapsed())

        latency_ms = _elapsed()
        data = _json_body(resp)

        if resp.status_code >= 400:
            raise api_error(
                data,
                provider=provider,
                status=resp.status_code,
                fallback_message=fallback_error,
                code_field=error_code_field,
            )

        content, usage = parse(data)
        logger.debug(f"[{provider.value}] {resp.status_code} in {latency_ms}ms")
        return ProviderResponse(
            success=True,
            content=content,
            usage=usage,
            status=resp.status_code,
            latency_ms=latency_ms,
            raw=data,
        )

    except ProviderError as e:
        logger.warning(f"[{provider.value}] API error {e.status} ({e.code}): {redact(e.message, secret)}")
        return failure(e.message, e.code, e.status, latency_ms=_elapsed())
    except httpx.TimeoutException as e:
        logger.warning(f"[{provider.value}] timeout after {_elapsed()}ms: {type(e).__name__}")
        return failure(f"Request timed out after {timeout:g}s", "timeout", latency_ms=_elapsed())
    except httpx.HTTPError as e:
        message = redact(str(e) or type(e).__name__, secret)
        logger.warning(f"[{provider.value}] network error: {message}")
        return failure(message, "network_error", latency_ms=_elapsed())
    except Exception as e:
        message = redact(str(e) or type(e).__name__, secret)
        logger.exception(f"[{provider.value}] unexpected adapter failure: {message}")
        return failure(message, "unknown_error", latency_ms=_elapsed())


# =============================================================================
# OPENAI-STYLE CHAT COMPLETIONS
# =============================================================================


def chat_completions_body(model: str, messages: Sequence[Message], knobs: ModelKnobs) -> Dict[str, Any]:
    """Shared body for OpenAI, DeepSeek and OpenAI-compatible endpoints."""
    body: Dict[str, Any] = {
        "model": model,
        "messages": [{"role": m.role.value, "content": m.content} for m in messages],
    }
    if knobs.max_output_tokens:
        body["max_tokens"] = knobs.max_output_tokens
    if knobs.temperature is not None:
        body["temperature"] = knobs.temperature
    if knobs.top_p is not None:
        body["top_p"] = knobs.top_p
    return body


def parse_chat_completion(data: Any) -> Tuple[str, Usage]:
    content = dig(data, "choices", 0, "message", "content") or ""
    usage = dig(data, "usage")
    if not isinstance(usage, dict):
        usage = {}
    return content, Usage(
        input_tokens=as_int(usage.get("prompt_tokens")),
        output_tokens=as_int(usage.get("completion_tokens")),
        total_tokens=as_int(usage.get("total_tokens")),
    )


def bearer_headers(api_key: Optional[str]) -> Dict[str, str]:
    return {"Content-Type": "application/json", "Authorization": f"Bearer {api_key or ''}"}
