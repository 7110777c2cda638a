"""
Prompt Studio - FastAPI Backend

Thin HTTP surface over the preflight core and the provider adapters.

Version: 1.0
Endpoints:
- POST /api/estimate: token + cost estimate for messages or raw text
- POST /api/send: dispatch to a provider adapter (rate limited per client IP)
- GET  /api/providers/status: which providers have credentials
- POST /api/preflight: full preflight for a block list
- POST /api/validate: validation issues only
- GET  /api/models: model registry grouped by provider
"""

from __future__ import annotations

# Load environment variables from .env file FIRST
import os
from pathlib import Path
from dotenv import load_dotenv

# Find the .env file (in the project root, same level as modules/)
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

import json
import math
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .config import allowed_origins, rate_limit_per_minute
from .models_registry import calculate_cost, default_providers
from .preflight import run_preflight
from .providers import (
    UnknownProviderError,
    get_adapter,
    get_configured_providers,
    provider_status,
)
from .schemas import (
    EstimateRequest,
    PreflightRequest,
    ProviderId,
    SendRequest,
    ValidateRequest,
)
from .token_estimation import confidence_for, default_output_tokens, estimate_tokens_for_messages, estimate_tokens_for_text
from .validation import is_prompt_valid, validate_prompt

# =============================================================================
# APP INITIALIZATION
# =============================================================================

RATE_LIMIT_PER_MINUTE = rate_limit_per_minute()
MOCK_OUTPUT_TOKENS = 50

# Rate limiting state (simple in-memory, per process)
_rate_limit_tracker: Dict[str, List[float]] = defaultdict(list)


def check_rate_limit(client_ip: str) -> bool:
    """Check if client has exceeded rate limit. Returns True if allowed."""
    now = time.time()
    window = 60.0  # 1 minute window

    # Clean old entries; clients with nothing left in the window are forgotten
    for ip in list(_rate_limit_tracker):
        recent = [t for t in _rate_limit_tracker[ip] if now - t < window]
        if recent:
            _rate_limit_tracker[ip] = recent
        else:
            del _rate_limit_tracker[ip]

    if len(_rate_limit_tracker.get(client_ip, [])) >= RATE_LIMIT_PER_MINUTE:
        return False

    _rate_limit_tracker[client_ip].append(now)
    return True


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


app = FastAPI(
    title="Prompt Studio API",
    description="Prompt preflight (tokens, cost, validation) and multi-provider dispatch",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)


# =============================================================================
# ENDPOINTS
# =============================================================================


@app.get("/")
async def root() -> Dict[str, Any]:
    return {
        "name": "Prompt Studio API",
        "version": "1.0.0",
        "status": "healthy",
        "configuredProviders": [p.value for p in get_configured_providers()],
    }


@app.post("/api/estimate")
async def estimate(body: EstimateRequest) -> Any:
    if not body.provider or not body.model:
        return _error(400, "Missing required fields: provider, model")
    if body.messages is None and body.text is None:
        return _error(400, "Must provide either messages or text")

    try:
        provider = ProviderId(body.provider)
    except ValueError:
        return _error(400, f"Unknown provider: {body.provider}")

    if body.messages is not None:
        input_tokens = estimate_tokens_for_messages(body.messages, provider)
    else:
        input_tokens = estimate_tokens_for_text(body.text, provider)

    output_tokens = default_output_tokens(input_tokens)
    cost = calculate_cost(body.model, input_tokens, output_tokens)

    return {
        "success": True,
        "estimate": {
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
            "totalTokens": input_tokens + output_tokens,
            "confidence": confidence_for(input_tokens).value,
        },
        "cost": cost.model_dump(by_alias=True, mode="json"),
    }


@app.post("/api/send")
async def send(body: SendRequest, request: Request) -> Any:
    client_ip = _client_ip(request)
    if not check_rate_limit(client_ip):
        logger.warning(f"Rate limit exceeded for {client_ip}")
        return _error(429, "Rate limit exceeded. Please wait a moment.")

    if not body.provider or not body.model or body.messages is None:
        return _error(400, "Missing required fields: provider, model, messages")

    try:
        adapter = get_adapter(body.provider)
    except UnknownProviderError as e:
        return _error(400, str(e))

    if not adapter.is_configured():
        # Unconfigured providers answer with a canned response so the studio stays usable.
        serialized = json.dumps([m.model_dump(mode="json") for m in body.messages], separators=(",", ":"))
        input_tokens = math.ceil(len(serialized) / 4)
        logger.info(f"Provider {adapter.id.value} not configured; returning mock response")
        return {
            "success": True,
            "content": (
                f"[Mock Response - {adapter.id.value} not configured]\n\n"
                "This is a simulated response. To get real responses, configure your "
                f"{adapter.id.value.upper()} API key in .env.\n\n"
                f"Your prompt was received with {len(body.messages)} message(s)."
            ),
            "usage": {
                "inputTokens": input_tokens,
                "outputTokens": MOCK_OUTPUT_TOKENS,
                "totalTokens": input_tokens + MOCK_OUTPUT_TOKENS,
            },
            "mock": True,
        }

    response = await adapter.send(body.model, body.messages, body.knobs)
    return response.model_dump(by_alias=True, exclude_none=True, mode="json")


@app.get("/api/providers/status")
async def providers_status() -> Dict[str, Any]:
    return {
        "success": True,
        "configured": [p.value for p in get_configured_providers()],
        "providers": provider_status(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/preflight")
async def preflight(body: PreflightRequest) -> Any:
    if not body.provider or not body.model:
        return _error(400, "Missing required fields: provider, model")
    try:
        provider = ProviderId(body.provider)
    except ValueError:
        return _error(400, f"Unknown provider: {body.provider}")

    result = run_preflight(body.blocks, provider, body.model, body.knobs, body.output_tokens)
    return result.model_dump(by_alias=True, exclude_none=True, mode="json")


@app.post("/api/validate")
async def validate(body: ValidateRequest) -> Dict[str, Any]:
    issues = validate_prompt(body.blocks)
    return {
        "issues": [i.model_dump(by_alias=True, exclude_none=True, mode="json") for i in issues],
        "valid": is_prompt_valid(body.blocks),
    }


@app.get("/api/models")
async def models() -> Dict[str, Any]:
    return {
        "success": True,
        "providers": [p.model_dump(by_alias=True, exclude_none=True, mode="json") for p in default_providers()],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("STUDIO_HOST", "127.0.0.1"), port=int(os.getenv("STUDIO_PORT", "8000")))
