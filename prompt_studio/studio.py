#!/usr/bin/env python3
"""
Prompt Studio CLI v1.0

Preflight prompt block lists (tokens, cost, context window, validation) and
send them to any configured provider from the terminal.

Usage:
    python studio.py estimate blocks.json --provider openai --model gpt-4o
    python studio.py validate blocks.json                  # exit 1 on errors
    python studio.py preflight blocks.json --model o1 --provider openai
    python studio.py send blocks.json --provider anthropic --temperature 0.2
    python studio.py status                                # key report
    python studio.py serve --port 8000                     # HTTP API

Block files hold a JSON array of blocks (camelCase or snake_case keys).

Version: 1.0
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

# Add modules to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loguru import logger
from pydantic import ValidationError

from modules.assembler import assemble_prompt_text, blocks_to_messages
from modules.config import load_config, set_config
from modules.key_manager import get_key_manager, reset_key_manager
from modules.models_registry import DEFAULT_MODEL_ID, calculate_cost, get_model_by_id
from modules.preflight import run_preflight
from modules.providers import UnknownProviderError, get_adapter
from modules.schemas import ModelKnobs, PromptBlock, ValidationSeverity
from modules.token_estimation import estimate_prompt_tokens, format_token_count
from modules.validation import validate_prompt

SEVERITY_ICONS = {
    ValidationSeverity.ERROR: "❌",
    ValidationSeverity.WARNING: "⚠️",
    ValidationSeverity.INFO: "ℹ️",
}


# Configure loguru
def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """Configure logging with loguru."""
    logger.remove()  # Remove default handler

    # Console handler
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    # File handler
    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
        )


def load_blocks(path: str) -> List[PromptBlock]:
    """Read a JSON array of prompt blocks."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of blocks")
    return [PromptBlock.model_validate(item) for item in data]


def _resolve_model(args: argparse.Namespace) -> str:
    model = args.model or DEFAULT_MODEL_ID
    config = get_model_by_id(model)
    if config is not None and args.provider is None:
        args.provider = config.provider.value
    if args.provider is None:
        args.provider = "anthropic"
    return model


def _knobs_from_args(args: argparse.Namespace) -> ModelKnobs:
    return ModelKnobs(
        temperature=getattr(args, "temperature", None),
        top_p=getattr(args, "top_p", None),
        max_output_tokens=getattr(args, "max_tokens", None),
        reasoning_effort=getattr(args, "reasoning_effort", None),
        response_format=getattr(args, "response_format", None),
    )


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_estimate(args: argparse.Namespace) -> int:
    blocks = load_blocks(args.blocks)
    model = _resolve_model(args)
    estimate = estimate_prompt_tokens(blocks, args.provider, output_tokens=args.output_tokens)
    cost = calculate_cost(model, estimate.input_tokens, estimate.output_tokens)

    print(f"Model:      {model} ({args.provider})")
    print(f"Input:      {format_token_count(estimate.input_tokens)} tokens")
    print(f"Output:     {format_token_count(estimate.output_tokens)} tokens")
    print(f"Total:      {format_token_count(estimate.total_tokens)} tokens ({estimate.confidence.value} confidence)")
    print(f"Cost:       ${cost.total_cost:.4f} {cost.currency}")
    if args.verbose and estimate.breakdown:
        for block_id, tokens in estimate.breakdown.items():
            print(f"  - {block_id}: {tokens}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    blocks = load_blocks(args.blocks)
    issues = validate_prompt(blocks)

    if not issues:
        print("✅ No issues found")
        return 0

    for issue in issues:
        scope = f" [{issue.block_id}]" if issue.block_id else ""
        print(f"{SEVERITY_ICONS[issue.severity]} {issue.title}{scope}: {issue.description}")
        if issue.suggestion:
            print(f"   → {issue.suggestion}")

    return 1 if any(i.severity == ValidationSeverity.ERROR for i in issues) else 0


def cmd_preflight(args: argparse.Namespace) -> int:
    blocks = load_blocks(args.blocks)
    model = _resolve_model(args)
    result = run_preflight(blocks, args.provider, model, _knobs_from_args(args), args.output_tokens)

    if args.json:
        print(json.dumps(result.model_dump(by_alias=True, exclude_none=True, mode="json"), indent=2))
    else:
        print(assemble_prompt_text(blocks))
        print("-" * 60)
        est = result.token_estimate
        print(f"Tokens:  {format_token_count(est.input_tokens)} in / {format_token_count(est.output_tokens)} out")
        print(f"Cost:    ${result.cost_estimate.total_cost:.4f}")
        print(f"Context: {result.context_usage.percentage:.1f}% of {format_token_count(result.context_usage.total)}")
        print(f"Issues:  {len(result.issues)} ({'ok to send' if result.valid else 'blocked'})")
    return 0 if result.valid else 1


async def _send(args: argparse.Namespace) -> int:
    blocks = load_blocks(args.blocks)
    model = _resolve_model(args)

    try:
        adapter = get_adapter(args.provider)
    except UnknownProviderError as e:
        logger.error(str(e))
        return 2

    response = await adapter.send(model, blocks_to_messages(blocks), _knobs_from_args(args))
    if not response.success:
        logger.error(f"{adapter.display_name}: {response.error} ({response.error_code})")
        return 1

    print(response.content)
    if response.usage:
        logger.info(
            f"{response.usage.input_tokens} in / {response.usage.output_tokens} out "
            f"in {response.latency_ms}ms"
        )
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    try:
        return asyncio.run(_send(args))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


def cmd_status(args: argparse.Namespace) -> int:
    print(get_key_manager().get_status_report())
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("modules.api:app", host=args.host, port=args.port, reload=False)
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prompt Studio CLI v1.0",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  ANTHROPIC_API_KEY       - For Claude models
  OPENAI_API_KEY          - For GPT / o-series models
  GOOGLE_API_KEY          - For Gemini models
  DEEPSEEK_API_KEY        - For DeepSeek models
  CUSTOM_OPENAI_API_KEY   - Key for an OpenAI-compatible endpoint
  CUSTOM_OPENAI_BASE_URL  - Base URL for that endpoint
""",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose/debug output")
    parser.add_argument("--log-file", type=str, help="Path to log file (optional)")
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument("--version", action="version", version="Prompt Studio v1.0")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def with_model(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("blocks", type=str, help="Path to a JSON array of prompt blocks")
        p.add_argument("--provider", "-p", type=str, default=None, help="Provider id (default: the model's provider)")
        p.add_argument("--model", "-m", type=str, default=None, help=f"Model id (default: {DEFAULT_MODEL_ID})")
        p.add_argument("--output-tokens", type=int, default=None, help="Expected output tokens (default: 30%% of input)")
        return p

    def with_knobs(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("--temperature", type=float, default=None)
        p.add_argument("--top-p", type=float, default=None)
        p.add_argument("--max-tokens", type=int, default=None)
        p.add_argument("--reasoning-effort", choices=["low", "medium", "high"], default=None)
        p.add_argument("--response-format", choices=["text", "json", "markdown"], default=None)
        return p

    with_model(subparsers.add_parser("estimate", help="Token and cost estimate"))

    validate_parser = subparsers.add_parser("validate", help="Run validation rules (exit 1 on errors)")
    validate_parser.add_argument("blocks", type=str, help="Path to a JSON array of prompt blocks")

    preflight_parser = with_knobs(with_model(subparsers.add_parser("preflight", help="Full preflight report")))
    preflight_parser.add_argument("--json", action="store_true", help="Print the raw preflight result")

    with_knobs(with_model(subparsers.add_parser("send", help="Send the assembled prompt to a provider")))

    subparsers.add_parser("status", help="Show provider key status (masked)")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


COMMANDS = {
    "estimate": cmd_estimate,
    "validate": cmd_validate,
    "preflight": cmd_preflight,
    "send": cmd_send,
    "status": cmd_status,
    "serve": cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    if args.config:
        set_config(load_config(args.config))
        reset_key_manager()

    if not args.command:
        parser.print_help()
        return 0

    try:
        return COMMANDS[args.command](args)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"❌ {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
