"""
Prompt Studio - Configuration

Loads ``config.yaml`` (path overridable with STUDIO_CONFIG) and exposes the
few settings the core needs. Individual settings can be overridden with
``STUDIO_*`` environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

DEFAULT_CONFIG_PATH = "config.yaml"

DEFAULT_HTTP_TIMEOUT_SECONDS = 120.0
DEFAULT_RATE_LIMIT_PER_MINUTE = 10
DEFAULT_ALLOWED_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]

_config: Optional[Dict[str, Any]] = None


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    config_file = Path(config_path or os.getenv("STUDIO_CONFIG", DEFAULT_CONFIG_PATH))

    if not config_file.exists():
        logger.debug(f"Config file not found: {config_file}. Using defaults.")
        return {}

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        logger.debug(f"Loaded configuration from: {config_file}")
        return config if isinstance(config, dict) else {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading config: {e}")
        return {}


def get_config() -> Dict[str, Any]:
    """Get or load the process-wide configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[Dict[str, Any]]) -> None:
    """Replace the process-wide configuration (None forces a reload)."""
    global _config
    _config = config


def _section(config: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    cfg = get_config() if config is None else config
    value = cfg.get(name) or {}
    return value if isinstance(value, dict) else {}


def http_timeout_seconds(config: Optional[Dict[str, Any]] = None) -> float:
    raw = os.getenv("STUDIO_HTTP_TIMEOUT", "").strip()
    if raw:
        return float(raw)
    return float(_section(config, "http").get("timeout_seconds", DEFAULT_HTTP_TIMEOUT_SECONDS))


def rate_limit_per_minute(config: Optional[Dict[str, Any]] = None) -> int:
    raw = os.getenv("STUDIO_RATE_LIMIT", "").strip()
    if raw:
        return int(raw)
    return int(_section(config, "api").get("rate_limit_per_minute", DEFAULT_RATE_LIMIT_PER_MINUTE))


def allowed_origins(config: Optional[Dict[str, Any]] = None) -> List[str]:
    raw = os.getenv("STUDIO_ALLOWED_ORIGINS", "").strip()
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    origins = _section(config, "api").get("allowed_origins")
    return list(origins) if origins else list(DEFAULT_ALLOWED_ORIGINS)
