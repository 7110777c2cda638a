"""
Prompt Studio - Key Manager Module

Resolves provider credentials from the environment and reports which
providers are usable. Secrets are read at call time and never logged; status
output only shows the last four characters.

Storage and encryption of per-user keys belong to the surrounding
application: callers holding a decrypted secret pass it to the adapter
directly instead.

Version: 1.0
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger

from .config import get_config
from .schemas import ProviderId

DEFAULT_ENV_KEYS: Dict[str, str] = {
    ProviderId.ANTHROPIC.value: "ANTHROPIC_API_KEY",
    ProviderId.OPENAI.value: "OPENAI_API_KEY",
    ProviderId.GEMINI.value: "GOOGLE_API_KEY",
    ProviderId.DEEPSEEK.value: "DEEPSEEK_API_KEY",
    ProviderId.OPENAI_COMPATIBLE.value: "CUSTOM_OPENAI_API_KEY",
}

DEFAULT_BASE_URL_ENV = "CUSTOM_OPENAI_BASE_URL"


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class KeyStatus:
    """Status of a provider credential"""
    provider: str
    env_var: str
    key_suffix: str  # Last 4 chars for identification
    is_set: bool
    last_checked: datetime


def mask_key(key: Optional[str]) -> str:
    return f"****{key[-4:]}" if key else "NONE"


# =============================================================================
# KEY MANAGER
# =============================================================================


class KeyManager:
    """
    Resolves API keys for the LLM providers.

    Environment variable names default to DEFAULT_ENV_KEYS and can be
    overridden per provider in the ``env_keys`` section of config.yaml.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = get_config() if config is None else config
        self.env_keys_config = self.config.get("env_keys") or {}
        self.providers_config = self.config.get("providers") or {}

    def env_var_for(self, provider: ProviderId | str) -> str:
        key = ProviderId(provider).value
        return self.env_keys_config.get(key, DEFAULT_ENV_KEYS[key])

    def get_api_key(self, provider: ProviderId | str) -> Optional[str]:
        value = os.environ.get(self.env_var_for(provider), "").strip()
        return value or None

    def base_url_env_var(self, provider: ProviderId | str) -> str:
        section = self.providers_config.get(ProviderId(provider).value) or {}
        return section.get("base_url_env", DEFAULT_BASE_URL_ENV)

    def get_base_url(self, provider: ProviderId | str) -> Optional[str]:
        value = os.environ.get(self.base_url_env_var(provider), "").strip()
        return value or None

    def check_all_keys(self) -> Dict[str, bool]:
        """Check presence of every provider key."""
        return {p.value: self.get_api_key(p) is not None for p in ProviderId}

    def status(self) -> Dict[str, KeyStatus]:
        statuses: Dict[str, KeyStatus] = {}
        for provider in ProviderId:
            key = self.get_api_key(provider)
            statuses[provider.value] = KeyStatus(
                provider=provider.value,
                env_var=self.env_var_for(provider),
                key_suffix=key[-4:] if key else "NONE",
                is_set=key is not None,
                last_checked=datetime.now(),
            )
        return statuses

    def log_summary(self) -> None:
        for provider, status in self.status().items():
            if status.is_set:
                logger.info(f"✓ {provider.upper()} key found (****{status.key_suffix})")
            else:
                logger.warning(f"✗ {provider.upper()} key not set ({status.env_var})")

    def get_status_report(self) -> str:
        """Generate a status report for all providers."""
        lines = ["# API Key Status Report", f"Generated: {datetime.now().isoformat()}", ""]

        for provider, status in self.status().items():
            icon = "✅" if status.is_set else "❌"
            lines.append(f"## {provider.upper()} {icon}")
            lines.append(f"- Env: {status.env_var}")
            lines.append(f"- Key: ****{status.key_suffix}")
            if provider == ProviderId.OPENAI_COMPATIBLE.value:
                lines.append(f"- Base URL: {self.get_base_url(provider) or 'not set'}")
            lines.append("")

        return "\n".join(lines)


# =============================================================================
# SINGLETON INSTANCE
# =============================================================================


_key_manager: Optional[KeyManager] = None


def get_key_manager() -> KeyManager:
    """Get or create the singleton KeyManager instance."""
    global _key_manager
    if _key_manager is None:
        _key_manager = KeyManager()
    return _key_manager


def reset_key_manager() -> None:
    global _key_manager
    _key_manager = None
