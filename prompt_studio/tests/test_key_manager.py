from __future__ import annotations

import pytest

from prompt_studio.modules.config import http_timeout_seconds, load_config, rate_limit_per_minute
from prompt_studio.modules.key_manager import KeyManager, get_key_manager, mask_key
from prompt_studio.modules.schemas import ProviderId


def test_keys_resolve_from_default_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    km = KeyManager(config={})
    assert km.get_api_key(ProviderId.GEMINI) is None

    monkeypatch.setenv("GOOGLE_API_KEY", "  g-key  ")
    assert km.get_api_key("gemini") == "g-key"


def test_blank_key_counts_as_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "   ")
    assert KeyManager(config={}).get_api_key("openai") is None


def test_env_var_names_are_configurable(monkeypatch: pytest.MonkeyPatch) -> None:
    km = KeyManager(
        config={
            "env_keys": {"anthropic": "MY_CLAUDE_KEY"},
            "providers": {"openai_compatible": {"base_url_env": "LOCAL_LLM_URL"}},
        }
    )
    monkeypatch.setenv("MY_CLAUDE_KEY", "ck")
    monkeypatch.setenv("LOCAL_LLM_URL", "http://localhost:1234/v1")

    assert km.get_api_key("anthropic") == "ck"
    assert km.get_base_url("openai_compatible") == "http://localhost:1234/v1"


def test_status_report_masks_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-deepseek-secret-abcd")
    km = KeyManager(config={})

    report = km.get_status_report()
    assert "sk-deepseek-secret" not in report
    assert "****abcd" in report
    assert km.check_all_keys()["deepseek"] is True
    assert km.status()["openai"].key_suffix == "NONE"


def test_mask_key() -> None:
    assert mask_key("abcdef1234") == "****1234"
    assert mask_key(None) == "NONE"


def test_singleton() -> None:
    assert get_key_manager() is get_key_manager()


def test_load_config_missing_file_returns_empty(tmp_path) -> None:
    assert load_config(str(tmp_path / "nope.yaml")) == {}


def test_load_config_reads_yaml(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("http:\n  timeout_seconds: 30\napi:\n  rate_limit_per_minute: 3\n", encoding="utf-8")

    config = load_config(str(path))

    assert http_timeout_seconds(config) == 30.0
    assert rate_limit_per_minute(config) == 3


def test_settings_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STUDIO_HTTP_TIMEOUT", "12.5")
    monkeypatch.setenv("STUDIO_RATE_LIMIT", "99")
    assert http_timeout_seconds({"http": {"timeout_seconds": 30}}) == 12.5
    assert rate_limit_per_minute({}) == 99
