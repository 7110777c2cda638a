# Pytest configuration for the Prompt Studio test suite
#
# Timeout strategy:
# - FAST tests: 10s (pure unit tests, no I/O)
# - MEDIUM tests: 30s (mocked HTTP, TestClient, CLI)

from __future__ import annotations

import pytest

# ---------------------------------------------------------------------------
# Timeout configuration by test file
# ---------------------------------------------------------------------------
# Maps test file patterns to timeout values (seconds)
# More specific patterns should come first

TIMEOUT_MAP = {
    # MEDIUM tests (30s) - mocked HTTP, TestClient, CLI
    "test_providers": 30,
    "test_api": 30,
    "test_cli": 30,

    # FAST tests (10s) - Pure unit tests
    "test_token_estimation": 10,
    "test_models_registry": 10,
    "test_validation": 10,
    "test_assembler": 10,
    "test_preflight": 10,
    "test_dispatcher": 10,
    "test_key_manager": 10,
}

PROVIDER_ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "GOOGLE_API_KEY",
    "DEEPSEEK_API_KEY",
    "CUSTOM_OPENAI_API_KEY",
    "CUSTOM_OPENAI_BASE_URL",
)


def pytest_collection_modifyitems(config, items):
    """Apply timeout markers based on test file names."""
    for item in items:
        test_name = item.path.stem

        timeout = 30  # default
        for pattern, t in TIMEOUT_MAP.items():
            if pattern in test_name:
                timeout = t
                break

        if item.get_closest_marker("timeout") is None:
            item.add_marker(pytest.mark.timeout(timeout))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def anyio_backend():
    # Cancellation is built on asyncio.Event.
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """No real credentials or config file leak into tests."""
    from prompt_studio.modules import config, key_manager

    for var in PROVIDER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    for var in ("STUDIO_HTTP_TIMEOUT", "STUDIO_RATE_LIMIT", "STUDIO_ALLOWED_ORIGINS", "STUDIO_CONFIG"):
        monkeypatch.delenv(var, raising=False)

    config.set_config({})
    key_manager.reset_key_manager()
    yield
    config.set_config(None)
    key_manager.reset_key_manager()
