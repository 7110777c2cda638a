# Prompt Studio Modules
# Version: 1.0 - Preflight core + provider adapters

# Pydantic schemas
from .schemas import (
    BlockType,
    Confidence,
    ContextWindowUsage,
    CostEstimate,
    Message,
    MessageRole,
    ModelConfig,
    ModelKnobs,
    PreflightResult,
    PromptBlock,
    ProviderConfig,
    ProviderId,
    ProviderPayload,
    ProviderRequest,
    ProviderResponse,
    TokenEstimate,
    Usage,
    ValidationIssue,
    ValidationSeverity,
)

# Preflight core
from .token_estimation import (
    estimate_output_tokens,
    estimate_prompt_tokens,
    estimate_tokens_for_block,
    estimate_tokens_for_message,
    estimate_tokens_for_messages,
    estimate_tokens_for_text,
    format_token_count,
)
from .models_registry import (
    MODEL_REGISTRY,
    calculate_cost,
    filter_supported_knobs,
    get_context_window_usage,
    get_default_model,
    get_model_by_id,
    get_models_by_provider,
)
from .validation import apply_suggested_fix, get_suggested_fix, is_prompt_valid, validate_prompt
from .assembler import assemble_prompt_text, blocks_to_messages
from .preflight import run_preflight

# Providers
from .providers import (
    ALL_PROVIDERS,
    ProviderAdapter,
    ProviderError,
    UnknownProviderError,
    get_adapter,
    get_configured_providers,
    is_provider_configured,
    provider_status,
)
from .key_manager import KeyManager, get_key_manager

__version__ = "1.0.0"
