"""
Prompt Studio - Core Data Structures (Pydantic Schemas)
Version: 1.0

Defines the data models shared by the preflight engine and provider adapters:
- PromptBlock: A titled, typed unit of prompt content
- Message: Normalized system/user/assistant turn consumed by every adapter
- ModelKnobs: Optional generation parameters
- ModelConfig: Static registry entry (context window, pricing, knobs)
- ValidationIssue: Severity-tagged preflight finding
- ProviderRequest / ProviderResponse: Adapter wire envelope and normalized result

JSON field names follow the studio's camelCase convention through aliases;
Python code uses the snake_case attribute names.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================


class BlockType(str, Enum):
    """Type tag of a prompt block."""

    SYSTEM = "system"
    ROLE = "role"
    GOAL = "goal"
    CONSTRAINTS = "constraints"
    OUTPUT_FORMAT = "output_format"
    EXAMPLES = "examples"
    TOOLS = "tools"
    EVALUATION = "evaluation"
    ENVIRONMENT = "environment"
    UI_AESTHETIC = "ui_aesthetic"
    ACCESSIBILITY = "accessibility"
    TESTING = "testing"
    DEPLOYMENT = "deployment"
    CUSTOM = "custom"


# Block types folded into the single outgoing system message.
SYSTEM_CLASS_BLOCK_TYPES = frozenset(
    {BlockType.SYSTEM, BlockType.ROLE, BlockType.CONSTRAINTS, BlockType.ENVIRONMENT}
)


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ProviderId(str, Enum):
    """Identifiers of the supported LLM providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    OPENAI_COMPATIBLE = "openai_compatible"


class ValidationSeverity(str, Enum):
    """Severity of a preflight validation issue."""

    ERROR = "error"  # Caller should block the send
    WARNING = "warning"
    INFO = "info"  # Advisory


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReasoningEffort(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ToolChoice(str, Enum):
    AUTO = "auto"
    REQUIRED = "required"
    NONE = "none"


class ResponseFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"


# =============================================================================
# PROMPT BLOCKS & MESSAGES
# =============================================================================


class PromptBlock(_CamelModel):
    """
    A titled, typed unit of prompt content.

    Disabled blocks are excluded from every downstream computation. The order
    of blocks in a list defines merge order and assembled-prompt order.
    """

    id: str = Field(..., min_length=1, description="Identifier, unique within a block list")
    type: BlockType = Field(default=BlockType.CUSTOM, description="Block type tag")
    title: str = Field(default="", description="Heading shown above the content")
    content: str = Field(default="", description="Free-text prompt content")
    enabled: bool = Field(default=True)
    locked: bool = Field(default=False)
    collapsed: bool = Field(default=False)
    metadata: Optional[Dict[str, Any]] = None
    token_count: Optional[int] = Field(default=None, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def _unknown_types_are_custom(cls, v: Any) -> Any:
        if isinstance(v, BlockType):
            return v
        try:
            return BlockType(str(v))
        except ValueError:
            return BlockType.CUSTOM

    @field_validator("title", "content", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class Message(_CamelModel):
    """Normalized intermediate message consumed by every provider adapter."""

    role: MessageRole
    content: str = ""


# =============================================================================
# MODEL CONFIGURATION
# =============================================================================


class ModelKnobs(_CamelModel):
    """
    Open-ended generation parameters.

    Every knob is optional; a model only honors the subset listed in its
    registry entry. Unknown knobs are kept as extra attributes.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_output_tokens: Optional[int] = Field(default=None, gt=0)
    reasoning_effort: Optional[ReasoningEffort] = None
    tool_choice: Optional[ToolChoice] = None
    response_format: Optional[ResponseFormat] = None

    def without(self, knob_names: List[str]) -> "ModelKnobs":
        """Return a copy with the named knobs (camelCase registry names) cleared."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        for name in knob_names:
            data.pop(name, None)
        return ModelKnobs.model_validate(data)


class ModelConfig(_CamelModel):
    """Static registry entry for one model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    provider: ProviderId
    name: str
    display_name: str
    context_window: int = Field(..., gt=0, description="Context window in tokens")
    input_price_per_million: float = Field(..., ge=0.0, description="USD per 1M input tokens")
    output_price_per_million: float = Field(..., ge=0.0, description="USD per 1M output tokens")
    supported_knobs: Tuple[str, ...] = Field(default_factory=tuple)
    capabilities: Tuple[str, ...] = Field(default_factory=tuple)
    is_default: bool = False


class ProviderConfig(_CamelModel):
    id: ProviderId
    display_name: str
    enabled: bool = True
    models: List[ModelConfig] = Field(default_factory=list)
    base_url: Optional[str] = None


# =============================================================================
# ESTIMATION MODELS
# =============================================================================


class TokenEstimate(_CamelModel):
    """Heuristic token estimate for a prompt."""

    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    total_tokens: int = Field(..., ge=0)
    confidence: Confidence
    breakdown: Optional[Dict[str, int]] = Field(
        default=None, description="Token count per block id"
    )


class CostEstimate(_CamelModel):
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0
    currency: str = "USD"


class ContextWindowUsage(_CamelModel):
    used: int = 0
    total: int = 0
    percentage: float = Field(default=0.0, ge=0.0, le=100.0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================


class ValidationIssue(_CamelModel):
    """
    A single preflight finding.

    Issues are recomputed on every block-list change and never persisted.
    """

    id: str = Field(..., description="Rule-derived issue id, e.g. 'injection-<blockId>'")
    severity: ValidationSeverity
    title: str
    description: str
    block_id: Optional[str] = Field(default=None, description="Block the issue is scoped to")
    suggestion: Optional[str] = None
    auto_fixable: bool = False


# =============================================================================
# PROVIDER WIRE MODELS
# =============================================================================


class ProviderRequest(_CamelModel):
    """Provider-specific HTTP request built by an adapter."""

    url: str
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Dict[str, Any] = Field(default_factory=dict)


class Usage(_CamelModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class ProviderResponse(_CamelModel):
    """Normalized result of a provider call. Failures are values, never raised."""

    success: bool
    content: Optional[str] = None
    usage: Optional[Usage] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    status: Optional[int] = None
    latency_ms: Optional[int] = Field(default=None, ge=0)
    raw: Optional[Any] = None
    mock: bool = False

    @property
    def cancelled(self) -> bool:
        return not self.success and self.error_code == "cancelled"


class ProviderPayload(_CamelModel):
    provider: ProviderId
    model: str
    messages: List[Message] = Field(default_factory=list)
    knobs: ModelKnobs = Field(default_factory=ModelKnobs)


class PreflightResult(_CamelModel):
    """Everything the studio shows before a send is permitted."""

    valid: bool
    issues: List[ValidationIssue] = Field(default_factory=list)
    payload: ProviderPayload
    token_estimate: TokenEstimate
    cost_estimate: CostEstimate
    context_usage: ContextWindowUsage


# =============================================================================
# API REQUEST MODELS
# =============================================================================
# Required fields are Optional here so the API can answer 400 with its own
# message instead of a generic 422.


class EstimateRequest(_CamelModel):
    provider: Optional[str] = None
    model: Optional[str] = None
    messages: Optional[List[Message]] = None
    text: Optional[str] = None


class SendRequest(_CamelModel):
    provider: Optional[str] = None
    model: Optional[str] = None
    messages: Optional[List[Message]] = None
    knobs: Optional[ModelKnobs] = None


class PreflightRequest(_CamelModel):
    blocks: List[PromptBlock] = Field(default_factory=list)
    provider: Optional[str] = None
    model: Optional[str] = None
    knobs: Optional[ModelKnobs] = None
    output_tokens: Optional[int] = Field(default=None, ge=0)


class ValidateRequest(_CamelModel):
    blocks: List[PromptBlock] = Field(default_factory=list)
