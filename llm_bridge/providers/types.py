"""
Provider Types and Data Models

Defines enums and Pydantic models shared by the capability registry,
the probes, the message adapter and the vendor providers.
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiProtocol(str, Enum):
    """Wire protocol spoken by a vendor"""
    OPENAI = "openai"           # OpenAI and compatible APIs
    ANTHROPIC = "anthropic"     # Anthropic Messages API
    GEMINI = "gemini"           # Google Gemini API
    OLLAMA = "ollama"           # Ollama native /api/chat


class ProviderType(str, Enum):
    """Supported vendor kinds"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    XAI = "xai"
    OPENROUTER = "openrouter"
    FIREWORKS = "fireworks"
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"
    VLLM = "vllm"
    MINIMAX = "minimax"
    LOCAL_OPENAI_COMPATIBLE = "local-openai-compatible"


class InputModality(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    PDF = "pdf"
    AUDIO = "audio"
    VIDEO = "video"
    CODE = "code"
    STRUCTURED_DATA = "structured_data"


class OutputModality(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    CODE = "code"
    STRUCTURED_DATA = "structured_data"
    TOOL_CALLS = "tool_calls"


class ContentOrdering(str, Enum):
    """Ordering constraint a model places on mixed text/image content"""
    IMAGES_FIRST = "images_first"
    TEXT_FIRST = "text_first"
    ANY = "any"


class CapabilitySource(str, Enum):
    """Where a capability record came from, highest priority first"""
    USER_OVERRIDE = "user_override"
    RUNTIME_PROBE = "runtime_probe"
    API_METADATA = "api_metadata"
    STATIC_REGISTRY = "static_registry"
    NAME_HEURISTIC = "name_heuristic"

    @property
    def priority(self) -> int:
        """Lower value wins."""
        return SOURCE_PRIORITY.index(self)

    def outranks(self, other: "CapabilitySource") -> bool:
        """True when this source is strictly higher priority than ``other``."""
        return self.priority < other.priority


SOURCE_PRIORITY: List[CapabilitySource] = [
    CapabilitySource.USER_OVERRIDE,
    CapabilitySource.RUNTIME_PROBE,
    CapabilitySource.API_METADATA,
    CapabilitySource.STATIC_REGISTRY,
    CapabilitySource.NAME_HEURISTIC,
]


class TokenUsage(BaseModel):
    """Token usage information from LLM response."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["TokenUsage"]:
        """Create TokenUsage from provider-specific dict format."""
        if not data:
            return None
        prompt = data.get("prompt_tokens", data.get("input_tokens", 0)) or 0
        completion = data.get("completion_tokens", data.get("output_tokens", 0)) or 0
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=data.get("total_tokens", 0) or (prompt + completion),
        )


class ModelCapabilities(BaseModel):
    """Capability record for one (provider, endpoint, model) triple"""
    model_config = ConfigDict(protected_namespaces=())

    model_id: str = Field(..., description="Model identifier as the vendor knows it")
    provider: str = Field(..., description="Provider type value")
    display_name: Optional[str] = Field(default=None, description="Human-readable name")
    input_modalities: List[InputModality] = Field(
        default_factory=lambda: [InputModality.TEXT],
        description="Accepted input kinds, always includes text",
    )
    output_modalities: List[OutputModality] = Field(
        default_factory=lambda: [OutputModality.TEXT],
        description="Produced output kinds",
    )
    content_ordering: ContentOrdering = Field(default=ContentOrdering.ANY)
    context_window: Optional[int] = Field(default=None, description="Context window size in tokens")
    max_output_tokens: Optional[int] = Field(default=None)
    supports_streaming: bool = Field(default=True)
    supports_function_calling: Optional[bool] = Field(default=None)
    supports_json_mode: Optional[bool] = Field(default=None)
    supports_system_prompt: bool = Field(default=True)
    supports_pdf_native: bool = Field(default=False, description="Documents can be sent as-is")
    supports_pdf_as_images: bool = Field(default=False, description="Document pages can be sent as images")
    requires_base64_images: bool = Field(default=False, description="Remote image URLs are rejected")
    provider_metadata: Dict[str, Any] = Field(default_factory=dict)
    source: CapabilitySource = Field(default=CapabilitySource.NAME_HEURISTIC)
    updated_at: Optional[float] = Field(default=None, description="Unix timestamp of the last write")

    @field_validator("input_modalities", mode="after")
    @classmethod
    def _ensure_text_input(cls, value: List[InputModality]) -> List[InputModality]:
        normalized: List[InputModality] = [InputModality.TEXT]
        for modality in value:
            if modality not in normalized:
                normalized.append(modality)
        return normalized

    @property
    def supports_vision(self) -> bool:
        return InputModality.IMAGE in self.input_modalities

    @property
    def supports_pdf(self) -> bool:
        return self.supports_pdf_native or InputModality.PDF in self.input_modalities


class ProbeResult(BaseModel):
    """
    Outcome of a capability probe.

    ``success`` is True only for a definitive answer; inconclusive probes
    carry no capabilities and must never be cached.
    """
    success: bool = Field(..., description="Whether the probe produced a definitive answer")
    capabilities: Optional[Dict[str, Any]] = Field(default=None, description="Partial capabilities")
    error: Optional[str] = Field(default=None)
    source: CapabilitySource = Field(default=CapabilitySource.RUNTIME_PROBE)

    @property
    def inconclusive(self) -> bool:
        return not self.success or not self.capabilities


class ProviderCapabilities(BaseModel):
    """Static per-provider feature flags"""
    supports_streaming: bool = True
    supports_vision: bool = False
    supports_system_prompt: bool = True
    requires_api_key: bool = True
    requires_endpoint: bool = False


class ModelDefinition(BaseModel):
    """Built-in model entry (used when a vendor has no listing call)"""
    id: str = Field(..., description="Model ID (e.g., gpt-4o-mini)")
    name: str = Field(..., description="Display name")
    context_window: Optional[int] = Field(default=None)
    supports_vision: bool = Field(default=False)


class ProviderDefinition(BaseModel):
    """
    Built-in provider definition.

    Default endpoint, default model and static feature flags per vendor.
    """
    id: ProviderType = Field(..., description="Provider type")
    name: str = Field(..., description="Display name")
    protocol: ApiProtocol = Field(default=ApiProtocol.OPENAI, description="Wire protocol")
    base_url: Optional[str] = Field(default=None, description="Default endpoint; None when the caller must supply one")
    default_model: str = Field(..., description="Model used when the caller names none")
    discovery_model: Optional[str] = Field(default=None, description="Preferred model when auto-selecting")
    requires_api_key: bool = Field(default=True)
    requires_endpoint: bool = Field(default=False)
    supports_vision: bool = Field(default=False)
    supports_model_list: bool = Field(default=False, description="Supports fetching model list via API")
    builtin_models: List[ModelDefinition] = Field(
        default_factory=list,
        description="Pre-defined models for this provider"
    )

    def provider_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_vision=self.supports_vision,
            requires_api_key=self.requires_api_key,
            requires_endpoint=self.requires_endpoint,
        )


class QueryOptions(BaseModel):
    """Per-call request overrides"""
    provider: Optional[ProviderType] = Field(default=None, description="Must match the provider handling the call")
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0)
    system_prompt: Optional[str] = None
    api_key: Optional[str] = Field(default=None, exclude=True, repr=False)
    endpoint: Optional[str] = None
    selected_tab_ids: List[str] = Field(default_factory=list, description="Opaque caller context")
    stream_id: Optional[str] = None


class LLMModel(BaseModel):
    """Model entry returned by list_models"""
    id: str = Field(..., description="Model ID")
    name: str = Field(..., description="Display name")
    provider: ProviderType
    context_window: Optional[int] = None
    supports_vision: bool = False
    description: Optional[str] = None


class LLMResponse(BaseModel):
    """
    Represents a complete LLM response.

    Errors are reported through ``error`` rather than raised; streaming
    responses keep whatever text arrived before the failure.
    """
    response: str = Field(default="", description="Response text")
    tokens_in: Optional[int] = Field(default=None)
    tokens_out: Optional[int] = Field(default=None)
    model: Optional[str] = Field(default=None)
    response_time_ms: Optional[int] = Field(default=None)
    finish_reason: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None)


class StreamChunk(BaseModel):
    """
    One increment of a streaming response.

    Content chunks carry text; the last chunk of every stream has
    ``response`` set to the aggregated LLMResponse.
    """
    content: str = Field(default="", description="Text delta")
    usage: Optional[TokenUsage] = Field(default=None)
    response: Optional[LLMResponse] = Field(default=None, description="Set on the final chunk only")


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None
