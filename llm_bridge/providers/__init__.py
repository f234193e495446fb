"""
LLM Provider Abstraction Layer

Normalizes a dozen vendor APIs behind one provider interface, with a
capability registry that learns what each model accepts.
"""
from .types import (
    ApiProtocol,
    CapabilitySource,
    ContentOrdering,
    InputModality,
    LLMModel,
    LLMResponse,
    ModelCapabilities,
    OutputModality,
    ProbeResult,
    ProviderCapabilities,
    ProviderType,
    QueryOptions,
    StreamChunk,
    TokenUsage,
    ValidationResult,
)
from .content import (
    ChatMessage,
    DocumentBlock,
    ImageBlock,
    ImageSource,
    TextBlock,
    image_block,
    image_url_block,
    text_block,
)
from .exceptions import (
    ConfigurationError,
    LLMBridgeError,
    ProviderError,
    ProviderHTTPError,
    UnknownProviderError,
)
from .capability_registry import CapabilityRegistry
from .capability_probes import CapabilityProbeAdapter, CapabilityProber, ProbeAdapterRegistry
from .message_adapter import adapt_content, adapt_messages
from .base import BaseProvider
from .factory import ProviderFactory, get_default_factory
from .discovery import ModelDiscovery

__all__ = [
    "ApiProtocol",
    "CapabilitySource",
    "ContentOrdering",
    "InputModality",
    "LLMModel",
    "LLMResponse",
    "ModelCapabilities",
    "OutputModality",
    "ProbeResult",
    "ProviderCapabilities",
    "ProviderType",
    "QueryOptions",
    "StreamChunk",
    "TokenUsage",
    "ValidationResult",
    "ChatMessage",
    "DocumentBlock",
    "ImageBlock",
    "ImageSource",
    "TextBlock",
    "image_block",
    "image_url_block",
    "text_block",
    "ConfigurationError",
    "LLMBridgeError",
    "ProviderError",
    "ProviderHTTPError",
    "UnknownProviderError",
    "CapabilityRegistry",
    "CapabilityProbeAdapter",
    "CapabilityProber",
    "ProbeAdapterRegistry",
    "adapt_content",
    "adapt_messages",
    "BaseProvider",
    "ProviderFactory",
    "get_default_factory",
    "ModelDiscovery",
]
