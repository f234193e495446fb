"""
Vendor providers

This package contains the wire codecs for each supported vendor.
"""
from .openai_compatible_provider import OpenAICompatibleProvider
from .openai_provider import OpenAIProvider
from .anthropic_provider import AnthropicProvider
from .gemini_provider import GeminiProvider
from .xai_provider import XAIProvider
from .openrouter_provider import OpenRouterProvider
from .fireworks_provider import FireworksProvider
from .ollama_provider import OllamaProvider
from .vllm_provider import VLLMProvider, LMStudioProvider
from .minimax_provider import MinimaxProvider

__all__ = [
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "XAIProvider",
    "OpenRouterProvider",
    "FireworksProvider",
    "OllamaProvider",
    "VLLMProvider",
    "LMStudioProvider",
    "MinimaxProvider",
]
