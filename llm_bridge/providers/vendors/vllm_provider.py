"""
vLLM and LM Studio providers

Both are self-hosted OpenAI-compatible servers. vLLM requires an explicit
endpoint; LM Studio defaults to ``http://localhost:1234``.
"""
from ..types import ProviderType
from .openai_compatible_provider import OpenAICompatibleProvider


class VLLMProvider(OpenAICompatibleProvider):
    """vLLM server; vision models such as Qwen-VL need images before text."""

    provider_type = ProviderType.VLLM


class LMStudioProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.LMSTUDIO
