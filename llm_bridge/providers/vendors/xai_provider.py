"""
xAI (Grok) provider

xAI serves the OpenAI chat completions format at ``https://api.x.ai/v1``.
"""
from typing import List

from ..types import LLMModel, ProviderType
from .openai_compatible_provider import OpenAICompatibleProvider


class XAIProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.XAI

    async def list_models(self) -> List[LLMModel]:
        return self._builtin_models()
