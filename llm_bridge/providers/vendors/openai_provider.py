"""
OpenAI provider
"""
import re
from typing import List

from ..types import LLMModel, ProviderType
from .openai_compatible_provider import OpenAICompatibleProvider

# Reasoning-era models reject max_tokens in favour of max_completion_tokens.
_COMPLETION_TOKENS_MODELS = re.compile(r"^(o\d|gpt-5)", re.IGNORECASE)


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI Chat Completions API."""

    provider_type = ProviderType.OPENAI

    def _token_limit_field(self, model: str) -> str:
        if _COMPLETION_TOKENS_MODELS.match(model or ""):
            return "max_completion_tokens"
        return "max_tokens"

    async def list_models(self) -> List[LLMModel]:
        return self._builtin_models()
