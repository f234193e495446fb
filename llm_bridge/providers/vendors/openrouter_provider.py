"""
OpenRouter provider

OpenAI-compatible aggregator. Requests carry attribution headers and the
model listing publishes per-model input modalities.
"""
from typing import Any, Dict, List, Optional

from .. import transport
from ..types import LLMModel, ProviderType
from .openai_compatible_provider import OpenAICompatibleProvider

APP_REFERER = "https://github.com/llm-bridge/llm-bridge"
APP_TITLE = "llm-bridge"


class OpenRouterProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.OPENROUTER

    def _headers(self, api_key: Optional[str]) -> Dict[str, str]:
        headers = transport.bearer_headers(api_key)
        headers["HTTP-Referer"] = APP_REFERER
        headers["X-Title"] = APP_TITLE
        return headers

    def _model_from_listing(self, entry: Dict[str, Any]) -> Optional[LLMModel]:
        model_id = entry.get("id")
        if not model_id:
            return None
        architecture = entry.get("architecture") or {}
        modalities = architecture.get("input_modalities") or []
        return LLMModel(
            id=model_id,
            name=entry.get("name") or model_id,
            provider=self.provider_type,
            context_window=entry.get("context_length"),
            supports_vision="image" in modalities,
            description=entry.get("description"),
        )

    async def list_models(self) -> List[LLMModel]:
        """Live listing with the curated list as fallback."""
        return await self._fetch_models_with_fallback(self._fetch_listing)
