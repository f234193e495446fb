"""
Fireworks AI provider

Inference uses the OpenAI-compatible ``/inference/v1`` API; model listing
uses the account API, which only reports deployable models as ``READY``.
"""
import logging
from typing import List, Optional

from .. import transport
from ..types import LLMModel, ProviderType, ValidationResult
from .openai_compatible_provider import OpenAICompatibleProvider
from .utils import display_name_from_id

logger = logging.getLogger(__name__)

FIREWORKS_ACCOUNTS_API = "https://api.fireworks.ai/v1/accounts"
DEFAULT_ACCOUNT_ID = "fireworks"


class FireworksProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.FIREWORKS

    def __init__(self, api_key: Optional[str] = None, endpoint: Optional[str] = None,
                 account_id: str = DEFAULT_ACCOUNT_ID, **kwargs):
        super().__init__(api_key, endpoint, **kwargs)
        self.account_id = account_id

    def set_account_id(self, account_id: str) -> None:
        self.account_id = account_id

    async def _fetch_account_models(self) -> List[LLMModel]:
        data = await self._get_json(
            f"{FIREWORKS_ACCOUNTS_API}/{self.account_id}/models",
            headers=transport.bearer_headers(self.api_key),
        )
        models = []
        for entry in data.get("models", []) or []:
            name = entry.get("name")
            if not name:
                continue
            state = entry.get("state")
            if state and state != "READY":
                continue
            models.append(LLMModel(
                id=name,
                name=entry.get("displayName") or display_name_from_id(name),
                provider=self.provider_type,
                context_window=entry.get("contextLength"),
                supports_vision=bool(entry.get("supportsImageInput")),
                description=entry.get("description"),
            ))
        return models

    async def list_models(self) -> List[LLMModel]:
        if not self.api_key:
            logger.warning("Fireworks API key not set, returning empty model list")
            return []
        try:
            return await self._fetch_account_models()
        except Exception as e:
            logger.warning(f"Failed to fetch Fireworks models: {e}")
            return []

    async def validate(self) -> ValidationResult:
        return await self._validate_with(self._fetch_account_models)
