"""
OpenAI-compatible provider

Speaks ``/v1/chat/completions`` and ``/v1/models``. Used directly for
generic local servers and as the base for every vendor that shares the
chat-completions wire format.
"""
import logging
from typing import Any, Dict, List, Optional

from .. import transport
from ..base import BaseProvider, PreparedRequest, WireRequest
from ..exceptions import ProviderError
from ..model_capability_rules import infer_vision_support
from ..streaming import OpenAIStreamDecoder, StreamDecoder
from ..types import LLMModel, LLMResponse, ProviderType, ValidationResult
from .utils import extract_openai_text, to_openai_messages

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(BaseProvider):
    """
    Provider for any OpenAI-compatible chat completions server.

    Subclasses adjust paths, headers and the token-limit field.
    """

    provider_type = ProviderType.LOCAL_OPENAI_COMPATIBLE
    chat_path = "/v1/chat/completions"
    models_path = "/v1/models"
    include_stream_usage = True

    def _headers(self, api_key: Optional[str]) -> Dict[str, str]:
        return transport.bearer_headers(api_key)

    def _token_limit_field(self, model: str) -> str:
        return "max_tokens"

    def build_request(self, prepared: PreparedRequest, stream: bool) -> WireRequest:
        body: Dict[str, Any] = {
            "model": prepared.model,
            "messages": to_openai_messages(prepared.messages, prepared.system_prompt),
            "temperature": prepared.temperature,
            self._token_limit_field(prepared.model): prepared.max_tokens,
        }
        if stream:
            body["stream"] = True
            if self.include_stream_usage:
                body["stream_options"] = {"include_usage": True}
        return WireRequest(
            url=transport.join_url(prepared.endpoint, self.chat_path),
            headers=self._headers(prepared.api_key),
            body=body,
        )

    def parse_response(self, data: Dict[str, Any], prepared: PreparedRequest) -> LLMResponse:
        text = extract_openai_text(data)
        if text is None:
            raise ProviderError(f"No response from {self.display_name}", self.provider_type.value)
        usage = data.get("usage") or {}
        choice = (data.get("choices") or [{}])[0] or {}
        return LLMResponse(
            response=text,
            tokens_in=usage.get("prompt_tokens"),
            tokens_out=usage.get("completion_tokens"),
            model=data.get("model") or prepared.model,
            finish_reason=choice.get("finish_reason"),
        )

    def create_stream_decoder(self) -> StreamDecoder:
        return OpenAIStreamDecoder()

    def _model_from_listing(self, entry: Dict[str, Any]) -> Optional[LLMModel]:
        model_id = entry.get("id")
        if not model_id:
            return None
        declared = entry.get("capabilities") if isinstance(entry.get("capabilities"), dict) else {}
        supports_vision = declared.get("vision")
        if supports_vision is None:
            supports_vision = bool(infer_vision_support(model_id))
        context_window = entry.get("context_length") or entry.get("max_model_len")
        return LLMModel(
            id=model_id,
            name=entry.get("name") or model_id,
            provider=self.provider_type,
            context_window=context_window if isinstance(context_window, int) else None,
            supports_vision=bool(supports_vision),
            description=entry.get("description"),
        )

    async def _fetch_listing(self) -> List[LLMModel]:
        data = await self._get_json(
            transport.join_url(self.endpoint, self.models_path),
            headers=self._headers(self.api_key),
        )
        models = []
        for entry in data.get("data", []) or []:
            model = self._model_from_listing(entry)
            if model is not None:
                models.append(model)
        return models

    async def list_models(self) -> List[LLMModel]:
        """
        List models served at the endpoint.

        Returns an empty list when no endpoint is configured or the server
        is unreachable.
        """
        if not self.endpoint:
            return []
        try:
            return await self._fetch_listing()
        except Exception as e:
            logger.warning(f"Failed to fetch models from {self.endpoint}: {e}")
            return []

    async def validate(self) -> ValidationResult:
        return await self._validate_with(self._fetch_listing)
