"""
Google Gemini provider

REST ``generateContent`` / ``streamGenerateContent?alt=sse`` with the API
key as a query parameter. Roles map ``assistant`` -> ``model``; the system
prompt goes in ``systemInstruction``.
"""
import logging
from typing import Any, Dict, List

from .. import transport
from ..base import BaseProvider, PreparedRequest, WireRequest
from ..content import ChatMessage, DocumentBlock, ImageBlock, TextBlock, iter_blocks
from ..exceptions import ProviderError
from ..streaming import GeminiStreamDecoder, StreamDecoder
from ..types import LLMModel, LLMResponse, ProviderType, ValidationResult

logger = logging.getLogger(__name__)

MODELS_PAGE_SIZE = "100"


def to_gemini_parts(message: ChatMessage) -> List[Dict[str, Any]]:
    parts: List[Dict[str, Any]] = []
    for block in iter_blocks(message.content):
        if isinstance(block, TextBlock):
            parts.append({"text": block.text})
        elif isinstance(block, ImageBlock):
            source = block.source
            if source.encoding == "base64":
                parts.append({"inline_data": {"mime_type": source.media_type or "image/png", "data": source.data}})
            else:
                parts.append({"file_data": {"file_uri": source.url}})
        elif isinstance(block, DocumentBlock):
            if block.data:
                parts.append({"inline_data": {"mime_type": block.media_type, "data": block.data}})
            elif block.text:
                parts.append({"text": block.text})
    return parts


def to_gemini_contents(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    return [
        {"role": "model" if m.role == "assistant" else "user", "parts": to_gemini_parts(m)}
        for m in messages
    ]


class GeminiProvider(BaseProvider):
    provider_type = ProviderType.GEMINI

    def build_request(self, prepared: PreparedRequest, stream: bool) -> WireRequest:
        body: Dict[str, Any] = {
            "contents": to_gemini_contents(list(prepared.messages)),
            "generationConfig": {
                "temperature": prepared.temperature,
                "maxOutputTokens": prepared.max_tokens,
            },
        }
        if prepared.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": prepared.system_prompt}]}

        action = "streamGenerateContent" if stream else "generateContent"
        params = {"key": prepared.api_key}
        if stream:
            params["alt"] = "sse"
        return WireRequest(
            url=f"{transport.normalize_base_url(prepared.endpoint)}/models/{prepared.model}:{action}",
            headers={"Content-Type": "application/json"},
            body=body,
            params=params,
        )

    def parse_response(self, data: Dict[str, Any], prepared: PreparedRequest) -> LLMResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderError("No response from Gemini", self.provider_type.value)
        candidate = candidates[0] or {}
        parts = (candidate.get("content") or {}).get("parts") or []
        usage = data.get("usageMetadata") or {}
        return LLMResponse(
            response="".join(part.get("text", "") for part in parts if isinstance(part, dict)),
            tokens_in=usage.get("promptTokenCount"),
            tokens_out=usage.get("candidatesTokenCount"),
            model=data.get("modelVersion") or prepared.model,
            finish_reason=candidate.get("finishReason"),
        )

    def create_stream_decoder(self) -> StreamDecoder:
        return GeminiStreamDecoder()

    async def _fetch_models(self) -> List[LLMModel]:
        """Paginate ``/models``, keeping models that support generateContent."""
        models: List[LLMModel] = []
        page_token = None
        while True:
            params: Dict[str, str] = {"key": self.api_key, "pageSize": MODELS_PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            data = await self._get_json(f"{self.endpoint}/models", params=params)

            for model in data.get("models", []):
                # Only include models that support content generation
                methods = model.get("supportedGenerationMethods", [])
                if "generateContent" not in methods:
                    continue
                model_name = model.get("name", "")
                # model_name is like "models/gemini-2.5-flash"
                model_id = model_name[len("models/"):] if model_name.startswith("models/") else model_name
                models.append(LLMModel(
                    id=model_id,
                    name=model.get("displayName", model_id),
                    provider=self.provider_type,
                    context_window=model.get("inputTokenLimit"),
                    supports_vision=True,
                    description=model.get("description"),
                ))

            page_token = data.get("nextPageToken")
            if not page_token:
                break
        return models

    async def list_models(self) -> List[LLMModel]:
        return await self._fetch_models_with_fallback(self._fetch_models)

    async def validate(self) -> ValidationResult:
        async def request():
            await self._get_json(f"{self.endpoint}/models", params={"key": self.api_key, "pageSize": "1"})

        return await self._validate_with(request)
