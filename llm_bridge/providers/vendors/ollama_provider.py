"""
Ollama provider

Uses Ollama's native ``/api/chat`` (NDJSON streaming) and ``/api/tags``.
Images travel as a per-message ``images`` list of raw base64 strings.
"""
import logging
from typing import Any, Dict, List

from .. import transport
from ..base import BaseProvider, PreparedRequest, WireRequest
from ..content import ChatMessage, DocumentBlock, ImageBlock, TextBlock
from ..exceptions import ProviderError
from ..model_capability_rules import infer_vision_support
from ..streaming import OllamaStreamDecoder, StreamDecoder
from ..types import LLMModel, LLMResponse, ProviderType, ValidationResult

logger = logging.getLogger(__name__)

# Model families that ship a vision projector
_VISION_FAMILIES = ("clip", "mllama", "llava")


def to_ollama_message(message: ChatMessage) -> Dict[str, Any]:
    if isinstance(message.content, str):
        return {"role": message.role, "content": message.content}

    texts: List[str] = []
    images: List[str] = []
    for block in message.content:
        if isinstance(block, TextBlock):
            texts.append(block.text)
        elif isinstance(block, ImageBlock):
            if block.source.encoding == "base64":
                images.append(block.source.data)
            else:
                logger.warning("Ollama accepts inline images only; skipping image URL")
        elif isinstance(block, DocumentBlock) and block.text:
            texts.append(block.text)

    payload: Dict[str, Any] = {"role": message.role, "content": "\n".join(texts)}
    if images:
        payload["images"] = images
    return payload


class OllamaProvider(BaseProvider):
    provider_type = ProviderType.OLLAMA

    def build_request(self, prepared: PreparedRequest, stream: bool) -> WireRequest:
        messages = [to_ollama_message(m) for m in prepared.messages]
        if prepared.system_prompt:
            messages.insert(0, {"role": "system", "content": prepared.system_prompt})
        return WireRequest(
            url=transport.join_url(prepared.endpoint, "/api/chat"),
            headers={"Content-Type": "application/json"},
            body={
                "model": prepared.model,
                "messages": messages,
                "stream": stream,
                "options": {
                    "temperature": prepared.temperature,
                    "num_predict": prepared.max_tokens,
                },
            },
        )

    def parse_response(self, data: Dict[str, Any], prepared: PreparedRequest) -> LLMResponse:
        if data.get("error"):
            raise ProviderError(str(data["error"]), self.provider_type.value)
        message = data.get("message")
        if not isinstance(message, dict):
            raise ProviderError("No response from Ollama", self.provider_type.value)
        return LLMResponse(
            response=message.get("content") or "",
            tokens_in=data.get("prompt_eval_count"),
            tokens_out=data.get("eval_count"),
            model=data.get("model") or prepared.model,
            finish_reason=data.get("done_reason"),
        )

    def create_stream_decoder(self) -> StreamDecoder:
        return OllamaStreamDecoder()

    async def _fetch_tags(self) -> List[LLMModel]:
        data = await self._get_json(transport.join_url(self.endpoint, "/api/tags"))
        models = []
        for entry in data.get("models", []) or []:
            model_name = entry.get("name", "")
            if not model_name:
                continue
            # Remove tag suffix for display name
            display_name = model_name.split(":")[0] if ":" in model_name else model_name

            details = entry.get("details") or {}
            families = details.get("families") or []
            family = details.get("family", "")
            all_families = set(families + ([family] if family else []))
            has_vision = any(f in all_families for f in _VISION_FAMILIES) or bool(infer_vision_support(model_name))

            models.append(LLMModel(
                id=model_name,
                name=display_name.title(),
                provider=self.provider_type,
                supports_vision=has_vision,
                description=details.get("parameter_size"),
            ))
        return models

    async def list_models(self) -> List[LLMModel]:
        """Installed models; the curated list when the server is unreachable."""
        try:
            models = await self._fetch_tags()
        except Exception as e:
            logger.warning(f"Failed to fetch Ollama models from {self.endpoint}: {e}")
            return self._builtin_models()
        return models

    async def validate(self) -> ValidationResult:
        return await self._validate_with(self._fetch_tags)
