"""
Anthropic (Claude) provider

Messages API: the system prompt goes in the top-level ``system`` field,
images are ``{"type": "image", "source": {...}}`` blocks and PDFs can be
passed through natively as ``document`` blocks.
"""
from typing import Any, Dict, List, Optional

from .. import transport
from ..base import BaseProvider, PreparedRequest, WireRequest
from ..capability_probes import ANTHROPIC_VERSION
from ..content import ChatMessage, DocumentBlock, ImageBlock, MessageContent, TextBlock
from ..exceptions import ProviderError
from ..streaming import AnthropicStreamDecoder, StreamDecoder
from ..types import LLMResponse, ProviderType, ValidationResult

VALIDATION_MODEL = "claude-3-5-haiku-20241022"


def to_anthropic_content(content: MessageContent) -> Any:
    if isinstance(content, str):
        return content

    blocks: List[Dict[str, Any]] = []
    for block in content:
        if isinstance(block, TextBlock):
            blocks.append({"type": "text", "text": block.text})
        elif isinstance(block, ImageBlock):
            source = block.source
            if source.encoding == "base64":
                blocks.append({
                    "type": "image",
                    "source": {"type": "base64", "media_type": source.media_type or "image/png", "data": source.data},
                })
            else:
                blocks.append({"type": "image", "source": {"type": "url", "url": source.url}})
        elif isinstance(block, DocumentBlock):
            if block.data:
                blocks.append({
                    "type": "document",
                    "source": {"type": "base64", "media_type": block.media_type, "data": block.data},
                })
            elif block.text:
                blocks.append({"type": "text", "text": block.text})
    return blocks


def to_anthropic_messages(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    return [{"role": m.role, "content": to_anthropic_content(m.content)} for m in messages]


class AnthropicProvider(BaseProvider):
    provider_type = ProviderType.ANTHROPIC

    def _headers(self, api_key: Optional[str]) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_request(self, prepared: PreparedRequest, stream: bool) -> WireRequest:
        body: Dict[str, Any] = {
            "model": prepared.model,
            "messages": to_anthropic_messages(list(prepared.messages)),
            "max_tokens": prepared.max_tokens,
            "temperature": prepared.temperature,
        }
        if prepared.system_prompt:
            body["system"] = prepared.system_prompt
        if stream:
            body["stream"] = True
        return WireRequest(
            url=transport.join_url(prepared.endpoint, "/v1/messages"),
            headers=self._headers(prepared.api_key),
            body=body,
        )

    def parse_response(self, data: Dict[str, Any], prepared: PreparedRequest) -> LLMResponse:
        content = data.get("content")
        if not isinstance(content, list) or not content:
            raise ProviderError("No response from Anthropic", self.provider_type.value)
        text = "".join(
            block.get("text", "") for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        return LLMResponse(
            response=text,
            tokens_in=usage.get("input_tokens"),
            tokens_out=usage.get("output_tokens"),
            model=data.get("model") or prepared.model,
            finish_reason=data.get("stop_reason"),
        )

    def create_stream_decoder(self) -> StreamDecoder:
        return AnthropicStreamDecoder()

    async def validate(self) -> ValidationResult:
        """One-token request against the cheapest model."""
        async def request():
            wire = WireRequest(
                url=transport.join_url(self.endpoint, "/v1/messages"),
                headers=self._headers(self.api_key),
                body={
                    "model": VALIDATION_MODEL,
                    "max_tokens": 1,
                    "messages": [{"role": "user", "content": "Hi"}],
                },
            )
            async with transport.create_http_client(self.settings.list_models_timeout) as client:
                response = await client.post(wire.url, headers=wire.headers, json=wire.body)
            transport.raise_for_status(response, self.provider_type.value)

        return await self._validate_with(request)
