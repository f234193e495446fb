"""
Minimax provider

Minimax accepts the chat-completions body at its own
``/v1/text/chatcompletion_v2`` path and has no model listing call.
"""
from typing import List

from .. import transport
from ..types import LLMModel, ProviderType, ValidationResult
from .openai_compatible_provider import OpenAICompatibleProvider

VALIDATION_MAX_TOKENS = 1


class MinimaxProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.MINIMAX
    chat_path = "/v1/text/chatcompletion_v2"
    include_stream_usage = False

    async def list_models(self) -> List[LLMModel]:
        return self._builtin_models()

    async def validate(self) -> ValidationResult:
        """Minimal one-token completion."""
        async def request():
            prepared = await self.prepare(
                [{"role": "user", "content": "hi"}],
                {"max_tokens": VALIDATION_MAX_TOKENS},
            )
            wire = self.build_request(prepared, stream=False)
            async with transport.create_http_client(self.settings.list_models_timeout) as client:
                response = await client.post(wire.url, headers=wire.headers, json=wire.body)
            transport.raise_for_status(response, self.provider_type.value)

        return await self._validate_with(request)
