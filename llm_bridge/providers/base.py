"""
Base Provider

Abstract base class for vendor providers. The base class owns the request
lifecycle (option resolution, capability lookup, message adaptation, rate
limiting, HTTP, streaming, abort and error reporting); vendor subclasses
only translate to and from their wire format.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

import httpx

from ..config import Settings, settings as default_settings
from . import transport
from .builtin import get_builtin_provider
from .capability_probes import CapabilityProber
from .capability_registry import CapabilityRegistry
from .content import ChatMessage, ImageBlock, TextBlock, content_text, iter_blocks
from .exceptions import ConfigurationError, ProviderError, ProviderHTTPError
from .message_adapter import adapt_messages, image_removal_notice
from .rate_limit import TokenBucket
from .streaming import StreamAccumulator, StreamDecoder
from .types import (
    CapabilitySource,
    ContentOrdering,
    LLMModel,
    LLMResponse,
    ModelCapabilities,
    ProviderCapabilities,
    ProviderDefinition,
    ProviderType,
    QueryOptions,
    StreamChunk,
    TokenUsage,
    ValidationResult,
)

logger = logging.getLogger(__name__)

ABORTED_MESSAGE = "Request aborted"
DEFAULT_TEMPERATURE = 0.7

_END = object()
_ABORTED = object()

ChunkCallback = Callable[[str], Any]


@dataclass
class PreparedRequest:
    """Everything a codec needs to build one vendor request."""
    model: str
    endpoint: str
    api_key: Optional[str]
    max_tokens: int
    temperature: float
    system_prompt: Optional[str]
    messages: Tuple[ChatMessage, ...]
    capabilities: ModelCapabilities
    notice: str = ""


@dataclass
class WireRequest:
    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]
    params: Dict[str, str] = field(default_factory=dict)


async def _anext_or_end(iterator: AsyncIterator[bytes]):
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


async def _next_or_abort(iterator: AsyncIterator[bytes], abort_signal: Optional[asyncio.Event]):
    """Wait for the next network chunk unless the abort signal fires first."""
    if abort_signal is None:
        return await _anext_or_end(iterator)
    if abort_signal.is_set():
        return _ABORTED

    next_task = asyncio.ensure_future(_anext_or_end(iterator))
    abort_task = asyncio.ensure_future(abort_signal.wait())
    try:
        await asyncio.wait({next_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        abort_task.cancel()

    if abort_signal.is_set():
        next_task.cancel()
        await asyncio.wait({next_task})
        return _ABORTED
    return next_task.result()


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _error_message(error: BaseException) -> str:
    if isinstance(error, httpx.TimeoutException):
        return "Request timed out"
    return str(error) or error.__class__.__name__


class BaseProvider(ABC):
    """
    Abstract base class for LLM providers.

    Each subclass handles one vendor's wire protocol and provides a unified
    interface for querying, streaming, listing models and validating keys.
    Errors never propagate out of query/stream/validate; they are reported
    on the returned value instead.
    """

    provider_type: ProviderType

    def __init__(
        self,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        *,
        registry: Optional[CapabilityRegistry] = None,
        prober: Optional[CapabilityProber] = None,
        settings: Optional[Settings] = None,
        auto_probe: Optional[bool] = None,
    ):
        """
        Args:
            api_key: Vendor API key (never read from the environment)
            endpoint: Base URL overriding the vendor default
            registry: Capability registry shared across providers
            prober: Capability prober writing into ``registry``
            settings: Library settings, defaults to the global instance
            auto_probe: Schedule background probes for unknown models
        """
        self.definition: ProviderDefinition = get_builtin_provider(self.provider_type)
        self.settings = settings or default_settings
        self.api_key = api_key or None
        self.endpoint = transport.normalize_base_url(endpoint) or self.definition.base_url or ""
        self.model = self.definition.default_model
        self.registry = registry if registry is not None else (
            prober.registry if prober is not None else CapabilityRegistry()
        )
        self.prober = prober or CapabilityProber(self.registry, self.settings)
        self.auto_probe = self.settings.auto_probe if auto_probe is None else auto_probe
        self.rate_limiter = TokenBucket(
            capacity=self.settings.rate_limit_capacity,
            refill_per_second=self.settings.rate_limit_refill_per_second,
        )

    # ---- configuration -------------------------------------------------

    def get_type(self) -> ProviderType:
        return self.provider_type

    @property
    def display_name(self) -> str:
        return self.definition.name

    def capabilities(self) -> ProviderCapabilities:
        return self.definition.provider_capabilities()

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.api_key = api_key or None

    def set_endpoint(self, endpoint: Optional[str]) -> None:
        self.endpoint = transport.normalize_base_url(endpoint) or self.definition.base_url or ""

    def set_model(self, model: str) -> None:
        self.model = model

    # ---- capabilities --------------------------------------------------

    async def get_model_capabilities(
        self,
        model_id: Optional[str] = None,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> ModelCapabilities:
        """
        Resolve capabilities from the registry without blocking on the network.

        Unknown models are seeded from the name heuristic; heuristic and stale
        records trigger a deduplicated background probe. User overrides are
        layered on top of the learned record, never on bare defaults.
        """
        model_id = model_id or self.model
        endpoint_key = endpoint if endpoint is not None else self.endpoint
        learned = self.registry.get_cached(self.provider_type, endpoint_key, model_id)
        if learned is None:
            self.registry.register_from_name_heuristic(self.provider_type, endpoint_key, model_id)
            learned = self.registry.get_cached(self.provider_type, endpoint_key, model_id)

        if self.auto_probe and learned is not None and self._needs_probe(learned):
            self.prober.schedule_probe(self.provider_type, endpoint_key, api_key or self.api_key, model_id)
        return self.registry.get(self.provider_type, endpoint_key, model_id)

    def _needs_probe(self, caps: ModelCapabilities) -> bool:
        if caps.source == CapabilitySource.NAME_HEURISTIC:
            return True
        return self.registry.is_stale(caps, self.settings.capability_stale_after)

    # ---- request preparation -------------------------------------------

    def _coerce_options(self, options: Union[QueryOptions, Dict[str, Any], None]) -> QueryOptions:
        if options is None:
            return QueryOptions()
        if isinstance(options, QueryOptions):
            return options
        return QueryOptions.model_validate(options)

    async def prepare(
        self,
        messages: Sequence[Union[ChatMessage, Dict[str, Any]]],
        options: Union[QueryOptions, Dict[str, Any], None] = None,
    ) -> PreparedRequest:
        """
        Resolve options and adapt messages for the target model.

        Raises:
            ConfigurationError: when the API key or endpoint is missing, or
                the options name another provider
        """
        options = self._coerce_options(options)
        if options.provider is not None and options.provider != self.provider_type:
            raise ConfigurationError(
                f"Options target {options.provider.value} but were sent to {self.display_name}",
                self.provider_type.value,
            )
        api_key = options.api_key or self.api_key
        endpoint = transport.normalize_base_url(options.endpoint) or self.endpoint
        if self.definition.requires_api_key and not api_key:
            raise ConfigurationError(f"API key is required for {self.display_name}", self.provider_type.value)
        if not endpoint:
            raise ConfigurationError(f"Endpoint is required for {self.display_name}", self.provider_type.value)

        model = options.model or self.model
        capabilities = await self.get_model_capabilities(model, endpoint=endpoint, api_key=api_key)
        adapted = adapt_messages(messages, capabilities)

        system_parts = [options.system_prompt] if options.system_prompt else []
        conversation: List[ChatMessage] = []
        for message in adapted.messages:
            if message.role == "system":
                text = content_text(message.content)
                if text:
                    system_parts.append(text)
            else:
                conversation.append(message)
        system_prompt = "\n\n".join(system_parts) or None

        if system_prompt and not capabilities.supports_system_prompt:
            conversation = _fold_system_prompt(conversation, system_prompt, capabilities.content_ordering)
            system_prompt = None

        return PreparedRequest(
            model=model,
            endpoint=endpoint,
            api_key=api_key,
            max_tokens=options.max_tokens or self.settings.default_max_tokens,
            temperature=options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE,
            system_prompt=system_prompt,
            messages=tuple(conversation),
            capabilities=capabilities,
            notice=image_removal_notice(model) if adapted.images_removed else "",
        )

    async def rate_limit_delay(self) -> None:
        waited = await self.rate_limiter.acquire()
        if waited:
            logger.debug(f"{self.display_name} request delayed {waited:.2f}s by rate limit")

    # ---- wire codec hooks ----------------------------------------------

    @abstractmethod
    def build_request(self, prepared: PreparedRequest, stream: bool) -> WireRequest:
        """Translate a prepared request into the vendor's HTTP request."""
        pass

    @abstractmethod
    def parse_response(self, data: Dict[str, Any], prepared: PreparedRequest) -> LLMResponse:
        """
        Translate a non-streaming vendor response.

        Raises:
            ProviderError: when the response carries no usable content
        """
        pass

    @abstractmethod
    def create_stream_decoder(self) -> StreamDecoder:
        pass

    # ---- operations ----------------------------------------------------

    async def query(
        self,
        messages: Sequence[Union[ChatMessage, Dict[str, Any]]],
        options: Union[QueryOptions, Dict[str, Any], None] = None,
    ) -> LLMResponse:
        """
        Send a non-streaming request.

        Returns:
            LLMResponse; on failure ``response`` is empty and ``error`` is set
        """
        started = time.perf_counter()
        try:
            prepared = await self.prepare(messages, options)
            await self.rate_limit_delay()
            wire = self.build_request(prepared, stream=False)
            async with transport.create_http_client(self.settings.request_timeout) as client:
                response = await client.post(wire.url, headers=wire.headers, json=wire.body, params=wire.params)
            transport.raise_for_status(response, self.provider_type.value)
            result = self.parse_response(response.json(), prepared)
        except Exception as e:
            logger.warning(f"{self.display_name} query failed: {_error_message(e)}")
            return LLMResponse(error=_error_message(e), response_time_ms=_elapsed_ms(started))

        return result.model_copy(update={
            "response": prepared.notice + result.response,
            "model": result.model or prepared.model,
            "response_time_ms": _elapsed_ms(started),
        })

    async def stream(
        self,
        messages: Sequence[Union[ChatMessage, Dict[str, Any]]],
        options: Union[QueryOptions, Dict[str, Any], None] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream a response as an async sequence of chunks.

        Content chunks arrive in order; the final chunk always carries the
        aggregated LLMResponse. Setting ``abort_signal`` stops the stream and
        the final response keeps the partial text with error "Request aborted".
        """
        started = time.perf_counter()
        accumulator = StreamAccumulator()
        error: Optional[str] = None
        try:
            prepared = await self.prepare(messages, options)
            accumulator.model = prepared.model
            await self.rate_limit_delay()
            wire = self.build_request(prepared, stream=True)
            decoder = self.create_stream_decoder()
            async with transport.create_http_client(self.settings.request_timeout) as client:
                async with client.stream(
                    "POST", wire.url, headers=wire.headers, json=wire.body, params=wire.params
                ) as response:
                    if not response.is_success:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise ProviderHTTPError(response.status_code, body, self.provider_type.value)

                    if prepared.notice:
                        accumulator.add_text(prepared.notice)
                        yield StreamChunk(content=prepared.notice)

                    chunks = response.aiter_bytes()
                    while not decoder.finished:
                        raw = await _next_or_abort(chunks, abort_signal)
                        if raw is _ABORTED:
                            error = ABORTED_MESSAGE
                            break
                        events = decoder.close() if raw is _END else decoder.feed(raw)
                        for event in events:
                            if abort_signal is not None and abort_signal.is_set():
                                error = ABORTED_MESSAGE
                                break
                            accumulator.apply(event)
                            if event.text:
                                yield StreamChunk(content=event.text)
                        if error or raw is _END:
                            break
        except Exception as e:
            error = _error_message(e)
            logger.warning(f"{self.display_name} stream failed: {error}")

        if error == ABORTED_MESSAGE:
            logger.info(f"{self.display_name} stream aborted after {len(accumulator.text)} chars")

        final = LLMResponse(
            response=accumulator.text,
            tokens_in=accumulator.tokens_in,
            tokens_out=accumulator.tokens_out,
            model=accumulator.model,
            finish_reason=accumulator.finish_reason,
            response_time_ms=_elapsed_ms(started),
            error=error or accumulator.error,
        )
        usage = None
        if final.tokens_in is not None or final.tokens_out is not None:
            usage = TokenUsage(prompt_tokens=final.tokens_in or 0, completion_tokens=final.tokens_out or 0,
                               total_tokens=(final.tokens_in or 0) + (final.tokens_out or 0))
        yield StreamChunk(usage=usage, response=final)

    async def query_stream(
        self,
        messages: Sequence[Union[ChatMessage, Dict[str, Any]]],
        options: Union[QueryOptions, Dict[str, Any], None],
        on_chunk: ChunkCallback,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> LLMResponse:
        """
        Callback flavour of ``stream``: ``on_chunk`` receives each text delta
        (and may be a coroutine function).
        """
        final: Optional[LLMResponse] = None
        async for chunk in self.stream(messages, options, abort_signal):
            if chunk.content:
                result = on_chunk(chunk.content)
                if inspect.isawaitable(result):
                    await result
            if chunk.response is not None:
                final = chunk.response
        return final

    async def list_models(self) -> List[LLMModel]:
        """List models; vendors without a listing call return their curated list."""
        return self._builtin_models()

    async def get_available_models(self) -> List[LLMModel]:
        return await self.list_models()

    @abstractmethod
    async def validate(self) -> ValidationResult:
        """Check the configuration with the cheapest authenticated call."""
        pass

    # ---- helpers for subclasses ----------------------------------------

    def _builtin_models(self) -> List[LLMModel]:
        return [
            LLMModel(
                id=model.id,
                name=model.name,
                provider=self.provider_type,
                context_window=model.context_window,
                supports_vision=model.supports_vision,
            )
            for model in self.definition.builtin_models
        ]

    async def _fetch_models_with_fallback(
        self,
        fetcher: Callable[[], Awaitable[List[LLMModel]]],
    ) -> List[LLMModel]:
        """Run ``fetcher``; fall back to the curated list on error or no results."""
        fallback = self._builtin_models()
        if self.definition.requires_api_key and not self.api_key:
            return fallback
        try:
            models = await fetcher()
        except Exception as e:
            logger.warning(f"Failed to fetch {self.display_name} models: {_error_message(e)}")
            return fallback
        return models or fallback

    async def _get_json(self, url: str, headers: Optional[Dict[str, str]] = None,
                        params: Optional[Dict[str, Any]] = None) -> Any:
        async with transport.create_http_client(self.settings.list_models_timeout) as client:
            response = await client.get(url, headers=headers, params=params)
        transport.raise_for_status(response, self.provider_type.value)
        return response.json()

    async def _validate_with(self, request: Callable[[], Awaitable[Any]]) -> ValidationResult:
        """
        Run a validation request and map failures to readable messages.
        """
        if self.definition.requires_api_key and not self.api_key:
            return ValidationResult(valid=False, error=f"API key is required for {self.display_name}")
        if not self.endpoint:
            return ValidationResult(valid=False, error=f"Endpoint is required for {self.display_name}")
        try:
            await request()
            return ValidationResult(valid=True)
        except ProviderHTTPError as e:
            if e.status_code in (401, 403):
                return ValidationResult(valid=False, error="Authentication failed: Invalid API key")
            if e.status_code == 404:
                return ValidationResult(valid=False, error="API endpoint not found: Check base URL")
            return ValidationResult(valid=False, error=str(e))
        except httpx.TimeoutException:
            return ValidationResult(valid=False, error="Connection timeout: API not responding")
        except httpx.ConnectError:
            return ValidationResult(valid=False, error=f"Cannot connect to {self.display_name} at {self.endpoint}")
        except (httpx.HTTPError, ProviderError, ValueError) as e:
            return ValidationResult(valid=False, error=f"Connection error: {_error_message(e)}")


def _fold_system_prompt(
    messages: List[ChatMessage],
    system_prompt: str,
    ordering: ContentOrdering = ContentOrdering.ANY,
) -> List[ChatMessage]:
    """Prefix the first user message with the system prompt.

    For images-first models the text goes after the leading run of images.
    """
    for index, message in enumerate(messages):
        if message.role != "user":
            continue
        if isinstance(message.content, str):
            content = f"{system_prompt}\n\n{message.content}"
        else:
            blocks = tuple(iter_blocks(message.content))
            split = 0
            if ordering == ContentOrdering.IMAGES_FIRST:
                while split < len(blocks) and isinstance(blocks[split], ImageBlock):
                    split += 1
            content = blocks[:split] + (TextBlock(text=system_prompt),) + blocks[split:]
        folded = list(messages)
        folded[index] = ChatMessage(role="user", content=content)
        return folded
    return [ChatMessage(role="user", content=system_prompt)] + list(messages)
