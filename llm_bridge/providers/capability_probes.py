"""
Capability probes.

Probe adapters send minimal live requests (a 1x1 PNG, a one-function tool
list) or read model metadata to learn what a model accepts. Responses are
classified into three outcomes:

- 2xx: the capability is supported
- an error body that names the capability AND says it is unsupported:
  definitively unsupported
- anything else (auth failures, rate limits, 5xx, network errors,
  ambiguous bodies): inconclusive, reported with ``success=False`` and no
  capabilities so it is never cached

``CapabilityProber`` orchestrates the probes and writes definitive results
to the CapabilityRegistry.
"""
from __future__ import annotations

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

import httpx

from ..config import Settings, settings as default_settings
from . import transport
from .capability_registry import CapabilityRegistry, build_key, provider_id
from .model_capability_rules import infer_capabilities_from_name
from .types import CapabilitySource, InputModality, ModelCapabilities, ProbeResult, ProviderType

logger = logging.getLogger(__name__)

# 1x1 transparent PNG
TINY_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mP8/x8AAwMB/6X9lXkAAAAASUVORK5CYII="
)
PROBE_PROMPT = "Reply with exactly: OK"
PROBE_MAX_TOKENS = 5

ANTHROPIC_API_BASE = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"

_VISION_KEYWORDS = re.compile(r"image_url|images?|multimodal|vision|content.?type|modality", re.IGNORECASE)
_VISION_REJECTION = re.compile(
    r"not.?supported|unsupported|invalid|cannot.?process|not.?accept|not.?allow",
    re.IGNORECASE,
)
_FUNCTION_KEYWORDS = re.compile(r"function|tools?|function_call", re.IGNORECASE)
_FUNCTION_REJECTION = re.compile(r"not.?supported|unsupported|invalid|not.?available", re.IGNORECASE)

_PROBE_TOOL = {
    "type": "function",
    "function": {
        "name": "get_time",
        "description": "Return the current time",
        "parameters": {"type": "object", "properties": {}},
    },
}


def is_vision_unsupported_error(body: str) -> bool:
    """True only when the body mentions images AND rejects them."""
    text = body or ""
    return bool(_VISION_KEYWORDS.search(text) and _VISION_REJECTION.search(text))


def is_function_calling_unsupported_error(body: str) -> bool:
    text = body or ""
    return bool(_FUNCTION_KEYWORDS.search(text) and _FUNCTION_REJECTION.search(text))


def _inconclusive(error: str) -> ProbeResult:
    return ProbeResult(success=False, capabilities=None, error=error)


def classify_vision_response(status_code: int, body: str) -> ProbeResult:
    if 200 <= status_code < 300:
        return ProbeResult(
            success=True,
            capabilities={"input_modalities": [InputModality.TEXT, InputModality.IMAGE]},
        )
    if is_vision_unsupported_error(body):
        return ProbeResult(
            success=True,
            capabilities={"input_modalities": [InputModality.TEXT]},
            error=f"HTTP {status_code}: image input rejected",
        )
    return _inconclusive(f"HTTP {status_code}: {(body or '')[:200]}")


def classify_function_calling_response(status_code: int, body: str) -> ProbeResult:
    if 200 <= status_code < 300:
        return ProbeResult(success=True, capabilities={"supports_function_calling": True})
    if is_function_calling_unsupported_error(body):
        return ProbeResult(
            success=True,
            capabilities={"supports_function_calling": False},
            error=f"HTTP {status_code}: tools rejected",
        )
    return _inconclusive(f"HTTP {status_code}: {(body or '')[:200]}")


class CapabilityProbeAdapter(ABC):
    """
    Per-vendor probe implementation.

    Subclasses implement the vision probe; function-calling and metadata
    lookups are optional and return None when the vendor has no such call.
    """

    def __init__(self, provider_type: Any, timeout: Optional[float] = None):
        self.provider_type = provider_id(provider_type)
        self.timeout = timeout if timeout is not None else default_settings.probe_timeout

    @abstractmethod
    async def probe_vision(self, endpoint: str, api_key: Optional[str], model_id: str) -> ProbeResult:
        """Send a minimal image request and classify the response."""
        pass

    async def probe_function_calling(
        self, endpoint: str, api_key: Optional[str], model_id: str
    ) -> Optional[ProbeResult]:
        return None

    async def fetch_from_metadata(
        self, endpoint: str, api_key: Optional[str], model_id: str
    ) -> Optional[ProbeResult]:
        return None

    async def _post(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> httpx.Response:
        async with transport.create_http_client(self.timeout) as client:
            return await client.post(url, headers=headers, json=body)

    async def _send_probe(self, url: str, headers: Dict[str, str], body: Dict[str, Any], classify) -> ProbeResult:
        try:
            response = await self._post(url, headers, body)
        except httpx.TimeoutException:
            return _inconclusive("Probe timed out")
        except httpx.HTTPError as e:
            return _inconclusive(f"Probe request failed: {e}")
        return classify(response.status_code, response.text)


class OpenAICompatibleProbeAdapter(CapabilityProbeAdapter):
    """Probes any server that speaks ``/v1/chat/completions`` and ``/v1/models``."""

    chat_path = "/v1/chat/completions"
    models_path = "/v1/models"

    def _headers(self, api_key: Optional[str]) -> Dict[str, str]:
        return transport.bearer_headers(api_key)

    async def probe_vision(self, endpoint: str, api_key: Optional[str], model_id: str) -> ProbeResult:
        body = {
            "model": model_id,
            "max_tokens": PROBE_MAX_TOKENS,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": PROBE_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/png;base64,{TINY_PNG_BASE64}"},
                        },
                    ],
                }
            ],
        }
        url = transport.join_url(endpoint, self.chat_path)
        return await self._send_probe(url, self._headers(api_key), body, classify_vision_response)

    async def probe_function_calling(
        self, endpoint: str, api_key: Optional[str], model_id: str
    ) -> Optional[ProbeResult]:
        body = {
            "model": model_id,
            "max_tokens": PROBE_MAX_TOKENS,
            "messages": [{"role": "user", "content": PROBE_PROMPT}],
            "tools": [_PROBE_TOOL],
        }
        url = transport.join_url(endpoint, self.chat_path)
        return await self._send_probe(url, self._headers(api_key), body, classify_function_calling_response)

    async def fetch_from_metadata(
        self, endpoint: str, api_key: Optional[str], model_id: str
    ) -> Optional[ProbeResult]:
        """
        Read capability flags from the model listing.

        Tries ``/v1/models/{id}`` first, then scans ``/v1/models``. Only
        servers that publish a ``capabilities`` object produce a result.
        """
        headers = self._headers(api_key)
        models_url = transport.join_url(endpoint, self.models_path)
        try:
            async with transport.create_http_client(self.timeout) as client:
                entry = None
                response = await client.get(f"{models_url}/{model_id}", headers=headers)
                if response.is_success:
                    entry = response.json()
                else:
                    response = await client.get(models_url, headers=headers)
                    if response.is_success:
                        for item in response.json().get("data", []) or []:
                            if item.get("id") == model_id:
                                entry = item
                                break
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Metadata lookup failed for {model_id} at {endpoint}: {e}")
            return None

        capabilities = _capabilities_from_metadata(entry)
        if not capabilities:
            return None
        return ProbeResult(success=True, capabilities=capabilities, source=CapabilitySource.API_METADATA)


def _capabilities_from_metadata(entry: Any) -> Dict[str, Any]:
    if not isinstance(entry, dict):
        return {}
    declared = entry.get("capabilities")
    if not isinstance(declared, dict):
        return {}

    capabilities: Dict[str, Any] = {}
    if "vision" in declared:
        capabilities["input_modalities"] = (
            [InputModality.TEXT, InputModality.IMAGE] if declared["vision"] else [InputModality.TEXT]
        )
    if "function_calling" in declared:
        capabilities["supports_function_calling"] = bool(declared["function_calling"])
    context_window = entry.get("context_length") or entry.get("max_model_len")
    if capabilities and isinstance(context_window, int):
        capabilities["context_window"] = context_window
    return capabilities


class AnthropicProbeAdapter(CapabilityProbeAdapter):
    """Vision probe against the Anthropic Messages API."""

    def __init__(self, provider_type: Any = ProviderType.ANTHROPIC, timeout: Optional[float] = None,
                 api_base: str = ANTHROPIC_API_BASE):
        super().__init__(provider_type, timeout)
        self.api_base = api_base

    async def probe_vision(self, endpoint: str, api_key: Optional[str], model_id: str) -> ProbeResult:
        if not api_key:
            return _inconclusive("API key required for Anthropic probe")

        headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        body = {
            "model": model_id,
            "max_tokens": PROBE_MAX_TOKENS,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": PROBE_PROMPT},
                        {
                            "type": "image",
                            "source": {"type": "base64", "media_type": "image/png", "data": TINY_PNG_BASE64},
                        },
                    ],
                }
            ],
        }
        url = transport.join_url(self.api_base, "/v1/messages")
        return await self._send_probe(url, headers, body, classify_vision_response)


class ProbeAdapterRegistry:
    """
    Probe adapter registry.

    Maps provider types to probe adapter classes. Providers without an
    adapter fall back to the name heuristic.
    """

    _adapters: Dict[str, Type[CapabilityProbeAdapter]] = {
        ProviderType.VLLM.value: OpenAICompatibleProbeAdapter,
        ProviderType.LMSTUDIO.value: OpenAICompatibleProbeAdapter,
        ProviderType.OLLAMA.value: OpenAICompatibleProbeAdapter,
        ProviderType.LOCAL_OPENAI_COMPATIBLE.value: OpenAICompatibleProbeAdapter,
        ProviderType.OPENAI.value: OpenAICompatibleProbeAdapter,
        ProviderType.XAI.value: OpenAICompatibleProbeAdapter,
        ProviderType.OPENROUTER.value: OpenAICompatibleProbeAdapter,
        ProviderType.FIREWORKS.value: OpenAICompatibleProbeAdapter,
        ProviderType.ANTHROPIC.value: AnthropicProbeAdapter,
    }

    @classmethod
    def get(cls, provider: Any, timeout: Optional[float] = None) -> Optional[CapabilityProbeAdapter]:
        adapter_class = cls._adapters.get(provider_id(provider))
        if adapter_class is None:
            return None
        return adapter_class(provider_id(provider), timeout=timeout)

    @classmethod
    def register(cls, provider: Any, adapter_class: Type[CapabilityProbeAdapter]):
        cls._adapters[provider_id(provider)] = adapter_class
        logger.info(f"Registered probe adapter: {provider_id(provider)}")

    @classmethod
    def get_available_adapters(cls) -> list[str]:
        return list(cls._adapters.keys())


def _merge_modalities(current: Optional[ModelCapabilities], probed: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a probed image verdict without discarding other known modalities."""
    if "input_modalities" not in probed or current is None:
        return probed
    image_supported = InputModality.IMAGE in probed["input_modalities"]
    modalities = [m for m in current.input_modalities if m != InputModality.IMAGE]
    if image_supported:
        modalities.append(InputModality.IMAGE)
    return {**probed, "input_modalities": modalities}


class CapabilityProber:
    """
    Runs probes for a provider/endpoint/model and writes results to a registry.

    Background probes are deduplicated per cache key and a key is not
    probed again within ``settings.probe_retry_interval`` seconds.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        settings: Optional[Settings] = None,
        adapters: Optional[Dict[str, CapabilityProbeAdapter]] = None,
    ):
        self.registry = registry
        self.settings = settings or default_settings
        self._adapters: Dict[str, CapabilityProbeAdapter] = dict(adapters or {})
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._last_attempt: Dict[str, float] = {}

    def get_adapter(self, provider: Any) -> Optional[CapabilityProbeAdapter]:
        key = provider_id(provider)
        if key not in self._adapters:
            adapter = ProbeAdapterRegistry.get(key, timeout=self.settings.probe_timeout)
            if adapter is None:
                return None
            self._adapters[key] = adapter
        return self._adapters[key]

    def register_adapter(self, provider: Any, adapter: CapabilityProbeAdapter) -> None:
        self._adapters[provider_id(provider)] = adapter

    async def probe_and_register_capabilities(
        self,
        provider: Any,
        endpoint: str,
        api_key: Optional[str],
        model_id: str,
    ) -> ModelCapabilities:
        """
        Learn a model's capabilities and cache what was confirmed.

        Steps: seed from the name heuristic, try API metadata (a definitive
        answer stops here), then the vision and function-calling probes.
        Only confirmed fields are written; inconclusive probes write nothing.

        Returns:
            The best known capabilities after probing
        """
        key = build_key(provider, endpoint, model_id)
        heuristic = infer_capabilities_from_name(model_id, provider_id(provider))
        self.registry.set(provider, endpoint, model_id, heuristic, CapabilitySource.NAME_HEURISTIC)

        adapter = self.get_adapter(provider)
        if adapter is None:
            logger.debug(f"No probe adapter for {provider_id(provider)}; using name heuristic for {model_id}")
            return self.registry.get(provider, endpoint, model_id) or heuristic

        metadata = await adapter.fetch_from_metadata(endpoint, api_key, model_id)
        if metadata is not None and not metadata.inconclusive:
            current = self.registry.get_cached(provider, endpoint, model_id)
            merged = metadata.model_copy(update={"capabilities": _merge_modalities(current, metadata.capabilities)})
            self.registry.record_probe_result(provider, endpoint, model_id, merged)
            logger.info(f"Capabilities for {key} read from API metadata")
            return self.registry.get(provider, endpoint, model_id) or heuristic

        confirmed: Dict[str, Any] = {}
        vision = await adapter.probe_vision(endpoint, api_key, model_id)
        if vision.inconclusive:
            logger.warning(f"Vision probe inconclusive for {key}: {vision.error}")
        else:
            confirmed.update(vision.capabilities)

        function_calling = await adapter.probe_function_calling(endpoint, api_key, model_id)
        if function_calling is not None:
            if function_calling.inconclusive:
                logger.warning(f"Function-calling probe inconclusive for {key}: {function_calling.error}")
            else:
                confirmed.update(function_calling.capabilities)

        if confirmed:
            current = self.registry.get_cached(provider, endpoint, model_id)
            result = ProbeResult(success=True, capabilities=_merge_modalities(current, confirmed))
            self.registry.record_probe_result(provider, endpoint, model_id, result)
            logger.info(f"Probed capabilities for {key}: {sorted(confirmed)}")

        return self.registry.get(provider, endpoint, model_id) or heuristic

    async def quick_vision_probe(
        self,
        provider: Any,
        endpoint: str,
        api_key: Optional[str],
        model_id: str,
    ) -> bool:
        """One-shot vision check that does not touch the cache."""
        adapter = self.get_adapter(provider)
        if adapter is not None:
            result = await adapter.probe_vision(endpoint, api_key, model_id)
            if not result.inconclusive and "input_modalities" in result.capabilities:
                return InputModality.IMAGE in result.capabilities["input_modalities"]
        return infer_capabilities_from_name(model_id, provider_id(provider)).supports_vision

    def schedule_probe(
        self,
        provider: Any,
        endpoint: str,
        api_key: Optional[str],
        model_id: str,
    ) -> Optional[asyncio.Task]:
        """
        Start a background probe unless one is running or was tried recently.

        Must be called from a running event loop.
        """
        if self.get_adapter(provider) is None:
            return None

        key = build_key(provider, endpoint, model_id)
        existing = self._in_flight.get(key)
        if existing is not None and not existing.done():
            return existing

        now = time.monotonic()
        last = self._last_attempt.get(key)
        if last is not None and now - last < self.settings.probe_retry_interval:
            logger.debug(f"Probe for {key} throttled")
            return None
        self._last_attempt[key] = now

        task = asyncio.get_running_loop().create_task(
            self._run_background_probe(provider, endpoint, api_key, model_id)
        )
        self._in_flight[key] = task
        task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        return task

    async def _run_background_probe(
        self,
        provider: Any,
        endpoint: str,
        api_key: Optional[str],
        model_id: str,
    ) -> Optional[ModelCapabilities]:
        try:
            return await self.probe_and_register_capabilities(provider, endpoint, api_key, model_id)
        except Exception as e:
            logger.warning(f"Background probe failed for {model_id} at {endpoint}: {e}")
            return None

    async def wait_for_pending(self) -> None:
        """Await every in-flight background probe."""
        tasks = [task for task in self._in_flight.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
