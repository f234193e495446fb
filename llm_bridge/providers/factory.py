"""
Provider Factory

Maps provider types to vendor provider classes and caches instances per
``type:apiKey:endpoint``. All providers built by one factory share its
capability registry and prober.
"""
import logging
import threading
from typing import Dict, List, Optional, Type

from ..config import Settings, settings as default_settings
from .base import BaseProvider
from .capability_probes import CapabilityProber
from .capability_registry import CapabilityRegistry
from .exceptions import UnknownProviderError
from .types import ProviderType
from .vendors import (
    AnthropicProvider,
    FireworksProvider,
    GeminiProvider,
    LMStudioProvider,
    MinimaxProvider,
    OllamaProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenRouterProvider,
    VLLMProvider,
    XAIProvider,
)

logger = logging.getLogger(__name__)


class ProviderFactory:
    """
    Provider factory.

    The class-level ``_providers`` table is the registration point; each
    factory instance owns its cache, registry and prober.
    """

    _providers: Dict[ProviderType, Type[BaseProvider]] = {
        ProviderType.OPENAI: OpenAIProvider,
        ProviderType.ANTHROPIC: AnthropicProvider,
        ProviderType.GEMINI: GeminiProvider,
        ProviderType.XAI: XAIProvider,
        ProviderType.OPENROUTER: OpenRouterProvider,
        ProviderType.FIREWORKS: FireworksProvider,
        ProviderType.OLLAMA: OllamaProvider,
        ProviderType.LMSTUDIO: LMStudioProvider,
        ProviderType.VLLM: VLLMProvider,
        ProviderType.MINIMAX: MinimaxProvider,
        ProviderType.LOCAL_OPENAI_COMPATIBLE: OpenAICompatibleProvider,
    }

    def __init__(
        self,
        registry: Optional[CapabilityRegistry] = None,
        prober: Optional[CapabilityProber] = None,
        settings: Optional[Settings] = None,
        auto_probe: Optional[bool] = None,
    ):
        self.settings = settings or default_settings
        self.registry = registry if registry is not None else CapabilityRegistry()
        self.prober = prober or CapabilityProber(self.registry, self.settings)
        self.auto_probe = auto_probe
        self._instances: Dict[str, BaseProvider] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _resolve_type(provider_type) -> ProviderType:
        try:
            return ProviderType(provider_type)
        except ValueError:
            raise UnknownProviderError(str(getattr(provider_type, "value", provider_type))) from None

    @staticmethod
    def _cache_key(provider_type: ProviderType, api_key: Optional[str], endpoint: Optional[str]) -> str:
        return f"{provider_type.value}:{api_key or ''}:{endpoint or ''}"

    def get_provider(
        self,
        provider_type,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> BaseProvider:
        """
        Get (or build) the provider for a type, key and endpoint.

        Raises:
            UnknownProviderError: when ``provider_type`` is not supported
        """
        resolved = self._resolve_type(provider_type)
        provider_class = self._providers.get(resolved)
        if provider_class is None:
            raise UnknownProviderError(resolved.value)

        key = self._cache_key(resolved, api_key, endpoint)
        with self._lock:
            provider = self._instances.get(key)
            if provider is None:
                provider = provider_class(
                    api_key,
                    endpoint,
                    registry=self.registry,
                    prober=self.prober,
                    settings=self.settings,
                    auto_probe=self.auto_probe,
                )
                self._instances[key] = provider
                logger.debug(f"Created {resolved.value} provider for endpoint {provider.endpoint or '(none)'}")
        return provider

    def update_provider(
        self,
        provider_type,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> BaseProvider:
        """Drop every cached instance of this type, then build a fresh one."""
        resolved = self._resolve_type(provider_type)
        prefix = f"{resolved.value}:"
        with self._lock:
            for key in [k for k in self._instances if k.startswith(prefix)]:
                del self._instances[key]
        return self.get_provider(resolved, api_key, endpoint)

    def clear_cache(self) -> None:
        with self._lock:
            self._instances.clear()

    @classmethod
    def register(cls, provider_type: ProviderType, provider_class: Type[BaseProvider]):
        """
        Register a provider class.

        Args:
            provider_type: Type to register under
            provider_class: Provider class to build for that type
        """
        cls._providers[ProviderType(provider_type)] = provider_class
        logger.info(f"Registered provider: {ProviderType(provider_type).value}")

    @classmethod
    def get_supported_providers(cls) -> List[ProviderType]:
        return list(cls._providers.keys())


_default_factory: Optional[ProviderFactory] = None


def get_default_factory() -> ProviderFactory:
    """Process-wide factory for callers that do not manage their own."""
    global _default_factory
    if _default_factory is None:
        _default_factory = ProviderFactory()
    return _default_factory
