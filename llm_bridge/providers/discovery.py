"""
Model discovery

Thin helpers over the provider factory for listing models across vendors
and for vendor metadata (display names, defaults, requirements).
"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from .builtin import get_builtin_provider
from .factory import ProviderFactory, get_default_factory
from .types import LLMModel, ProviderType, ValidationResult

logger = logging.getLogger(__name__)


class ModelDiscovery:
    """Model discovery for configured providers."""

    def __init__(self, factory: Optional[ProviderFactory] = None):
        self.factory = factory or get_default_factory()

    async def discover_models(
        self,
        provider_type,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> List[LLMModel]:
        """List a provider's models; failures give an empty list."""
        try:
            provider = self.factory.get_provider(provider_type, api_key, endpoint)
            return await provider.list_models()
        except Exception as e:
            logger.warning(f"Failed to discover models for {provider_type}: {e}")
            return []

    async def discover_all_models(self, configs: Iterable[Dict]) -> Dict[ProviderType, List[LLMModel]]:
        """
        Discover models for several providers concurrently.

        Args:
            configs: Dicts with ``provider`` and optional ``api_key`` / ``endpoint``

        Returns:
            Mapping of provider type to its models
        """
        configs = list(configs)
        results = await asyncio.gather(*[
            self.discover_models(c["provider"], c.get("api_key"), c.get("endpoint"))
            for c in configs
        ])
        return {ProviderType(c["provider"]): models for c, models in zip(configs, results)}

    async def validate_provider(
        self,
        provider_type,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> ValidationResult:
        try:
            provider = self.factory.get_provider(provider_type, api_key, endpoint)
        except Exception as e:
            return ValidationResult(valid=False, error=str(e))
        return await provider.validate()

    @staticmethod
    def get_default_model(provider_type) -> Optional[str]:
        """Preferred model for auto-selection."""
        definition = get_builtin_provider(provider_type)
        if definition is None:
            return None
        return definition.discovery_model or definition.default_model

    @staticmethod
    def get_provider_display_name(provider_type) -> str:
        definition = get_builtin_provider(provider_type)
        return definition.name if definition else str(getattr(provider_type, "value", provider_type))

    @staticmethod
    def requires_api_key(provider_type) -> bool:
        definition = get_builtin_provider(provider_type)
        return bool(definition and definition.requires_api_key)

    @staticmethod
    def requires_endpoint(provider_type) -> bool:
        definition = get_builtin_provider(provider_type)
        return bool(definition and definition.requires_endpoint)
