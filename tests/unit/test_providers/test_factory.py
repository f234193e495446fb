"""Tests for the provider factory and model discovery."""

import httpx
import pytest

from llm_bridge.providers.base import BaseProvider
from llm_bridge.providers.builtin import get_builtin_provider, is_builtin_provider
from llm_bridge.providers.discovery import ModelDiscovery
from llm_bridge.providers.exceptions import UnknownProviderError
from llm_bridge.providers.factory import ProviderFactory
from llm_bridge.providers.types import ProviderType
from llm_bridge.providers.vendors import AnthropicProvider, OpenAICompatibleProvider, VLLMProvider


@pytest.fixture
def factory(registry, test_settings):
    return ProviderFactory(registry=registry, settings=test_settings)


def test_every_provider_type_is_supported():
    assert set(ProviderFactory.get_supported_providers()) == set(ProviderType)


def test_get_provider_accepts_strings_and_enums(factory):
    provider = factory.get_provider("anthropic", "sk-ant")
    assert isinstance(provider, AnthropicProvider)
    assert factory.get_provider(ProviderType.ANTHROPIC, "sk-ant") is provider


def test_instances_cached_per_key_and_endpoint(factory):
    first = factory.get_provider("vllm", None, "http://a:8000")
    assert factory.get_provider("vllm", None, "http://a:8000") is first
    assert factory.get_provider("vllm", None, "http://b:8000") is not first
    assert factory.get_provider("vllm", "key", "http://a:8000") is not first


def test_unknown_provider_type(factory):
    with pytest.raises(UnknownProviderError, match="Unknown provider type: cohere"):
        factory.get_provider("cohere")


def test_update_provider_drops_cached_instances(factory):
    old = factory.get_provider("openai", "sk-old")
    other = factory.get_provider("anthropic", "sk-ant")

    new = factory.update_provider("openai", "sk-new")

    assert new is not old
    assert new.api_key == "sk-new"
    assert factory.get_provider("openai", "sk-old") is not old
    assert factory.get_provider("anthropic", "sk-ant") is other


def test_providers_share_the_factory_registry(factory, registry):
    provider = factory.get_provider("vllm", None, "http://a:8000")
    assert provider.registry is registry
    assert provider.prober is factory.prober


def test_register_custom_provider(factory, monkeypatch):
    monkeypatch.setattr(ProviderFactory, "_providers", dict(ProviderFactory._providers))

    class CustomVLLM(VLLMProvider):
        pass

    ProviderFactory.register(ProviderType.VLLM, CustomVLLM)
    assert isinstance(factory.get_provider("vllm", None, "http://a:8000"), CustomVLLM)


def test_builtin_definitions():
    assert get_builtin_provider("nope") is None
    assert is_builtin_provider("ollama") is True
    assert get_builtin_provider(ProviderType.VLLM).requires_endpoint is True
    assert get_builtin_provider(ProviderType.OLLAMA).requires_api_key is False


def test_discovery_static_helpers():
    assert ModelDiscovery.get_default_model("gemini") == "gemini-2.0-flash-exp"
    assert ModelDiscovery.get_default_model("openai") == "gpt-4o-mini"
    assert ModelDiscovery.get_default_model("nope") is None
    assert ModelDiscovery.get_provider_display_name("xai") == "xAI (Grok)"
    assert ModelDiscovery.requires_api_key("anthropic") is True
    assert ModelDiscovery.requires_endpoint("local-openai-compatible") is True


@pytest.mark.asyncio
async def test_discover_all_models(factory, mock_http):
    def handler(request):
        if request.url.host == "gpu-box":
            return httpx.Response(200, json={"data": [{"id": "mistral-7b"}]})
        raise httpx.ConnectError("refused", request=request)

    mock_http(handler)
    discovery = ModelDiscovery(factory)

    results = await discovery.discover_all_models([
        {"provider": "vllm", "endpoint": "http://gpu-box:8000"},
        {"provider": "openai", "api_key": "sk-test"},
        {"provider": "local-openai-compatible", "endpoint": "http://down:8000"},
    ])

    assert [m.id for m in results[ProviderType.VLLM]] == ["mistral-7b"]
    assert results[ProviderType.OPENAI]
    assert results[ProviderType.LOCAL_OPENAI_COMPATIBLE] == []


@pytest.mark.asyncio
async def test_discover_models_unknown_provider_is_empty(factory):
    assert await ModelDiscovery(factory).discover_models("cohere") == []


@pytest.mark.asyncio
async def test_validate_provider(factory, mock_http):
    mock_http(lambda request: httpx.Response(200, json={"data": []}))
    discovery = ModelDiscovery(factory)

    assert (await discovery.validate_provider("vllm", None, "http://gpu-box:8000")).valid is True
    unknown = await discovery.validate_provider("cohere")
    assert unknown.valid is False
    assert unknown.error == "Unknown provider type: cohere"


def test_base_provider_is_abstract():
    with pytest.raises(TypeError):
        BaseProvider()
    assert issubclass(OpenAICompatibleProvider, BaseProvider)
