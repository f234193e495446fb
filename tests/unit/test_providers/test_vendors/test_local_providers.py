"""Tests for vLLM, LM Studio and generic OpenAI-compatible servers."""

import json

import httpx
import pytest

from llm_bridge.providers.content import ChatMessage, image_block, text_block
from llm_bridge.providers.types import CapabilitySource
from llm_bridge.providers.vendors import LMStudioProvider, OpenAICompatibleProvider, VLLMProvider

COMPLETION = {"choices": [{"message": {"content": "ok"}}]}


@pytest.mark.asyncio
async def test_vllm_requires_endpoint(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json=COMPLETION))
    result = await make_provider(VLLMProvider).query([{"role": "user", "content": "Hi"}])
    assert result.error == "Endpoint is required for vLLM (Local)"
    assert requests == []


@pytest.mark.asyncio
async def test_endpoint_with_version_suffix_is_not_doubled(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json=COMPLETION))
    provider = make_provider(VLLMProvider, endpoint="http://gpu-box:8000/v1")

    await provider.query([{"role": "user", "content": "Hi"}], {"model": "mistral-7b"})

    assert str(requests[0].url) == "http://gpu-box:8000/v1/chat/completions"
    assert "Authorization" not in requests[0].headers


@pytest.mark.asyncio
async def test_per_call_endpoint_and_key(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json=COMPLETION))
    provider = make_provider(OpenAICompatibleProvider, endpoint="http://a:8000")

    await provider.query(
        [{"role": "user", "content": "Hi"}],
        {"endpoint": "http://b:9000", "api_key": "local-key"},
    )

    assert requests[0].url.host == "b"
    assert requests[0].headers["Authorization"] == "Bearer local-key"


@pytest.mark.asyncio
async def test_vllm_static_model_gets_images_first(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json=COMPLETION))
    message = ChatMessage(role="user", content=(text_block("Compare"), image_block("AAAA"), image_block("BBBB")))

    await make_provider(VLLMProvider, endpoint="http://gpu-box:8000").query(
        [message], {"model": "Qwen/Qwen3-VL-72B"}
    )

    parts = json.loads(requests[0].content)["messages"][0]["content"]
    assert [p["type"] for p in parts] == ["image_url", "image_url", "text"]


@pytest.mark.asyncio
async def test_unknown_model_seeded_from_name(make_provider, registry):
    provider = make_provider(VLLMProvider, endpoint="http://gpu-box:8000")
    caps = await provider.get_model_capabilities("internvl2-26b")

    assert caps.source == CapabilitySource.NAME_HEURISTIC
    assert caps.supports_vision is True
    assert registry.get("vllm", "http://gpu-box:8000", "internvl2-26b") == caps


@pytest.mark.asyncio
async def test_list_models_reads_served_models(mock_http, make_provider):
    listing = {"object": "list", "data": [
        {"id": "Qwen/Qwen2-VL-7B-Instruct", "max_model_len": 32768},
        {"id": "mistral-7b", "capabilities": {"vision": False}},
    ]}
    requests = mock_http(lambda request: httpx.Response(200, json=listing))

    models = await make_provider(VLLMProvider, endpoint="http://gpu-box:8000").list_models()

    assert str(requests[0].url) == "http://gpu-box:8000/v1/models"
    assert [(m.id, m.supports_vision, m.context_window) for m in models] == [
        ("Qwen/Qwen2-VL-7B-Instruct", True, 32768),
        ("mistral-7b", False, None),
    ]


@pytest.mark.asyncio
async def test_list_models_without_endpoint_or_server(mock_http, make_provider):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    mock_http(handler)
    assert await make_provider(VLLMProvider).list_models() == []
    assert await make_provider(VLLMProvider, endpoint="http://gpu-box:8000").list_models() == []


@pytest.mark.asyncio
async def test_lmstudio_defaults_to_localhost(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json={"data": []}))
    result = await make_provider(LMStudioProvider).validate()
    assert result.valid is True
    assert str(requests[0].url) == "http://localhost:1234/v1/models"


@pytest.mark.asyncio
async def test_validate_without_endpoint(make_provider):
    result = await make_provider(OpenAICompatibleProvider).validate()
    assert result.error == "Endpoint is required for OpenAI-Compatible"


@pytest.mark.asyncio
async def test_validate_not_found(mock_http, make_provider):
    mock_http(lambda request: httpx.Response(404, text="Not Found"))
    result = await make_provider(VLLMProvider, endpoint="http://gpu-box:8000").validate()
    assert result.error == "API endpoint not found: Check base URL"


@pytest.mark.asyncio
async def test_validate_malformed_listing(mock_http, make_provider):
    mock_http(lambda request: httpx.Response(200, text="<html>proxy login</html>"))
    result = await make_provider(VLLMProvider, endpoint="http://gpu-box:8000").validate()
    assert result.valid is False
    assert result.error.startswith("Connection error: ")


@pytest.mark.asyncio
async def test_override_on_unknown_model_keeps_name_capabilities(mock_http, make_provider, registry):
    requests = mock_http(lambda request: httpx.Response(200, json=COMPLETION))
    registry.set_user_override("vllm", "http://gpu-box:8000", "Qwen/Qwen2.5-VL-7B-Instruct", {"max_output_tokens": 2048})
    provider = make_provider(VLLMProvider, endpoint="http://gpu-box:8000", auto_probe=True)
    message = ChatMessage(role="user", content=(text_block("what"), image_block("AAAA")))

    result = await provider.query([message], {"model": "Qwen/Qwen2.5-VL-7B-Instruct"})
    await provider.prober.wait_for_pending()

    assert result.response == "ok"
    chat = [r for r in requests if r.url.path == "/v1/chat/completions" and json.loads(r.content)["max_tokens"] != 5]
    parts = json.loads(chat[0].content)["messages"][0]["content"]
    assert [p["type"] for p in parts] == ["image_url", "text"]

    caps = registry.get("vllm", "http://gpu-box:8000", "Qwen/Qwen2.5-VL-7B-Instruct")
    assert caps.source == CapabilitySource.USER_OVERRIDE
    assert caps.max_output_tokens == 2048
    assert caps.supports_vision is True
    assert registry.get_cached("vllm", "http://gpu-box:8000", "Qwen/Qwen2.5-VL-7B-Instruct") is not None


@pytest.mark.asyncio
async def test_folded_system_prompt_follows_leading_images(mock_http, make_provider, registry):
    requests = mock_http(lambda request: httpx.Response(200, json=COMPLETION))
    registry.set("vllm", "http://gpu-box:8000", "tuned-vl", {
        "input_modalities": ["text", "image"],
        "content_ordering": "images_first",
        "supports_system_prompt": False,
    }, CapabilitySource.RUNTIME_PROBE)
    message = ChatMessage(role="user", content=(text_block("Describe"), image_block("AAAA")))

    await make_provider(VLLMProvider, endpoint="http://gpu-box:8000").query(
        [message], {"model": "tuned-vl", "system_prompt": "Be brief."}
    )

    messages = json.loads(requests[0].content)["messages"]
    assert [m["role"] for m in messages] == ["user"]
    parts = messages[0]["content"]
    assert [p["type"] for p in parts] == ["image_url", "text", "text"]
    assert parts[1]["text"] == "Be brief."
    assert parts[2]["text"] == "Describe"


@pytest.mark.asyncio
async def test_options_for_another_provider_are_rejected(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json=COMPLETION))
    provider = make_provider(VLLMProvider, endpoint="http://gpu-box:8000")

    rejected = await provider.query([{"role": "user", "content": "Hi"}], {"provider": "ollama", "model": "m"})
    accepted = await provider.query([{"role": "user", "content": "Hi"}], {"provider": "vllm", "model": "m"})

    assert rejected.error == "Options target ollama but were sent to vLLM (Local)"
    assert accepted.error is None
    assert len(requests) == 1
