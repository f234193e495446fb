"""Tests for the Gemini provider."""

import json

import httpx
import pytest

from llm_bridge.providers.content import ChatMessage, image_block, text_block
from llm_bridge.providers.vendors import GeminiProvider

BASE = "https://generativelanguage.googleapis.com/v1beta"

GENERATED = {
    "candidates": [{"content": {"role": "model", "parts": [{"text": "Bonjour"}]}, "finishReason": "STOP"}],
    "usageMetadata": {"promptTokenCount": 6, "candidatesTokenCount": 1},
    "modelVersion": "gemini-1.5-flash-002",
}


@pytest.mark.asyncio
async def test_query_request_shape(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json=GENERATED))
    message = ChatMessage(role="user", content=(text_block("Translate"), image_block("AAAA")))

    result = await make_provider(GeminiProvider, "g-key").query(
        [
            {"role": "system", "content": "Answer in French."},
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Bonjour"},
            message,
        ],
        {"temperature": 0.2},
    )

    assert result.response == "Bonjour"
    assert (result.tokens_in, result.tokens_out) == (6, 1)
    assert result.model == "gemini-1.5-flash-002"

    sent = requests[0]
    assert sent.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
    assert sent.url.params["key"] == "g-key"
    body = json.loads(sent.content)
    assert body["systemInstruction"] == {"parts": [{"text": "Answer in French."}]}
    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
    assert body["contents"][2]["parts"][1] == {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}
    assert body["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 4096}


@pytest.mark.asyncio
async def test_stream_uses_sse_endpoint(mock_http, make_provider, sse):
    requests = mock_http(lambda request: httpx.Response(200, content=sse(json.dumps(GENERATED))))

    chunks = [chunk async for chunk in make_provider(GeminiProvider, "g-key").stream([{"role": "user", "content": "Hi"}])]

    assert requests[0].url.path.endswith(":streamGenerateContent")
    assert requests[0].url.params["alt"] == "sse"
    assert chunks[0].content == "Bonjour"
    assert chunks[-1].response.response == "Bonjour"
    assert chunks[-1].usage.total_tokens == 7


@pytest.mark.asyncio
async def test_no_candidates_is_an_error(mock_http, make_provider):
    mock_http(lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))
    result = await make_provider(GeminiProvider, "g-key").query([{"role": "user", "content": "Hi"}])
    assert result.error == "No response from Gemini"


@pytest.mark.asyncio
async def test_list_models_paginates_and_filters(mock_http, make_provider):
    pages = {
        None: {
            "models": [
                {"name": "models/gemini-2.0-flash", "displayName": "Gemini 2.0 Flash",
                 "supportedGenerationMethods": ["generateContent"], "inputTokenLimit": 1048576},
                {"name": "models/text-embedding-004", "supportedGenerationMethods": ["embedContent"]},
            ],
            "nextPageToken": "page-2",
        },
        "page-2": {
            "models": [
                {"name": "models/gemini-1.5-pro", "supportedGenerationMethods": ["generateContent"]},
            ],
        },
    }
    requests = mock_http(lambda request: httpx.Response(200, json=pages[request.url.params.get("pageToken")]))

    models = await make_provider(GeminiProvider, "g-key").list_models()

    assert [m.id for m in models] == ["gemini-2.0-flash", "gemini-1.5-pro"]
    assert models[0].context_window == 1048576
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_list_models_falls_back_to_curated_list(mock_http, make_provider):
    mock_http(lambda request: httpx.Response(500, text="backend error"))
    models = await make_provider(GeminiProvider, "g-key").list_models()
    assert "gemini-1.5-flash" in [m.id for m in models]


@pytest.mark.asyncio
async def test_list_models_without_key_uses_curated_list(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json={"models": []}))
    models = await make_provider(GeminiProvider).list_models()
    assert models
    assert requests == []


@pytest.mark.asyncio
async def test_validate(mock_http, make_provider):
    requests = mock_http(lambda request: httpx.Response(200, json={"models": []}))
    result = await make_provider(GeminiProvider, "g-key").validate()
    assert result.valid is True
    assert requests[0].url.params["pageSize"] == "1"


@pytest.mark.asyncio
async def test_validate_bad_key(mock_http, make_provider):
    mock_http(lambda request: httpx.Response(403, json={"error": {"status": "PERMISSION_DENIED"}}))
    result = await make_provider(GeminiProvider, "g-key").validate()
    assert result.error == "Authentication failed: Invalid API key"
