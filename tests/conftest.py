"""Shared pytest fixtures for all tests."""

import httpx
import pytest

from llm_bridge.config import Settings
from llm_bridge.providers import transport
from llm_bridge.providers.capability_probes import CapabilityProber
from llm_bridge.providers.capability_registry import CapabilityRegistry


@pytest.fixture
def test_settings():
    """Settings with background probing off and a roomy rate limit."""
    return Settings(
        auto_probe=False,
        rate_limit_capacity=1000,
        rate_limit_refill_per_second=1000.0,
        request_timeout=5.0,
        probe_timeout=5.0,
        list_models_timeout=5.0,
    )


@pytest.fixture
def registry():
    """Fresh registry seeded from the bundled YAML."""
    return CapabilityRegistry()


@pytest.fixture
def empty_registry():
    """Fresh registry with no static seed."""
    return CapabilityRegistry(static_entries=[])


@pytest.fixture
def prober(empty_registry, test_settings):
    return CapabilityProber(empty_registry, test_settings)


@pytest.fixture
def make_provider(registry, test_settings):
    """Build a vendor provider wired to the seeded test registry."""
    prober = CapabilityProber(registry, test_settings)

    def _make(provider_class, api_key=None, endpoint=None, **kwargs):
        return provider_class(
            api_key,
            endpoint,
            registry=registry,
            prober=prober,
            settings=test_settings,
            **kwargs,
        )

    return _make


@pytest.fixture
def mock_http(monkeypatch):
    """
    Route every outgoing request to a handler.

    Usage: ``requests = mock_http(handler)``; the returned list collects the
    httpx.Request objects seen by the handler.
    """
    def install(handler):
        seen = []

        async def recording_handler(request: httpx.Request):
            seen.append(request)
            result = handler(request)
            if hasattr(result, "__await__"):
                result = await result
            return result

        def fake_client(timeout, transport_override=None):
            return httpx.AsyncClient(timeout=timeout, transport=httpx.MockTransport(recording_handler))

        monkeypatch.setattr(transport, "create_http_client", fake_client)
        return seen

    return install


def _sse(*payloads: str) -> bytes:
    return "".join(f"data: {payload}\n\n" for payload in payloads).encode("utf-8")


async def _chunked(*parts: bytes):
    for part in parts:
        yield part


@pytest.fixture
def sse():
    """Encode payload strings as SSE ``data:`` lines."""
    return _sse


@pytest.fixture
def chunked():
    """Async byte stream yielding each part as a separate network read."""
    return _chunked
