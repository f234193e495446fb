"""
Provider-specific exceptions
"""

from typing import Optional

MAX_ERROR_BODY_CHARS = 500


class LLMBridgeError(Exception):
    """Base exception for llm_bridge errors"""


class ProviderError(LLMBridgeError):
    """Base exception for provider-related errors"""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        self.message = message
        super().__init__(message)


class ConfigurationError(ProviderError):
    """Raised when a provider is missing its API key, endpoint or model"""


class ProviderHTTPError(ProviderError):
    """Raised when a vendor responds with a non-2xx status"""

    def __init__(self, status_code: int, body: str, provider: Optional[str] = None):
        self.status_code = status_code
        self.body = body or ""
        super().__init__(f"HTTP {status_code}: {self.body[:MAX_ERROR_BODY_CHARS]}", provider)


class UnknownProviderError(ProviderError):
    """Raised by the factory for an unsupported provider type"""

    def __init__(self, provider: str):
        super().__init__(f"Unknown provider type: {provider}", provider)
