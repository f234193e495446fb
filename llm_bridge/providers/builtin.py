"""
Built-in Provider Definitions

Pre-configured vendors with default endpoints, models and feature flags.
"""
from typing import Dict, Optional

from .types import (
    ApiProtocol,
    ModelDefinition,
    ProviderDefinition,
    ProviderType,
)


# Built-in provider definitions
BUILTIN_PROVIDERS: Dict[ProviderType, ProviderDefinition] = {
    ProviderType.OPENAI: ProviderDefinition(
        id=ProviderType.OPENAI,
        name="OpenAI",
        base_url="https://api.openai.com",
        default_model="gpt-4o-mini",
        supports_vision=True,
        supports_model_list=True,
        builtin_models=[
            ModelDefinition(id="gpt-4o", name="GPT-4o", context_window=128000, supports_vision=True),
            ModelDefinition(id="gpt-4o-mini", name="GPT-4o Mini", context_window=128000, supports_vision=True),
            ModelDefinition(id="gpt-4-turbo", name="GPT-4 Turbo", context_window=128000, supports_vision=True),
            ModelDefinition(id="gpt-4", name="GPT-4", context_window=8192),
            ModelDefinition(id="gpt-3.5-turbo", name="GPT-3.5 Turbo", context_window=16385),
        ],
    ),

    ProviderType.ANTHROPIC: ProviderDefinition(
        id=ProviderType.ANTHROPIC,
        name="Anthropic (Claude)",
        protocol=ApiProtocol.ANTHROPIC,
        base_url="https://api.anthropic.com",
        default_model="claude-3-5-sonnet-20241022",
        supports_vision=True,
        builtin_models=[
            ModelDefinition(id="claude-3-5-sonnet-20241022", name="Claude 3.5 Sonnet",
                            context_window=200000, supports_vision=True),
            ModelDefinition(id="claude-3-5-haiku-20241022", name="Claude 3.5 Haiku", context_window=200000),
            ModelDefinition(id="claude-3-opus-20240229", name="Claude 3 Opus",
                            context_window=200000, supports_vision=True),
            ModelDefinition(id="claude-3-sonnet-20240229", name="Claude 3 Sonnet",
                            context_window=200000, supports_vision=True),
            ModelDefinition(id="claude-3-haiku-20240307", name="Claude 3 Haiku",
                            context_window=200000, supports_vision=True),
        ],
    ),

    ProviderType.GEMINI: ProviderDefinition(
        id=ProviderType.GEMINI,
        name="Google Gemini",
        protocol=ApiProtocol.GEMINI,
        base_url="https://generativelanguage.googleapis.com/v1beta",
        default_model="gemini-1.5-flash",
        discovery_model="gemini-2.0-flash-exp",
        supports_vision=True,
        supports_model_list=True,
        builtin_models=[
            ModelDefinition(id="gemini-2.0-flash-exp", name="Gemini 2.0 Flash (Experimental)",
                            context_window=1000000, supports_vision=True),
            ModelDefinition(id="gemini-1.5-pro", name="Gemini 1.5 Pro",
                            context_window=2000000, supports_vision=True),
            ModelDefinition(id="gemini-1.5-flash", name="Gemini 1.5 Flash",
                            context_window=1000000, supports_vision=True),
        ],
    ),

    ProviderType.XAI: ProviderDefinition(
        id=ProviderType.XAI,
        name="xAI (Grok)",
        base_url="https://api.x.ai",
        default_model="grok-beta",
        discovery_model="grok-2-latest",
        supports_vision=True,
        builtin_models=[
            ModelDefinition(id="grok-2-1212", name="Grok 2 (December 2024)",
                            context_window=131072, supports_vision=True),
            ModelDefinition(id="grok-2-vision-1212", name="Grok 2 Vision (December 2024)",
                            context_window=8192, supports_vision=True),
            ModelDefinition(id="grok-beta", name="Grok Beta", context_window=131072),
        ],
    ),

    ProviderType.OPENROUTER: ProviderDefinition(
        id=ProviderType.OPENROUTER,
        name="OpenRouter",
        base_url="https://openrouter.ai/api",
        default_model="anthropic/claude-3.5-sonnet",
        supports_vision=True,
        supports_model_list=True,
        builtin_models=[
            ModelDefinition(id="anthropic/claude-3.5-sonnet", name="Claude 3.5 Sonnet",
                            context_window=200000, supports_vision=True),
            ModelDefinition(id="openai/gpt-4-turbo", name="GPT-4 Turbo",
                            context_window=128000, supports_vision=True),
            ModelDefinition(id="google/gemini-pro-1.5", name="Gemini Pro 1.5",
                            context_window=2000000, supports_vision=True),
            ModelDefinition(id="meta-llama/llama-3.1-70b-instruct", name="Llama 3.1 70B",
                            context_window=131072),
        ],
    ),

    ProviderType.FIREWORKS: ProviderDefinition(
        id=ProviderType.FIREWORKS,
        name="Fireworks AI",
        base_url="https://api.fireworks.ai/inference",
        default_model="accounts/fireworks/models/llama-v3p1-70b-instruct",
        discovery_model="accounts/fireworks/models/deepseek-v3p1",
        supports_vision=True,
        supports_model_list=True,
    ),

    ProviderType.OLLAMA: ProviderDefinition(
        id=ProviderType.OLLAMA,
        name="Ollama (Local)",
        protocol=ApiProtocol.OLLAMA,
        base_url="http://localhost:11434",
        default_model="llama3.2",
        requires_api_key=False,
        requires_endpoint=True,
        supports_vision=True,
        supports_model_list=True,
        builtin_models=[
            ModelDefinition(id="llama3.2", name="Llama 3.2"),
            ModelDefinition(id="mistral", name="Mistral"),
            ModelDefinition(id="codellama", name="Code Llama"),
        ],
    ),

    ProviderType.LMSTUDIO: ProviderDefinition(
        id=ProviderType.LMSTUDIO,
        name="LM Studio (Local)",
        base_url="http://localhost:1234",
        default_model="local-model",
        requires_api_key=False,
        requires_endpoint=True,
        supports_vision=True,
        supports_model_list=True,
    ),

    ProviderType.VLLM: ProviderDefinition(
        id=ProviderType.VLLM,
        name="vLLM (Local)",
        base_url=None,
        default_model="default",
        requires_api_key=False,
        requires_endpoint=True,
        supports_vision=True,
        supports_model_list=True,
    ),

    ProviderType.MINIMAX: ProviderDefinition(
        id=ProviderType.MINIMAX,
        name="Minimax",
        base_url="https://api.minimax.chat",
        default_model="abab6.5-chat",
        builtin_models=[
            ModelDefinition(id="abab6.5-chat", name="Abab 6.5 Chat", context_window=245000),
            ModelDefinition(id="abab6.5s-chat", name="Abab 6.5s Chat", context_window=245000),
            ModelDefinition(id="abab5.5-chat", name="Abab 5.5 Chat", context_window=16384),
        ],
    ),

    ProviderType.LOCAL_OPENAI_COMPATIBLE: ProviderDefinition(
        id=ProviderType.LOCAL_OPENAI_COMPATIBLE,
        name="OpenAI-Compatible",
        base_url=None,
        default_model="default",
        requires_api_key=False,
        requires_endpoint=True,
        supports_vision=True,
        supports_model_list=True,
    ),
}


def get_builtin_provider(provider_id) -> Optional[ProviderDefinition]:
    """
    Get a built-in provider definition by ID.

    Args:
        provider_id: ProviderType member or its string value

    Returns:
        ProviderDefinition if found, None otherwise
    """
    try:
        return BUILTIN_PROVIDERS.get(ProviderType(provider_id))
    except ValueError:
        return None


def get_all_builtin_providers() -> Dict[ProviderType, ProviderDefinition]:
    """
    Get all built-in provider definitions.

    Returns:
        Dictionary of ProviderType -> ProviderDefinition
    """
    return BUILTIN_PROVIDERS.copy()


def is_builtin_provider(provider_id) -> bool:
    return get_builtin_provider(provider_id) is not None
