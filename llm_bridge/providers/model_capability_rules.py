"""
Model capability inference helpers.

Rules in this module are model-id based so they work across direct
providers, local servers and aggregators (for example OpenRouter, where
ids look like ``qwen/qwen2.5-vl-72b-instruct``). They are the lowest
priority capability source and only fill gaps.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Optional

from .types import CapabilitySource, ContentOrdering, InputModality, ModelCapabilities

_VISION_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"qwen.*vl",
        r"qwen.*vision",
        r"llava",
        r"llama.*4.*(maverick|scout)",
        r"cogvlm",
        r"internvl",
        r"phi.*vision",
        r"minicpm.*v",
        r"deepseek.*vl",
        r"deepseek.*vision",
        r"yi.*vl",
        r"glm.*v",
        r"nemotron.*vl",
        r"-vl\b",
        r"-omni\b",
        r"vision",
        r"gpt-4o",
        r"gpt-4-turbo",
        r"gpt-5",
        r"claude-3",
        r"claude-4",
        r"gemini",
    )
]

# Families whose chat templates expect image blocks before the text prompt.
_IMAGES_FIRST_PATTERNS = [
    re.compile(r"qwen.*vl", re.IGNORECASE),
    re.compile(r"llama.*4", re.IGNORECASE),
]


def normalize_model_id(model_id: str) -> str:
    """Normalize model identifiers for rule matching."""
    normalized = str(model_id or "").strip().lower()
    if not normalized:
        return ""
    normalized = normalized.replace("\\", "/")
    # Drop variant suffixes like ":free" or Ollama tags like ":13b".
    return normalized.split(":", 1)[0]


def _normalize_provider_id(provider_id: Optional[str]) -> str:
    value = getattr(provider_id, "value", provider_id)
    return str(value or "").strip().lower()


def infer_vision_support(model_id: str) -> Optional[bool]:
    """
    Infer whether a model accepts image input.

    Returns:
        True when a known vision family matches; None when no rule applies.
    """
    normalized = normalize_model_id(model_id)
    if not normalized:
        return None
    if any(pattern.search(normalized) for pattern in _VISION_PATTERNS):
        return True
    return None


def infer_content_ordering(model_id: str) -> Optional[ContentOrdering]:
    """Return IMAGES_FIRST for families that need images ahead of text."""
    normalized = normalize_model_id(model_id)
    if not normalized:
        return None
    if any(pattern.search(normalized) for pattern in _IMAGES_FIRST_PATTERNS):
        return ContentOrdering.IMAGES_FIRST
    return None


def infer_capability_overrides(model_id: str) -> Dict[str, Any]:
    """Return sparse capability fields inferred from the model ID."""
    overrides: Dict[str, Any] = {}

    if infer_vision_support(model_id):
        overrides["input_modalities"] = [InputModality.TEXT, InputModality.IMAGE]

    ordering = infer_content_ordering(model_id)
    if ordering is not None:
        overrides["content_ordering"] = ordering

    return overrides


def infer_capabilities_from_name(
    model_id: str,
    provider_id: Optional[str] = None,
) -> ModelCapabilities:
    """
    Build a complete capability record from the model name alone.

    Models that match no rule are treated as text-only with free ordering.
    """
    return ModelCapabilities(
        model_id=model_id,
        provider=_normalize_provider_id(provider_id),
        source=CapabilitySource.NAME_HEURISTIC,
        **infer_capability_overrides(model_id),
    )
