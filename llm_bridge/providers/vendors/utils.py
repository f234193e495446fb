"""
Shared wire helpers for vendor providers.
"""
from typing import Any, Dict, List, Optional, Sequence, Union

from ..content import ChatMessage, DocumentBlock, ImageBlock, MessageContent, TextBlock


def to_openai_content(content: MessageContent) -> Union[str, List[Dict[str, Any]]]:
    """Convert neutral content to chat-completions content parts, keeping block order."""
    if isinstance(content, str):
        return content

    parts: List[Dict[str, Any]] = []
    for block in content:
        if isinstance(block, TextBlock):
            parts.append({"type": "text", "text": block.text})
        elif isinstance(block, ImageBlock):
            parts.append({"type": "image_url", "image_url": {"url": block.source.as_data_url()}})
        elif isinstance(block, DocumentBlock):
            if block.data:
                parts.append({
                    "type": "file",
                    "file": {
                        "filename": block.name or "document.pdf",
                        "file_data": f"data:{block.media_type};base64,{block.data}",
                    },
                })
            elif block.text:
                parts.append({"type": "text", "text": block.text})
    return parts


def to_openai_messages(
    messages: Sequence[ChatMessage],
    system_prompt: Optional[str] = None,
) -> List[Dict[str, Any]]:
    payload: List[Dict[str, Any]] = []
    if system_prompt:
        payload.append({"role": "system", "content": system_prompt})
    for message in messages:
        payload.append({"role": message.role, "content": to_openai_content(message.content)})
    return payload


def extract_openai_text(data: Dict[str, Any]) -> Optional[str]:
    """
    Pull the assistant text out of a chat-completions response.

    Returns:
        The text, or None when the response has no choices
    """
    choices = data.get("choices") or []
    if not choices:
        return None
    choice = choices[0] or {}
    message = choice.get("message") or {}
    content = message.get("content")
    if content is None:
        content = choice.get("text", "")
    if isinstance(content, list):
        return "".join(part.get("text", "") for part in content if isinstance(part, dict))
    return content or ""


def display_name_from_id(model_id: str) -> str:
    """``accounts/fireworks/models/llama-v3p1`` -> ``llama-v3p1``"""
    return model_id.rsplit("/", 1)[-1] if model_id else model_id
