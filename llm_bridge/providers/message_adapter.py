"""
Message Adapter

Rewrites provider-neutral content into a shape the target model accepts:

1. documents become native blocks, page images or extracted text
2. images are stripped when the model has no image input
3. images are moved before (or after) text when the model needs it
4. data-URL images are normalized to inline base64 sources

Documents are expanded before the ordering step so page images land in the
right place and adapting an already adapted value changes nothing.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from .content import (
    ChatMessage,
    ContentBlock,
    DocumentBlock,
    ImageBlock,
    MessageContent,
    TextBlock,
    coerce_message,
    parse_data_url,
)
from .types import ContentOrdering, ModelCapabilities

logger = logging.getLogger(__name__)

IMAGE_REMOVAL_NOTICE = "[Note: images removed because {model} does not support image input]\n\n"


def image_removal_notice(model_id: str) -> str:
    return IMAGE_REMOVAL_NOTICE.format(model=model_id)


class AdaptedContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: MessageContent
    images_removed: bool = False


class AdaptedMessages(BaseModel):
    model_config = ConfigDict(frozen=True)

    messages: Tuple[ChatMessage, ...]
    images_removed: bool = False


def _expand_document(block: DocumentBlock, capabilities: ModelCapabilities) -> List[ContentBlock]:
    if capabilities.supports_pdf and block.data:
        return [block]
    if block.pages and capabilities.supports_vision and (
        capabilities.supports_pdf_as_images or not block.text
    ):
        return list(block.pages)
    if block.text is not None:
        label = f"[Document: {block.name}]\n" if block.name else ""
        return [TextBlock(text=f"{label}{block.text}")]
    page_count = len(block.pages or ())
    name = f" {block.name}" if block.name else ""
    return [TextBlock(text=f"[Document{name}: {page_count} page image(s) omitted, no text available]")]


def _normalize_image(block: ImageBlock) -> ImageBlock:
    if block.source.is_data_url:
        source = parse_data_url(block.source.url)
        if source is not None:
            return ImageBlock(source=source)
    return block


def _stable_partition(blocks: Sequence[ContentBlock], images_first: bool) -> List[ContentBlock]:
    images = [b for b in blocks if isinstance(b, ImageBlock)]
    others = [b for b in blocks if not isinstance(b, ImageBlock)]
    return images + others if images_first else others + images


def adapt_content(
    content: MessageContent,
    capabilities: Optional[ModelCapabilities],
) -> AdaptedContent:
    """
    Adapt one message's content to a model.

    Without capabilities the content is returned unchanged. Plain strings
    are never modified.
    """
    if capabilities is None or isinstance(content, str):
        return AdaptedContent(content=content)

    blocks: List[ContentBlock] = []
    for block in content:
        if isinstance(block, DocumentBlock):
            blocks.extend(_expand_document(block, capabilities))
        else:
            blocks.append(block)

    images_removed = False
    if not capabilities.supports_vision:
        kept = [b for b in blocks if not isinstance(b, ImageBlock)]
        images_removed = len(kept) != len(blocks)
        blocks = kept
    elif capabilities.content_ordering == ContentOrdering.IMAGES_FIRST:
        blocks = _stable_partition(blocks, images_first=True)
    elif capabilities.content_ordering == ContentOrdering.TEXT_FIRST:
        blocks = _stable_partition(blocks, images_first=False)

    blocks = [_normalize_image(b) if isinstance(b, ImageBlock) else b for b in blocks]
    return AdaptedContent(content=tuple(blocks), images_removed=images_removed)


def adapt_messages(
    messages: Sequence,
    capabilities: Optional[ModelCapabilities],
) -> AdaptedMessages:
    """Adapt every message; ``images_removed`` is set if any message lost an image."""
    adapted: List[ChatMessage] = []
    images_removed = False
    for message in messages:
        message = coerce_message(message)
        result = adapt_content(message.content, capabilities)
        images_removed = images_removed or result.images_removed
        adapted.append(ChatMessage(role=message.role, content=result.content))

    if images_removed and capabilities is not None:
        logger.info(f"Removed image content for {capabilities.model_id} (no image input support)")
    return AdaptedMessages(messages=tuple(adapted), images_removed=images_removed)
