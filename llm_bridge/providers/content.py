"""
Content Model

Provider-neutral message content: either a plain string or an ordered
tuple of text, image and document blocks. All models are immutable so
adapters always build new values instead of editing the caller's.
"""
import re
from typing import Annotated, Iterable, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

_DATA_URL_RE = re.compile(r"^data:(?P<media_type>[^;,]+)?(?P<params>(;[^;,]+)*);base64,(?P<data>.*)$", re.DOTALL)


class ImageSource(BaseModel):
    """Where image bytes live: inline base64 or a URL (possibly a data URL)"""
    model_config = ConfigDict(frozen=True)

    encoding: Literal["base64", "url"] = "base64"
    media_type: Optional[str] = None
    data: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload(self):
        if self.encoding == "base64" and not self.data:
            raise ValueError("base64 image source requires data")
        if self.encoding == "url" and not self.url:
            raise ValueError("url image source requires url")
        return self

    @property
    def is_data_url(self) -> bool:
        return self.encoding == "url" and bool(self.url) and self.url.startswith("data:")

    def as_data_url(self) -> str:
        """Render as a URL, building a data URL for inline bytes."""
        if self.encoding == "url":
            return self.url
        return f"data:{self.media_type or 'image/png'};base64,{self.data}"


class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    source: ImageSource


class DocumentBlock(BaseModel):
    """A document (typically a PDF) with pre-rendered pages and/or extracted text"""
    model_config = ConfigDict(frozen=True)

    type: Literal["document"] = "document"
    name: Optional[str] = None
    media_type: str = "application/pdf"
    data: Optional[str] = Field(default=None, description="Raw document bytes, base64")
    pages: Optional[Tuple[ImageBlock, ...]] = None
    text: Optional[str] = None

    @model_validator(mode="after")
    def _check_representation(self):
        if self.pages is None and self.text is None:
            raise ValueError("document requires pages or text")
        return self


ContentBlock = Annotated[Union[TextBlock, ImageBlock, DocumentBlock], Field(discriminator="type")]
MessageContent = Union[str, Tuple[ContentBlock, ...]]


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: MessageContent


def text_block(text: str) -> TextBlock:
    return TextBlock(text=text)


def image_block(data: str, media_type: str = "image/png") -> ImageBlock:
    return ImageBlock(source=ImageSource(encoding="base64", media_type=media_type, data=data))


def image_url_block(url: str) -> ImageBlock:
    return ImageBlock(source=ImageSource(encoding="url", url=url))


def parse_data_url(url: str) -> Optional[ImageSource]:
    """Split ``data:<type>;base64,<payload>`` into a base64 source, or None."""
    match = _DATA_URL_RE.match(url or "")
    if not match:
        return None
    return ImageSource(
        encoding="base64",
        media_type=match.group("media_type") or "image/png",
        data=match.group("data"),
    )


def iter_blocks(content: MessageContent) -> Iterable[ContentBlock]:
    if isinstance(content, str):
        return (TextBlock(text=content),) if content else ()
    return content


def content_text(content: MessageContent, separator: str = "\n") -> str:
    """Concatenate the text blocks (and document text) of a content value."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, TextBlock):
            parts.append(block.text)
        elif isinstance(block, DocumentBlock) and block.text:
            parts.append(block.text)
    return separator.join(parts)


def has_images(content: MessageContent) -> bool:
    return not isinstance(content, str) and any(isinstance(b, ImageBlock) for b in content)


def has_documents(content: MessageContent) -> bool:
    return not isinstance(content, str) and any(isinstance(b, DocumentBlock) for b in content)


def coerce_message(message) -> ChatMessage:
    """Accept ChatMessage instances or plain ``{"role", "content"}`` dicts."""
    if isinstance(message, ChatMessage):
        return message
    return ChatMessage.model_validate(message)
