"""Tests for the content model and the message adapter."""

import pytest
from pydantic import ValidationError

from llm_bridge.providers.content import (
    ChatMessage,
    DocumentBlock,
    ImageBlock,
    ImageSource,
    TextBlock,
    content_text,
    has_images,
    image_block,
    image_url_block,
    parse_data_url,
    text_block,
)
from llm_bridge.providers.message_adapter import adapt_content, adapt_messages, image_removal_notice
from llm_bridge.providers.types import ContentOrdering, InputModality, ModelCapabilities

A = image_block("AAAA")
B = image_block("BBBB", media_type="image/jpeg")
X = text_block("describe these")
Y = text_block("briefly")


def caps(**overrides):
    fields = {"model_id": "test-model", "provider": "vllm"}
    fields.update(overrides)
    return ModelCapabilities(**fields)


TEXT_ONLY = caps()
VISION = caps(input_modalities=[InputModality.TEXT, InputModality.IMAGE])
IMAGES_FIRST = caps(
    input_modalities=[InputModality.TEXT, InputModality.IMAGE],
    content_ordering=ContentOrdering.IMAGES_FIRST,
)
TEXT_FIRST = caps(
    input_modalities=[InputModality.TEXT, InputModality.IMAGE],
    content_ordering=ContentOrdering.TEXT_FIRST,
)


def test_plain_string_is_untouched():
    result = adapt_content("hello", TEXT_ONLY)
    assert result.content == "hello"
    assert result.images_removed is False


def test_no_capabilities_means_no_change():
    content = (A, X)
    assert adapt_content(content, None).content == content


def test_images_stripped_for_text_only_model():
    result = adapt_content((A, X, B, Y), TEXT_ONLY)
    assert result.content == (X, Y)
    assert result.images_removed is True


def test_strip_flag_false_when_nothing_removed():
    result = adapt_content((X, Y), TEXT_ONLY)
    assert result.images_removed is False


def test_images_first_is_a_stable_partition():
    result = adapt_content((A, X, B, Y), IMAGES_FIRST)
    assert result.content == (A, B, X, Y)

    result = adapt_content((X, A, Y, B), IMAGES_FIRST)
    assert result.content == (A, B, X, Y)


def test_text_first_is_a_stable_partition():
    result = adapt_content((A, X, B, Y), TEXT_FIRST)
    assert result.content == (X, Y, A, B)


def test_any_ordering_keeps_caller_order():
    result = adapt_content((X, A, Y, B), VISION)
    assert result.content == (X, A, Y, B)


def test_caller_content_is_not_mutated():
    original = (X, A)
    adapt_content(original, IMAGES_FIRST)
    assert original == (X, A)


@pytest.mark.parametrize("capabilities", [TEXT_ONLY, VISION, IMAGES_FIRST, TEXT_FIRST])
def test_adapting_twice_changes_nothing(capabilities):
    document = DocumentBlock(name="report.pdf", pages=(A, B), text="page text")
    content = (X, image_url_block("data:image/webp;base64,WWWW"), document, Y)

    once = adapt_content(content, capabilities).content
    twice = adapt_content(once, capabilities).content
    assert once == twice


def test_data_url_normalized_to_base64_source():
    result = adapt_content((image_url_block("data:image/jpeg;base64,/9j/4AAQ"),), VISION)
    (image,) = result.content
    assert image.source.encoding == "base64"
    assert image.source.media_type == "image/jpeg"
    assert image.source.data == "/9j/4AAQ"


def test_remote_url_left_alone():
    remote = image_url_block("https://example.com/cat.png")
    assert adapt_content((remote,), VISION).content == (remote,)


def test_document_native_when_model_reads_pdfs():
    document = DocumentBlock(name="a.pdf", data="JVBERi0=", text="hello")
    capabilities = caps(
        input_modalities=[InputModality.TEXT, InputModality.IMAGE, InputModality.PDF],
        supports_pdf_native=True,
    )
    assert adapt_content((document,), capabilities).content == (document,)


def test_document_pages_when_model_prefers_page_images():
    document = DocumentBlock(name="a.pdf", pages=(A, B), text="hello")
    capabilities = caps(
        input_modalities=[InputModality.TEXT, InputModality.IMAGE],
        supports_pdf_as_images=True,
        content_ordering=ContentOrdering.IMAGES_FIRST,
    )
    assert adapt_content((X, document), capabilities).content == (A, B, X)


def test_document_pages_when_no_text_available():
    document = DocumentBlock(pages=(A,))
    assert adapt_content((document,), VISION).content == (A,)


def test_document_text_for_text_only_model():
    document = DocumentBlock(name="a.pdf", pages=(A,), text="hello")
    result = adapt_content((document,), TEXT_ONLY)
    assert result.content == (TextBlock(text="[Document: a.pdf]\nhello"),)
    assert result.images_removed is False


def test_document_placeholder_when_nothing_fits():
    document = DocumentBlock(name="scan.pdf", pages=(A, B))
    (placeholder,) = adapt_content((document,), TEXT_ONLY).content
    assert "2 page image(s) omitted" in placeholder.text


def test_adapt_messages_reports_any_removal():
    messages = [
        {"role": "system", "content": "be brief"},
        ChatMessage(role="user", content=(X, A)),
        {"role": "assistant", "content": "ok"},
    ]
    result = adapt_messages(messages, TEXT_ONLY)
    assert result.images_removed is True
    assert [m.role for m in result.messages] == ["system", "user", "assistant"]
    assert result.messages[1].content == (X,)


def test_image_removal_notice_text():
    assert image_removal_notice("llama3") == (
        "[Note: images removed because llama3 does not support image input]\n\n"
    )


def test_content_helpers():
    assert content_text((X, A, Y)) == "describe these\nbriefly"
    assert has_images((X, A)) is True
    assert has_images("plain") is False
    assert parse_data_url("https://example.com/a.png") is None


def test_content_validation():
    with pytest.raises(ValidationError):
        ImageSource(encoding="base64")
    with pytest.raises(ValidationError):
        DocumentBlock(name="empty.pdf")
    with pytest.raises(ValidationError):
        ChatMessage(role="tool", content="x")

    message = ChatMessage.model_validate(
        {"role": "user", "content": [{"type": "text", "text": "hi"}, {"type": "image", "source": {"data": "QQ=="}}]}
    )
    assert isinstance(message.content[1], ImageBlock)
