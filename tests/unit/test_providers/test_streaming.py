"""Tests for the SSE / NDJSON stream decoders."""

import json

from llm_bridge.providers.streaming import (
    AnthropicStreamDecoder,
    GeminiStreamDecoder,
    LineBuffer,
    OllamaStreamDecoder,
    OpenAIStreamDecoder,
    StreamAccumulator,
)


def _openai_chunk(text, **extra):
    payload = {"model": "gpt-4o-mini", "choices": [{"delta": {"content": text}, "finish_reason": None}]}
    payload.update(extra)
    return f"data: {json.dumps(payload)}\n\n"


def _collect(decoder, chunks):
    accumulator = StreamAccumulator()
    for chunk in chunks:
        for event in decoder.feed(chunk):
            accumulator.apply(event)
    for event in decoder.close():
        accumulator.apply(event)
    return accumulator


def test_line_buffer_carries_partial_line():
    buffer = LineBuffer()
    assert buffer.feed(b"data: one\ndata: t") == ["data: one"]
    assert buffer.feed(b"wo\r\n") == ["data: two"]
    assert buffer.flush() == []


def test_line_buffer_rejoins_split_multibyte_character():
    encoded = "data: café ✓\n".encode("utf-8")
    buffer = LineBuffer()
    lines = []
    for i in range(len(encoded)):
        lines.extend(buffer.feed(encoded[i:i + 1]))
    assert lines == ["data: café ✓"]


def test_line_buffer_flush_returns_unterminated_tail():
    buffer = LineBuffer()
    assert buffer.feed(b'{"done": true}') == []
    assert buffer.flush() == ['{"done": true}']


def test_openai_stream_split_at_every_byte():
    raw = (_openai_chunk("Hel") + _openai_chunk("lo") + "data: [DONE]\n\n").encode("utf-8")
    accumulator = _collect(OpenAIStreamDecoder(), [raw[i:i + 1] for i in range(len(raw))])
    assert accumulator.text == "Hello"
    assert accumulator.model == "gpt-4o-mini"


def test_openai_stream_skips_noise_and_malformed_lines():
    raw = (
        ": keep-alive\n"
        "event: ping\n"
        "data: {not json\n"
        "\n"
        + _openai_chunk("ok")
        + "data: [DONE]\n\n"
    )
    decoder = OpenAIStreamDecoder()
    accumulator = _collect(decoder, [raw])
    assert accumulator.text == "ok"
    assert decoder.finished is True


def test_openai_stream_ignores_lines_after_done():
    decoder = OpenAIStreamDecoder()
    events = decoder.feed(("data: [DONE]\n" + _openai_chunk("late")).encode())
    assert len(events) == 1
    assert events[0].done is True


def test_openai_stream_usage_chunk():
    usage = {"model": "gpt-4o-mini", "choices": [], "usage": {"prompt_tokens": 12, "completion_tokens": 3}}
    accumulator = _collect(OpenAIStreamDecoder(), [f"data: {json.dumps(usage)}\n\n"])
    assert (accumulator.tokens_in, accumulator.tokens_out) == (12, 3)


def test_openai_stream_error_payload():
    decoder = OpenAIStreamDecoder()
    (event,) = decoder.feed('data: {"error": {"message": "context length exceeded"}}\n')
    assert event.error == "context length exceeded"
    assert decoder.finished is True


def test_anthropic_stream_events():
    lines = [
        "event: message_start",
        'data: {"type": "message_start", "message": {"model": "claude-3-5-haiku-20241022", '
        '"usage": {"input_tokens": 9}}}',
        "event: content_block_delta",
        'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "The answer"}}',
        'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": " is 4."}}',
        'data: {"type": "ping"}',
        'data: {"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 5}}',
        'data: {"type": "message_stop"}',
    ]
    decoder = AnthropicStreamDecoder()
    accumulator = _collect(decoder, ["\n".join(lines) + "\n"])

    assert accumulator.text == "The answer is 4."
    assert accumulator.tokens_in == 9
    assert accumulator.tokens_out == 5
    assert accumulator.finish_reason == "end_turn"
    assert decoder.finished is True


def test_anthropic_stream_error_event():
    decoder = AnthropicStreamDecoder()
    (event,) = decoder.feed('data: {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}\n')
    assert event.error == "Overloaded"


def test_gemini_stream_events():
    first = {"candidates": [{"content": {"parts": [{"text": "Bon"}]}}], "modelVersion": "gemini-2.0-flash"}
    last = {
        "candidates": [{"content": {"parts": [{"text": "jour"}]}, "finishReason": "STOP"}],
        "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 2},
    }
    raw = f"data: {json.dumps(first)}\r\n\r\ndata: {json.dumps(last)}\r\n\r\n"
    accumulator = _collect(GeminiStreamDecoder(), [raw])

    assert accumulator.text == "Bonjour"
    assert accumulator.finish_reason == "STOP"
    assert (accumulator.tokens_in, accumulator.tokens_out) == (4, 2)


def test_ollama_ndjson_stream_without_trailing_newline():
    lines = [
        {"model": "llama3.2", "message": {"role": "assistant", "content": "Hi"}, "done": False},
        {"model": "llama3.2", "message": {"role": "assistant", "content": " there"}, "done": False},
        {"model": "llama3.2", "message": {"role": "assistant", "content": ""}, "done": True,
         "done_reason": "stop", "prompt_eval_count": 7, "eval_count": 2},
    ]
    raw = "\n".join(json.dumps(line) for line in lines).encode("utf-8")
    decoder = OllamaStreamDecoder()
    accumulator = _collect(decoder, [raw[:25], raw[25:]])

    assert accumulator.text == "Hi there"
    assert (accumulator.tokens_in, accumulator.tokens_out) == (7, 2)
    assert decoder.finished is True


def test_ollama_error_line():
    (event,) = OllamaStreamDecoder().feed(b'{"error": "model not found"}\n')
    assert event.error == "model not found"
