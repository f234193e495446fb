"""
Streaming decoders.

Vendors stream either Server-Sent Events (``data: {...}`` lines) or
newline-delimited JSON. A decoder is fed raw network chunks, which may split
lines and even multi-byte characters anywhere, and yields StreamEvents for
every complete line. Malformed lines are skipped, never fatal.
"""
from __future__ import annotations

import codecs
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


@dataclass
class StreamEvent:
    """What one decoded line contributed to the response."""
    text: str = ""
    model: Optional[str] = None
    tokens_in: Optional[int] = None
    tokens_out: Optional[int] = None
    finish_reason: Optional[str] = None
    error: Optional[str] = None
    done: bool = False


class LineBuffer:
    """Reassembles lines across chunk boundaries, carrying the partial tail."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._pending += chunk
        lines = self._pending.split("\n")
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> List[str]:
        self._pending += self._decoder.decode(b"", final=True)
        remainder, self._pending = self._pending.rstrip("\r"), ""
        return [remainder] if remainder else []


class StreamDecoder(ABC):
    """Base decoder: line splitting plus per-line parsing by subclasses."""

    def __init__(self):
        self._lines = LineBuffer()
        self.finished = False

    def feed(self, chunk: Union[bytes, str]) -> List[StreamEvent]:
        return self._parse_lines(self._lines.feed(chunk))

    def close(self) -> List[StreamEvent]:
        """Parse whatever partial line remains at end of stream."""
        return self._parse_lines(self._lines.flush())

    def _parse_lines(self, lines: List[str]) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for line in lines:
            if self.finished:
                break
            event = self.parse_line(line)
            if event is None:
                continue
            if event.done:
                self.finished = True
            events.append(event)
        return events

    @abstractmethod
    def parse_line(self, line: str) -> Optional[StreamEvent]:
        """Turn one complete line into an event, or None to skip it."""
        pass


def _load_json(payload: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Skipping malformed stream line: {payload[:120]}")
        return None
    return parsed if isinstance(parsed, dict) else None


class SSEDecoder(StreamDecoder):
    """Handles SSE framing; subclasses interpret the JSON payload."""

    def parse_line(self, line: str) -> Optional[StreamEvent]:
        stripped = line.strip()
        if not stripped or stripped.startswith(":"):
            return None
        if not stripped.startswith(SSE_DATA_PREFIX):
            return None
        payload = stripped[len(SSE_DATA_PREFIX):].strip()
        if payload == SSE_DONE:
            return StreamEvent(done=True)
        data = _load_json(payload)
        if data is None:
            return None
        return self.parse_payload(data)

    @abstractmethod
    def parse_payload(self, data: Dict[str, Any]) -> Optional[StreamEvent]:
        pass


class OpenAIStreamDecoder(SSEDecoder):
    """Chat-completions chunks: ``choices[0].delta.content`` plus optional usage."""

    def parse_payload(self, data: Dict[str, Any]) -> Optional[StreamEvent]:
        if isinstance(data.get("error"), dict):
            return StreamEvent(error=str(data["error"].get("message") or data["error"]), done=True)

        event = StreamEvent(model=data.get("model"))
        choices = data.get("choices") or []
        if choices and isinstance(choices[0], dict):
            choice = choices[0]
            delta = choice.get("delta") or {}
            event.text = delta.get("content") or choice.get("text") or ""
            event.finish_reason = choice.get("finish_reason")

        usage = data.get("usage")
        if isinstance(usage, dict):
            event.tokens_in = usage.get("prompt_tokens")
            event.tokens_out = usage.get("completion_tokens")
        return event


class AnthropicStreamDecoder(SSEDecoder):
    """Messages API events; ``event:`` lines are ignored, the payload carries ``type``."""

    def parse_payload(self, data: Dict[str, Any]) -> Optional[StreamEvent]:
        event_type = data.get("type")
        if event_type == "message_start":
            message = data.get("message") or {}
            usage = message.get("usage") or {}
            return StreamEvent(model=message.get("model"), tokens_in=usage.get("input_tokens"))
        if event_type == "content_block_delta":
            delta = data.get("delta") or {}
            return StreamEvent(text=delta.get("text") or "")
        if event_type == "message_delta":
            usage = data.get("usage") or {}
            delta = data.get("delta") or {}
            return StreamEvent(tokens_out=usage.get("output_tokens"), finish_reason=delta.get("stop_reason"))
        if event_type == "message_stop":
            return StreamEvent(done=True)
        if event_type == "error":
            error = data.get("error") or {}
            return StreamEvent(error=str(error.get("message") or error), done=True)
        return None


class GeminiStreamDecoder(SSEDecoder):
    """streamGenerateContent with ``alt=sse``."""

    def parse_payload(self, data: Dict[str, Any]) -> Optional[StreamEvent]:
        event = StreamEvent(model=data.get("modelVersion"))
        candidates = data.get("candidates") or []
        if candidates and isinstance(candidates[0], dict):
            candidate = candidates[0]
            parts = (candidate.get("content") or {}).get("parts") or []
            event.text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
            event.finish_reason = candidate.get("finishReason")

        usage = data.get("usageMetadata")
        if isinstance(usage, dict):
            event.tokens_in = usage.get("promptTokenCount")
            event.tokens_out = usage.get("candidatesTokenCount")
        return event


class OllamaStreamDecoder(StreamDecoder):
    """Newline-delimited JSON from ``/api/chat``."""

    def parse_line(self, line: str) -> Optional[StreamEvent]:
        stripped = line.strip()
        if not stripped:
            return None
        data = _load_json(stripped)
        if data is None:
            return None
        if data.get("error"):
            return StreamEvent(error=str(data["error"]), done=True)

        message = data.get("message") or {}
        event = StreamEvent(text=message.get("content") or "", model=data.get("model"))
        if data.get("done"):
            event.tokens_in = data.get("prompt_eval_count")
            event.tokens_out = data.get("eval_count")
            event.finish_reason = data.get("done_reason")
            event.done = True
        return event


class StreamAccumulator:
    """Folds StreamEvents into the final response fields."""

    def __init__(self, model: Optional[str] = None):
        self._parts: List[str] = []
        self.model = model
        self.tokens_in: Optional[int] = None
        self.tokens_out: Optional[int] = None
        self.finish_reason: Optional[str] = None
        self.error: Optional[str] = None

    def add_text(self, text: str) -> None:
        if text:
            self._parts.append(text)

    def apply(self, event: StreamEvent) -> None:
        self.add_text(event.text)
        if event.model:
            self.model = event.model
        if event.tokens_in is not None:
            self.tokens_in = event.tokens_in
        if event.tokens_out is not None:
            self.tokens_out = event.tokens_out
        if event.finish_reason:
            self.finish_reason = event.finish_reason
        if event.error:
            self.error = event.error

    @property
    def text(self) -> str:
        return "".join(self._parts)
