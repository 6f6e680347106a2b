"""Chat completions SSE stream -> Messages API SSE stream.

One ``StreamReframer`` serves one streamed exchange. It consumes raw
upstream chunks, keeps partial lines between reads, and emits Messages
API events as soon as each upstream delta is complete.

Only the tool call at index 0 gets a start event. Parallel tool calls at
other indices still produce ``input_json_delta`` events, but without a
preceding start for their index.
"""

import asyncio
import codecs
import json
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator

import httpx

from claude_relay.metrics import MetricsExporter
from claude_relay.utils import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
TOOL_USE_END_FIELD = "anthropic-internal-tool-use-end"


@dataclass
class StreamEvent:
    """A Messages API server-sent event."""

    event: str
    data: dict[str, Any]

    def encode(self) -> str:
        """Render as an SSE frame."""
        payload = json.dumps(self.data, separators=(",", ":"), ensure_ascii=False)
        return f"event: {self.event}\ndata: {payload}\n\n"


def convert_chunk(chunk: dict[str, Any]) -> dict[str, Any] | None:
    """Map one upstream chunk to a content event payload.

    Args:
        chunk: Parsed ``data:`` frame

    Returns:
        ``content_block_start`` or ``content_block_delta`` payload, or None
        when the chunk carries nothing to forward
    """
    choices = chunk.get("choices")
    if not choices:
        return None
    delta = choices[0].get("delta") or {}

    tool_calls = delta.get("tool_calls")
    if tool_calls:
        tool_call = tool_calls[0]
        function = tool_call.get("function") or {}
        if tool_call.get("index") == 0 and tool_call.get("id"):
            return {
                "type": "content_block_start",
                "index": tool_call["index"],
                "content_block": {
                    "type": "tool_use",
                    "id": tool_call["id"],
                    "name": function.get("name"),
                    "input": {},
                },
            }
        if function.get("arguments"):
            return {
                "type": "content_block_delta",
                "index": tool_call.get("index"),
                "delta": {
                    "type": "input_json_delta",
                    "partial_json": function["arguments"],
                },
            }

    if delta.get("content"):
        return {
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": delta["content"]},
        }
    return None


class StreamReframer:
    """Stateful re-framer for a single streamed exchange."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._started = False
        self._tool_use = False
        self._finished = False
        self._closed = False
        self._message_id: str | None = None
        self._model: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tool_use(self) -> bool:
        """Whether a tool call started during this exchange."""
        return self._tool_use

    def close(self) -> None:
        """Stop emitting; later feed/finish calls return nothing."""
        self._closed = True

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        """Consume one upstream read.

        Args:
            chunk: Raw bytes or decoded text from the upstream body

        Returns:
            Events completed by this chunk, in order
        """
        if self._closed or self._finished:
            return []

        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")

        events: list[StreamEvent] = []
        for line in lines:
            events.extend(self._process_line(line))
        return events

    def finish(self) -> list[StreamEvent]:
        """Flush the trailing line and emit the terminal event once."""
        if self._closed or self._finished:
            return []

        self._buffer += self._decoder.decode(b"", final=True)
        events = self._process_line(self._buffer)
        self._buffer = ""
        self._finished = True
        events.append(
            StreamEvent(
                "message_stop",
                {"type": "message_stop", TOOL_USE_END_FIELD: self._tool_use},
            )
        )
        return events

    async def reframe(self, chunks: AsyncIterable[bytes | str]) -> AsyncIterator[str]:
        """Translate an upstream byte stream into encoded SSE frames.

        A failed upstream read ends the output without a terminal event.
        Cancellation stops consumption and propagates quietly.

        Args:
            chunks: Upstream body iterator

        Yields:
            Encoded Messages API SSE frames
        """
        try:
            async for chunk in chunks:
                for event in self.feed(chunk):
                    if self._closed:
                        return
                    yield event.encode()
                if self._closed:
                    return
            for event in self.finish():
                yield event.encode()
        except httpx.HTTPError as e:
            logger.error("stream.upstream_failed", error=str(e) or type(e).__name__)
        except asyncio.CancelledError:
            logger.info("stream.cancelled")
            raise
        finally:
            self.close()

    def _process_line(self, line: str) -> list[StreamEvent]:
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return []

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_MARKER:
            return []

        try:
            chunk = json.loads(data)
            payload = convert_chunk(chunk)
        except (ValueError, LookupError, AttributeError, TypeError) as e:
            # One bad frame must not end the exchange
            logger.warning("stream.frame_parse_failed", frame=data[:200], error=str(e))
            MetricsExporter.record_frame_error()
            return []

        self._message_id = chunk.get("id") or self._message_id
        self._model = chunk.get("model") or self._model

        if payload is None:
            return []

        events: list[StreamEvent] = []
        if not self._started:
            events.append(self._message_start())
            self._started = True
        if payload["type"] == "content_block_start":
            self._tool_use = True
        events.append(StreamEvent("content_block_delta", payload))
        return events

    def _message_start(self) -> StreamEvent:
        return StreamEvent(
            "message_start",
            {
                "type": "message_start",
                "message": {
                    "id": self._message_id,
                    "type": "message",
                    "role": "assistant",
                    "content": [],
                    "model": self._model,
                    "stop_reason": None,
                    "stop_sequence": None,
                    "usage": {"input_tokens": 0, "output_tokens": 0},
                },
            },
        )
