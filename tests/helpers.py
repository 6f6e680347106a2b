"""Shared test helpers."""

import json
from typing import Any

import httpx

UPSTREAM_URL = "https://upstream.test/v1/chat/completions"
KEYS = ["key-one-aaaaaaaa", "key-two-bbbbbbbb", "key-three-cccccccc"]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Awaitable sleep that only records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeUpstream:
    """Scripted upstream answering through httpx.MockTransport.

    Each entry of ``replies`` is an ``httpx.Response``, an exception to
    raise, or a callable taking the request. The last entry repeats once
    the script runs out.
    """

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.replies)) - 1
        reply = self.replies[index]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        # Fresh copy so a repeated reply can be read again
        return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def keys_used(self) -> list[str]:
        return [r.headers["Authorization"].removeprefix("Bearer ") for r in self.requests]

    def body(self, n: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[n].content)


def sse_body(*frames: Any, done: bool = True) -> bytes:
    """Encode chat completion chunks as an upstream SSE body."""
    lines = [f"data: {json.dumps(frame, ensure_ascii=False)}\n\n" for frame in frames]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def parse_sse(text: str) -> list[tuple[str, dict[str, Any]]]:
    """Split a Messages API SSE body into (event, data) pairs."""
    events = []
    for block in text.strip().split("\n\n"):
        if not block:
            continue
        name, data = block.split("\n", 1)
        events.append((name.removeprefix("event: "), json.loads(data.removeprefix("data: "))))
    return events


def completion(
    content: str | None = "Hello!",
    finish_reason: str = "stop",
    tool_calls: list[dict[str, Any]] | None = None,
    usage: dict[str, int] | None = None,
) -> dict[str, Any]:
    """Build a non-streaming chat completion body."""
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    body: dict[str, Any] = {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "anthropic/claude-3.5-haiku",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
    }
    if usage is not None:
        body["usage"] = usage
    return body
