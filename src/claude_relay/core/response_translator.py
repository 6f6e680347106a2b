"""Chat completions response -> Messages API response."""

import json
import time
from typing import Any

from claude_relay.errors import TranslationError

FINISH_REASON_MAP = {"stop": "end_turn"}


def map_usage(usage: dict[str, Any] | None) -> dict[str, Any] | None:
    """Rename token counters; None when upstream sent no usage."""
    if not usage:
        return None
    return {
        "input_tokens": usage.get("prompt_tokens"),
        "output_tokens": usage.get("completion_tokens"),
    }


def _tool_use_block(call: dict[str, Any]) -> dict[str, Any]:
    function = call.get("function") or {}
    arguments = function.get("arguments")
    try:
        tool_input = json.loads(arguments)
    except (TypeError, ValueError) as e:
        raise TranslationError(
            f"Invalid arguments for tool call {call.get('id')}: {e}"
        ) from e
    return {
        "type": "tool_use",
        "id": call.get("id"),
        "name": function.get("name"),
        "input": tool_input,
    }


def translate_response(response: dict[str, Any]) -> dict[str, Any]:
    """Convert a non-streaming chat completion to a Messages API response.

    Args:
        response: Parsed upstream response body

    Returns:
        Messages API response, or the input unchanged when it has no choices

    Raises:
        TranslationError: If tool call arguments are not valid JSON or the
            choice is not shaped like a chat completion
    """
    choices = response.get("choices")
    if not choices:
        return response

    try:
        return _translate_choice(response, choices[0])
    except (AttributeError, LookupError, TypeError) as e:
        raise TranslationError(f"Malformed upstream completion: {e!r}") from e


def _translate_choice(response: dict[str, Any], choice: dict[str, Any]) -> dict[str, Any]:
    message = choice.get("message") or {}
    tool_calls = message.get("tool_calls")

    if tool_calls:
        content = [_tool_use_block(call) for call in tool_calls]
        stop_reason = "tool_use"
    else:
        content = [{"type": "text", "text": message.get("content") or ""}]
        finish_reason = choice.get("finish_reason")
        stop_reason = FINISH_REASON_MAP.get(finish_reason, finish_reason)

    result = {
        "id": response.get("id") or f"msg_{int(time.time() * 1000)}",
        "type": "message",
        "role": "assistant",
        "content": content,
        "model": response.get("model"),
        "stop_reason": stop_reason,
        "stop_sequence": None,
    }

    usage = map_usage(response.get("usage"))
    if usage is not None:
        result["usage"] = usage
    return result
