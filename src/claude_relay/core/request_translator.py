"""Messages API request -> chat completions request."""

import json
from typing import Any

from claude_relay.config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_UPSTREAM_MODEL,
    MODEL_MAPPING,
)
from claude_relay.models import (
    ChatRequest,
    ClaudeMessage,
    ClaudeRequest,
    ClaudeTool,
    FunctionDefinition,
    FunctionTool,
    Message,
)


def map_model(model: str) -> str:
    """Upstream name for an inbound model, default for unknown names."""
    return MODEL_MAPPING.get(model, DEFAULT_UPSTREAM_MODEL)


def _block_text(block: dict[str, Any]) -> str:
    text = block.get("text")
    if isinstance(text, str) and text:
        return text
    return json.dumps(block, separators=(",", ":"), ensure_ascii=False)


def flatten_content(content: str | list[dict[str, Any]]) -> str:
    """Collapse a content block list into plain text.

    Blocks without string text are kept as their JSON encoding.
    """
    if isinstance(content, str):
        return content
    return "\n".join(_block_text(block) for block in content)


def _convert_message(message: ClaudeMessage) -> Message:
    return Message(role=message.role, content=flatten_content(message.content))


def _convert_tool(tool: ClaudeTool) -> FunctionTool:
    return FunctionTool(
        function=FunctionDefinition(
            name=tool.name,
            description=tool.description,
            parameters=tool.input_schema,
        )
    )


def translate_request(request: ClaudeRequest) -> ChatRequest:
    """Convert a Messages API request to a chat completions request.

    Args:
        request: Inbound request

    Returns:
        Outbound request; optional fields stay unset when absent inbound
    """
    return ChatRequest(
        model=map_model(request.model),
        messages=[_convert_message(m) for m in request.messages],
        max_tokens=request.max_tokens or DEFAULT_MAX_TOKENS,
        temperature=DEFAULT_TEMPERATURE if request.temperature is None else request.temperature,
        stream=bool(request.stream),
        tools=[_convert_tool(t) for t in request.tools] if request.tools is not None else None,
        tool_choice=request.tool_choice,
    )
