"""Pydantic models for API requests."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class ClaudeMessage(BaseModel):
    """Messages API message."""

    model_config = ConfigDict(extra="allow")

    role: Literal["user", "assistant"]
    content: str | list[dict[str, Any]]


class ClaudeTool(BaseModel):
    """Messages API tool declaration."""

    model_config = ConfigDict(extra="allow")

    name: str
    description: str | None = None
    input_schema: dict[str, Any] | None = None


class ClaudeRequest(BaseModel):
    """Claude Messages API request."""

    model_config = ConfigDict(extra="allow")

    model: str
    messages: list[ClaudeMessage]
    max_tokens: int | None = None
    temperature: float | None = None
    stream: bool | None = None
    tools: list[ClaudeTool] | None = None
    tool_choice: Any = None


class Message(BaseModel):
    """OpenAI-compatible chat message."""

    role: Literal["system", "user", "assistant"]
    content: str


class FunctionDefinition(BaseModel):
    """OpenAI function schema."""

    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None


class FunctionTool(BaseModel):
    """OpenAI tool wrapper."""

    type: Literal["function"] = "function"
    function: FunctionDefinition


class ChatRequest(BaseModel):
    """OpenAI-compatible chat completion request."""

    model: str
    messages: list[Message]
    max_tokens: int
    temperature: float
    stream: bool
    tools: list[FunctionTool] | None = None
    tool_choice: Any = None

    def to_payload(self) -> dict[str, Any]:
        """Wire payload with absent optional fields left out."""
        return self.model_dump(exclude_none=True)
