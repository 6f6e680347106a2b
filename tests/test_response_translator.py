"""Tests for chat completions -> Messages response translation."""

import pytest

from claude_relay.core import translate_response
from claude_relay.errors import TranslationError
from tests.helpers import completion


class TestTextResponses:
    """Plain assistant text."""

    def test_stop_becomes_end_turn(self) -> None:
        result = translate_response(completion("Hello!", finish_reason="stop"))

        assert result["stop_reason"] == "end_turn"
        assert result["content"] == [{"type": "text", "text": "Hello!"}]
        assert result["role"] == "assistant"
        assert result["type"] == "message"
        assert result["id"] == "chatcmpl-123"
        assert result["model"] == "anthropic/claude-3.5-haiku"
        assert result["stop_sequence"] is None

    def test_other_finish_reason_passed_through(self) -> None:
        result = translate_response(completion("cut", finish_reason="length"))
        assert result["stop_reason"] == "length"

    def test_missing_content_becomes_empty_text(self) -> None:
        result = translate_response(completion(None))
        assert result["content"] == [{"type": "text", "text": ""}]

    def test_missing_id_generated(self) -> None:
        body = completion()
        del body["id"]
        assert translate_response(body)["id"].startswith("msg_")

    def test_without_choices_passed_through(self) -> None:
        body = {"error": {"message": "odd"}}
        assert translate_response(body) is body


class TestToolResponses:
    """Tool call reconstruction."""

    def test_tool_calls_become_tool_use_blocks(self) -> None:
        calls = [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
            },
            {
                "id": "call_2",
                "type": "function",
                "function": {"name": "get_time", "arguments": "{}"},
            },
        ]
        result = translate_response(
            completion(None, finish_reason="tool_calls", tool_calls=calls)
        )

        assert result["stop_reason"] == "tool_use"
        assert result["content"] == [
            {"type": "tool_use", "id": "call_1", "name": "get_weather", "input": {"city": "Paris"}},
            {"type": "tool_use", "id": "call_2", "name": "get_time", "input": {}},
        ]

    def test_malformed_arguments_raise(self) -> None:
        calls = [{"id": "call_1", "function": {"name": "f", "arguments": "{not json"}}]
        with pytest.raises(TranslationError):
            translate_response(completion(None, tool_calls=calls))


class TestUsage:
    """Token usage mapping."""

    def test_usage_fields_renamed(self) -> None:
        result = translate_response(
            completion(usage={"prompt_tokens": 12, "completion_tokens": 34, "total_tokens": 46})
        )
        assert result["usage"] == {"input_tokens": 12, "output_tokens": 34}

    def test_usage_omitted_when_absent(self) -> None:
        assert "usage" not in translate_response(completion())


class TestMalformedResponses:
    """Choices that are not shaped like a chat completion."""

    @pytest.mark.parametrize(
        "body",
        [
            {"id": "x", "choices": ["oops"]},
            {"id": "x", "choices": [{"message": "text"}]},
            {"id": "x", "choices": [{"message": {"tool_calls": [5]}}]},
            {"id": "x", "choices": {"first": {}}},
        ],
    )
    def test_malformed_choice_raises(self, body) -> None:
        with pytest.raises(TranslationError, match="Malformed upstream completion"):
            translate_response(body)
