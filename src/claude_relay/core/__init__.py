"""Core translation and delivery modules."""

from claude_relay.core.delivery import DeliveryOrchestrator, DeliveryState
from claude_relay.core.key_pool import KeyPool
from claude_relay.core.request_translator import flatten_content, map_model, translate_request
from claude_relay.core.response_translator import map_usage, translate_response
from claude_relay.core.stream_reframer import StreamEvent, StreamReframer, convert_chunk

__all__ = [
    "DeliveryOrchestrator",
    "DeliveryState",
    "KeyPool",
    "flatten_content",
    "map_model",
    "translate_request",
    "map_usage",
    "translate_response",
    "StreamEvent",
    "StreamReframer",
    "convert_chunk",
]
