"""Utility functions package."""

from claude_relay.utils.logger import configure_logging, get_logger, mask_key

__all__ = ["configure_logging", "get_logger", "mask_key"]
