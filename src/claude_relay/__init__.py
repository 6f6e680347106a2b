"""Claude Messages API to OpenAI Chat Completions relay."""

__version__ = "0.1.0"
