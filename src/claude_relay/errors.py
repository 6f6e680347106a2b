"""Gateway error taxonomy.

Every error raised towards the caller renders as the Claude-style envelope
``{"error": {"type": ..., "message": ...}}``.
"""

from typing import Any


class GatewayError(Exception):
    """Base class for errors surfaced to inbound callers."""

    error_type = "api_error"
    status_code = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        """Render the error envelope."""
        return {
            "error": {
                "type": self.error_type,
                "message": self.message,
                **self.extra,
            }
        }


class AuthenticationError(GatewayError):
    """Caller did not present the configured bearer token."""

    error_type = "authentication_error"
    status_code = 401


class InvalidRequestError(GatewayError):
    """Inbound body is not valid JSON or not a Messages request."""

    error_type = "invalid_request_error"
    status_code = 400


class TranslationError(GatewayError):
    """Upstream payload cannot be expressed in the Messages format."""

    error_type = "translation_error"


class ProxyError(GatewayError):
    """Upstream could not be reached."""

    error_type = "proxy_error"


class NoCredentialsError(ProxyError):
    """The key pool is empty."""
