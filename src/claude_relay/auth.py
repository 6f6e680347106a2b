"""Inbound bearer token gate."""

import hmac

from fastapi import Request

from claude_relay.errors import AuthenticationError

BEARER_PREFIX = "Bearer "


def token_matches(authorization: str | None, expected: str | None) -> bool:
    """Check an Authorization header against the configured key.

    Args:
        authorization: Raw header value
        expected: Configured key; None disables the check

    Returns:
        True if the caller may proceed
    """
    if not expected:
        return True
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return False
    token = authorization[len(BEARER_PREFIX):]
    return hmac.compare_digest(token.encode(), expected.encode())


async def verify_bearer_token(request: Request) -> None:
    """FastAPI dependency rejecting callers without the configured token."""
    expected = request.app.state.settings.custom_auth_key
    if not token_matches(request.headers.get("Authorization"), expected):
        raise AuthenticationError("Invalid or missing Bearer token")
