"""
Authentication utilities for MCP server.

Provides helpers for reading the caller's identity inside tool handlers.
The bearer middleware has already validated the token at this point and
left an AuthContext on the request state.
"""

import logging
from typing import Optional

from fastmcp import Context

from auth.models import AuthContext

logger = logging.getLogger(__name__)


def get_auth_context(ctx: Context) -> AuthContext:
    """Return the AuthContext attached to the current request.

    Args:
        ctx: FastMCP Context containing the request

    Returns:
        The AuthContext set by BearerAuthMiddleware

    Raises:
        ValueError: If the request carries no AuthContext (auth disabled or
            no HTTP request in scope)
    """
    request = ctx.request_context.request
    if request is None:
        raise ValueError("No HTTP request in context")

    auth_context = getattr(request.state, "auth_context", None)
    if not isinstance(auth_context, AuthContext):
        raise ValueError("Request is not authenticated")

    return auth_context


def get_auth_context_safe(
    ctx: Context, default: Optional[AuthContext] = None
) -> Optional[AuthContext]:
    """Safely get the AuthContext, returning default if not available.

    Useful when auth might be disabled or for testing.

    Args:
        ctx: FastMCP Context containing the request
        default: Value to return if no AuthContext is attached

    Returns:
        AuthContext if available, otherwise the default value
    """
    try:
        return get_auth_context(ctx)
    except (AttributeError, ValueError) as e:
        logger.warning("Could not read auth context (auth may be disabled): %s", str(e))
        return default


def get_bearer_token(ctx: Context) -> str:
    """Extract bearer token from request context.

    This helper extracts the raw token from the Authorization header
    without validating it. Useful for passing the token on to the
    authorization server (e.g., fetching identity again).

    Args:
        ctx: FastMCP Context with request

    Returns:
        Token string (without "Bearer " prefix)

    Raises:
        ValueError: If Authorization header is missing or malformed
    """
    request = ctx.request_context.request
    auth_header = request.headers.get("Authorization")

    if not auth_header:
        raise ValueError("Authorization header missing")

    if not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
        raise ValueError("Invalid Authorization header format")

    return auth_header[7:].strip()
