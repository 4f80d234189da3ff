"""
Utilities module for the OAuth2 MCP Server.
"""

from .auth_utils import (
    get_auth_context,
    get_auth_context_safe,
    get_bearer_token,
)

__all__ = [
    "get_auth_context",
    "get_auth_context_safe",
    "get_bearer_token",
]
