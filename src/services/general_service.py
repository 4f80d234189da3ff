"""
General purpose MCP tools service.

This service provides two demo tools:
- get_greeting: Personalized greeting
- get_user_info: Claims of the authenticated caller (reads the AuthContext)
"""

import logging

from fastmcp import Context

from core.factory import Domain, MCPToolBase
from utils.auth_utils import get_auth_context

logger = logging.getLogger(__name__)


class GeneralService(MCPToolBase):
    """General purpose tools for common operations.

    Provides a greeting tool and one that shows the identity the bearer
    gateway attached to the request.
    """

    def __init__(self) -> None:
        """Initialize the general service."""
        super().__init__(Domain.GENERAL)

    def register_tools(self, mcp) -> None:
        """Register general tools with the MCP server.

        Args:
            mcp: The FastMCP server instance to register tools with.
        """

        @mcp.tool(tags={self.domain.value}, annotations={"readOnlyHint": True})
        def get_greeting(name: str = "World") -> str:
            """Get a personalized greeting message.

            Args:
                name: Name to greet.

            Returns:
                The greeting.
            """
            return f"Hello, {name or 'World'}! You are authenticated via OAuth2."

        @mcp.tool(tags={self.domain.value}, annotations={"readOnlyHint": True})
        async def get_user_info(ctx: Context) -> dict:
            """Get authenticated user information.

            Returns the identity claims resolved from the caller's bearer
            token, e.g. email, name and picture for Google accounts.

            Args:
                ctx: The FastMCP context containing the request.

            Returns:
                The caller's claims, or an error entry when the request
                is not authenticated.
            """
            try:
                auth_context = get_auth_context(ctx)
            except ValueError as e:
                logger.warning("get_user_info called without auth context: %s", e)
                return {"authenticated": False, "error": str(e)}

            return auth_context.to_dict()

    @property
    def tool_count(self) -> int:
        """Return the number of tools provided by this service.

        Returns:
            The number of tools (2: get_greeting, get_user_info).
        """
        return 2
