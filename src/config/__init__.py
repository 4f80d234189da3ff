"""
Configuration module for the OAuth2 MCP Server.
"""

from .settings import (
    MCPServerConfig,
    get_mcp_config,
    reset_config,
)

__all__ = [
    "MCPServerConfig",
    "get_mcp_config",
    "reset_config",
]
