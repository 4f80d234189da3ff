"""
Configuration settings for the OAuth2 MCP Server.

This module provides the server configuration, including the Google OAuth
client credentials and the timing knobs of the device flow and bearer gateway.
"""

from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class MCPServerConfig(BaseSettings):
    """OAuth2 MCP Server configuration.

    This configuration includes:
    - Server settings (host, port, debug)
    - Google OAuth client credentials and requested scopes
    - Device flow polling and gateway validation timeouts
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables
    )

    # Server settings
    host: str = Field(default="127.0.0.1", description="Host to bind to")
    port: int = Field(default=8080, description="Port to bind to")
    debug: bool = Field(default=False, description="Enable debug mode")
    server_name: str = Field(default="OAuth2MCP", description="Server name")

    # Authentication settings
    enable_auth: bool = Field(default=True, description="Enable authentication")
    google_client_id: Optional[str] = Field(
        default=None, description="Google OAuth client ID"
    )
    google_client_secret: Optional[SecretStr] = Field(
        default=None, description="Google OAuth client secret"
    )
    oauth_scopes: list[str] = Field(
        default_factory=lambda: ["email", "profile"],
        description="Scopes requested during device authorization",
    )
    excluded_paths: list[str] = Field(
        default_factory=lambda: ["/health"],
        description="Path prefixes served without bearer authentication",
    )

    # Timing
    poll_interval: float = Field(
        default=5.0,
        gt=0,
        description="Device flow poll interval when the server does not specify one",
    )
    device_flow_timeout: float = Field(
        default=300.0, gt=0, description="Upper bound for the startup device login"
    )
    validation_timeout: float = Field(
        default=5.0, gt=0, description="Timeout for validating one bearer token"
    )
    http_timeout: float = Field(
        default=30.0, gt=0, description="Timeout for each authorization server call"
    )


# Global configuration instance - lazy initialized
_mcp_config: MCPServerConfig | None = None


def get_mcp_config(config: MCPServerConfig | None = None) -> MCPServerConfig:
    """Get the global MCP server configuration with optional injection.

    Args:
        config: Optional config instance to inject (useful for testing).
                If provided, sets this as the global config.

    Returns:
        The global MCPServerConfig instance.
    """
    global _mcp_config
    if config is not None:
        _mcp_config = config
    if _mcp_config is None:
        _mcp_config = MCPServerConfig()
    return _mcp_config


def reset_config() -> None:
    """Reset the config singleton for testing.

    This clears the cached config instance, allowing a fresh config
    to be created on the next call to get_mcp_config().
    """
    global _mcp_config
    _mcp_config = None
