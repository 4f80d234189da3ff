"""
OAuth2 MCP Server - FastMCP server gated by Google bearer token authentication.

This module wires the pieces together:
- FastMCP server with the registered tool services
- Google credential provider and the bearer gateway built from it
- Starlette middleware rejecting requests without a valid bearer token
- Optional device flow login at startup to obtain a token for clients
- Health check endpoint for container orchestration

Usage:
    # Run with authentication disabled (for testing)
    python server.py --no-auth

    # Run with authentication enabled
    python server.py

    # Obtain an access token through the device flow, then serve
    python server.py --login
"""

import argparse
import asyncio
import contextlib
import logging
import signal
from typing import Any, Optional

import uvicorn
from fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.device_flow import DeviceFlowClient, DeviceFlowResult
from auth.gateway import BearerAuthMiddleware, BearerGateway
from auth.google import GoogleCredentialProvider
from auth.models import DeviceAuthorizationSession
from config.settings import MCPServerConfig, get_mcp_config
from core.exceptions import (
    AuthSetupError,
    ConfigurationError,
    DependencyError,
    DeviceFlowError,
    ProtocolError,
)
from core.factory import MCPToolBase, MCPToolFactory
from services.general_service import GeneralService

# Setup logging - will be reconfigured based on config
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVER_VERSION = "1.0.0"


# =============================================================================
# Service Registration
# =============================================================================


def get_default_services() -> list[MCPToolBase]:
    """Return default service instances."""
    return [
        GeneralService(),
    ]


def create_factory(services: Optional[list[MCPToolBase]] = None) -> MCPToolFactory:
    """Create factory with services.

    Args:
        services: Optional list of services to register. If None, uses defaults.

    Returns:
        Configured MCPToolFactory instance.
    """
    factory = MCPToolFactory()
    for service in services or get_default_services():
        factory.register_service(service)
    return factory


# =============================================================================
# Authentication Setup
# =============================================================================


def validate_auth_config(config: MCPServerConfig) -> None:
    """Validate authentication configuration.

    Args:
        config: The MCP server configuration.

    Raises:
        ConfigurationError: If auth is enabled but required values are missing.
    """
    if not config.enable_auth:
        return

    missing = []
    if not config.google_client_id:
        missing.append("GOOGLE_CLIENT_ID")
    if not config.google_client_secret or not config.google_client_secret.get_secret_value():
        missing.append("GOOGLE_CLIENT_SECRET")

    if missing:
        logger.error(
            "ENABLE_AUTH=true but required config missing",
            extra={"missing_config": missing},
        )
        raise ConfigurationError(
            f"Authentication enabled but missing required configuration: {', '.join(missing)}"
        )

    logger.info(
        "Auth config loaded",
        extra={"client_id": config.google_client_id, "scopes": config.oauth_scopes},
    )


def create_credential_provider(
    config: MCPServerConfig,
) -> Optional[GoogleCredentialProvider]:
    """Create the Google credential provider if auth is enabled.

    Raises:
        ConfigurationError: If client credentials are missing.
        AuthSetupError: If the provider cannot be created for another reason.
    """
    if not config.enable_auth:
        return None

    secret = config.google_client_secret
    try:
        return GoogleCredentialProvider(
            client_id=config.google_client_id,
            client_secret=secret.get_secret_value() if secret else None,
            scopes=config.oauth_scopes,
            http_timeout=config.http_timeout,
        )
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error("Failed to create credential provider", extra={"error": str(e)})
        raise AuthSetupError(f"Failed to create credential provider: {e}") from e


def create_auth_middleware(
    provider: Optional[GoogleCredentialProvider], config: MCPServerConfig
) -> list[Middleware]:
    """Build the bearer middleware stack for the HTTP app.

    Returns an empty list when auth is disabled.
    """
    if provider is None or not config.enable_auth:
        return []

    gateway = BearerGateway.from_provider(provider, timeout=config.validation_timeout)
    logger.info(
        "Bearer token authentication enabled",
        extra={"provider": provider.name, "excluded_paths": config.excluded_paths},
    )
    return [
        Middleware(
            BearerAuthMiddleware,
            gateway=gateway,
            exclude_paths=config.excluded_paths,
        )
    ]


# =============================================================================
# Endpoint Registration
# =============================================================================


def register_health_endpoint(mcp_server: FastMCP, config: MCPServerConfig) -> None:
    """Register health check endpoint for container orchestration.

    The path is listed in ``excluded_paths`` by default, so probes do not
    need a token.
    """

    @mcp_server.custom_route("/health", methods=["GET"], name="health_check")
    async def health_check(request: Request) -> JSONResponse:
        """Simple health check endpoint for container orchestration."""
        return JSONResponse(
            content={
                "status": "healthy",
                "service": config.server_name,
                "auth_enabled": config.enable_auth,
            },
        )

    logger.info("Health check endpoint registered at /health")


# =============================================================================
# Server Initialization
# =============================================================================


def create_fastmcp_server(
    config: Optional[MCPServerConfig] = None,
    services: Optional[list[MCPToolBase]] = None,
) -> FastMCP:
    """Create and configure the FastMCP server (without authentication).

    Args:
        config: Optional config instance. If None, uses global config.
        services: Optional list of services. If None, uses defaults.

    Returns:
        Configured FastMCP server instance.
    """
    config = config or get_mcp_config()

    factory = create_factory(services)
    mcp_server = factory.create_mcp_server(name=config.server_name, version=SERVER_VERSION)
    register_health_endpoint(mcp_server, config)
    return mcp_server


def create_app(
    config: Optional[MCPServerConfig] = None,
    services: Optional[list[MCPToolBase]] = None,
    provider: Optional[GoogleCredentialProvider] = None,
) -> Starlette:
    """Create the ASGI app serving MCP over streamable HTTP.

    Args:
        config: Optional config instance. If None, uses global config.
        services: Optional list of services. If None, uses defaults.
        provider: Optional pre-built credential provider. Created from the
            config when auth is enabled and none is given.

    Returns:
        Starlette app with the bearer middleware applied when auth is enabled.

    Raises:
        ConfigurationError: If configuration validation fails.
        AuthSetupError: If authentication setup fails.
        DependencyError: If required dependencies are not available.
    """
    try:
        config = config or get_mcp_config()

        # Configure logging based on debug setting
        log_level = logging.DEBUG if config.debug else logging.INFO
        logging.getLogger().setLevel(log_level)

        validate_auth_config(config)
        if provider is None:
            provider = create_credential_provider(config)
        middleware = create_auth_middleware(provider, config)

        mcp_server = create_fastmcp_server(config, services)
        app = mcp_server.http_app(middleware=middleware)

        logger.info("FastMCP app created successfully")
        return app

    except ImportError as e:
        logger.error("FastMCP not available", extra={"error": str(e)})
        raise DependencyError(
            "FastMCP not installed. Install with: pip install fastmcp"
        ) from e


# =============================================================================
# Device Login
# =============================================================================


def print_device_code(session: DeviceAuthorizationSession) -> None:
    """Show the user where to authorize this device."""
    print("\n=== OAuth2 Device Flow ===")
    print(f"1. Open this URL in your browser: {session.verification_uri}")
    print(f"2. Enter this code: {session.user_code}")
    print("3. Waiting for authorization...\n")


async def run_device_login(
    provider: GoogleCredentialProvider,
    config: MCPServerConfig,
    cancel_event: Optional[asyncio.Event] = None,
) -> DeviceFlowResult:
    """Run the device flow once, bounded by ``config.device_flow_timeout``.

    SIGINT/SIGTERM set the cancel event so the flow stops at its next wait.
    """
    cancel_event = cancel_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
            loop.add_signal_handler(sig, cancel_event.set)

    client = DeviceFlowClient(provider, default_interval=config.poll_interval)
    logger.info("Starting OAuth2 device flow...")
    try:
        return await asyncio.wait_for(
            client.run(cancel_event=cancel_event, on_code=print_device_code),
            timeout=config.device_flow_timeout,
        )
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                loop.remove_signal_handler(sig)


def login(provider: GoogleCredentialProvider, config: MCPServerConfig) -> bool:
    """Perform the startup device login and print the token to use.

    Returns:
        True on success, False if the flow failed.
    """
    try:
        result = asyncio.run(run_device_login(provider, config))
    except asyncio.TimeoutError:
        logger.error(
            "OAuth2 device flow timed out",
            extra={"timeout": config.device_flow_timeout},
        )
        return False
    except (DeviceFlowError, ProtocolError) as e:
        logger.error(f"OAuth2 device flow failed: {e}", extra={"reason": type(e).__name__})
        return False

    token_set = result.token_set
    logger.info(
        "Authentication successful",
        extra={"attempts": result.attempts, "expires_at": str(token_set.expires_at)},
    )
    print("OAuth2 authentication configured successfully!")
    print("\nTo use this server, include the access token in the Authorization header:")
    print(f"  Authorization: Bearer {token_set.access_token[:20]}...\n")
    return True


# =============================================================================
# Server Runtime
# =============================================================================


def log_server_info(config: MCPServerConfig) -> None:
    """Log server initialization info."""
    summary = create_factory().get_tool_summary()

    logger.info(
        "Server initialized",
        extra={
            "server_name": config.server_name,
            "total_services": summary["total_services"],
            "total_tools": summary["total_tools"],
            "auth_enabled": config.enable_auth,
        },
    )

    for domain, info in summary["services"].items():
        logger.info(
            f"Service registered: {domain}",
            extra={"tool_count": info["tool_count"], "class_name": info["class_name"]},
        )


def run_server(app: Starlette, config: MCPServerConfig, **kwargs: Any) -> None:
    """Serve the app with uvicorn.

    Args:
        app: The ASGI app returned by create_app().
        config: The MCP server configuration.
        **kwargs: Additional arguments passed to uvicorn.run().
    """
    log_server_info(config)
    logger.info(
        "Starting FastMCP server",
        extra={"transport": "streamable-http", "host": config.host, "port": config.port},
    )
    uvicorn.run(app, host=config.host, port=config.port, **kwargs)


# =============================================================================
# CLI Entry Point
# =============================================================================


def main() -> None:
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(description="OAuth2 MCP Server")
    parser.add_argument("--host", default=None, help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None, help="Port to bind to (default: 8080)")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument("--no-auth", action="store_true", help="Disable authentication")
    parser.add_argument(
        "--login",
        action="store_true",
        help="Run the OAuth2 device flow before serving and print the access token",
    )

    args = parser.parse_args()

    # Build config overrides from CLI
    overrides: dict[str, Any] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.debug:
        overrides["debug"] = True
    if args.no_auth:
        overrides["enable_auth"] = False

    base_config = get_mcp_config()
    config = base_config.model_copy(update=overrides) if overrides else base_config

    try:
        provider = create_credential_provider(config)
        app = create_app(config=config, provider=provider)
    except (ConfigurationError, AuthSetupError, DependencyError) as e:
        print(f"Failed to create server: {e}")
        return

    if args.login:
        if provider is None:
            print("--login requires authentication to be enabled")
            return
        if not login(provider, config):
            return

    print("Starting OAuth2 MCP Server")
    print(f"Debug: {config.debug}")
    print(f"Auth: {'Enabled' if config.enable_auth else 'Disabled'}")
    print(f"Host: {config.host}")
    print(f"Port: {config.port}")
    print("-" * 50)

    run_server(app, config, log_level="debug" if config.debug else "info")


if __name__ == "__main__":
    main()
