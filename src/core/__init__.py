"""
Core module for MCP server components, factory patterns and exceptions.
"""

from .exceptions import (
    AccessDeniedError,
    AuthSetupError,
    AuthorizationPendingError,
    ConfigurationError,
    CredentialError,
    DependencyError,
    DeviceCodeExpiredError,
    DeviceFlowError,
    FlowCancelledError,
    InvalidCredentialError,
    MalformedCredentialError,
    MCPServerError,
    MissingCredentialError,
    PollingError,
    ProtocolError,
    SlowDownError,
)
from .factory import Domain, MCPToolBase, MCPToolFactory

__all__ = [
    "Domain",
    "MCPToolBase",
    "MCPToolFactory",
    "MCPServerError",
    "ConfigurationError",
    "AuthSetupError",
    "DependencyError",
    "ProtocolError",
    "PollingError",
    "AuthorizationPendingError",
    "SlowDownError",
    "DeviceFlowError",
    "AccessDeniedError",
    "DeviceCodeExpiredError",
    "FlowCancelledError",
    "CredentialError",
    "MissingCredentialError",
    "MalformedCredentialError",
    "InvalidCredentialError",
]
