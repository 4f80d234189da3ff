"""
Custom exception hierarchy for the MCP server.

Provides explicit failure modes instead of silent failures and generic exceptions.
Device flow outcomes and gateway rejections are separate classes so callers
branch on the exception type rather than on the text of a server error.
"""

from typing import Any, Optional


class MCPServerError(Exception):
    """
    Base exception for all MCP server errors.

    All custom exceptions in the MCP server should inherit from this class
    to allow catching all MCP-related errors with a single except clause.
    """

    pass


class ConfigurationError(MCPServerError):
    """
    Configuration validation failed.

    Raised when required configuration values are missing or invalid.
    Examples:
    - Missing GOOGLE_CLIENT_ID when auth is enabled
    - Missing GOOGLE_CLIENT_SECRET when auth is enabled
    """

    pass


class AuthSetupError(MCPServerError):
    """
    Authentication setup failed.

    Raised when the credential provider or bearer gateway cannot be initialized.
    """

    pass


class DependencyError(MCPServerError):
    """
    Required dependency is not available.

    Raised when a required package or module is not installed.
    """

    pass


class ProtocolError(MCPServerError):
    """
    The authorization server answered with something we cannot use.

    Covers non-200 responses, malformed bodies, unknown OAuth error codes
    and transport failures. Terminal for the current operation.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.status = status


# =============================================================================
# Device flow polling
# =============================================================================


class PollingError(MCPServerError):
    """
    Recoverable token exchange result.

    Only the device flow polling loop handles these; they never surface
    as the final outcome of a flow.
    """

    pass


class AuthorizationPendingError(PollingError):
    """The user has not completed authorization yet (authorization_pending)."""

    pass


class SlowDownError(PollingError):
    """The client is polling too fast (slow_down).

    Args:
        message: Human-readable description.
        interval: Polling interval suggested by the server, if it sent one.
    """

    def __init__(self, message: str = "slow_down", interval: Optional[float] = None):
        super().__init__(message)
        self.interval = interval


class DeviceFlowError(MCPServerError):
    """
    Terminal, non-protocol outcome of a device flow.

    ``session`` is the DeviceAuthorizationSession the outcome belongs to,
    when one had been issued.
    """

    def __init__(self, message: str, session: Optional[Any] = None) -> None:
        super().__init__(message)
        self.session = session


class AccessDeniedError(DeviceFlowError):
    """The user declined the authorization request (access_denied)."""

    pass


class DeviceCodeExpiredError(DeviceFlowError):
    """The device code expired before the user authorized (expired_token or local deadline)."""

    pass


class FlowCancelledError(DeviceFlowError):
    """The caller cancelled the flow through its cancel event."""

    pass


# =============================================================================
# Bearer gateway
# =============================================================================


class CredentialError(MCPServerError):
    """
    Inbound request could not be authenticated.

    Every subclass maps to HTTP 401. The subclasses exist for logging and
    tests; clients see the same unauthorized response for all of them.
    """

    pass


class MissingCredentialError(CredentialError):
    """No Authorization header was supplied."""

    pass


class MalformedCredentialError(CredentialError):
    """Authorization header is not of the form ``Bearer <token>``."""

    pass


class InvalidCredentialError(CredentialError):
    """
    Token was rejected by the validator.

    Note: For security reasons, the token itself is never included.
    """

    pass
