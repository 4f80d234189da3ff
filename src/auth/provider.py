"""
Credential provider interface.

A CredentialProvider wraps one authorization server and exposes the five
capabilities the device flow and bearer gateway need: device code issuance,
device code exchange, refresh, token validation and identity retrieval.
Alternative authorization servers plug in by subclassing it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from auth.models import AuthContext, DeviceAuthorizationSession, TokenSet
from core.exceptions import InvalidCredentialError, ProtocolError

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
REFRESH_TOKEN_GRANT_TYPE = "refresh_token"

# Used whenever the server omits or zeroes the polling interval
DEFAULT_POLL_INTERVAL = 5.0

TokenValidator = Callable[[str], Awaitable[AuthContext]]


class CredentialProvider(ABC):
    """Base class for OAuth2 authorization servers supporting the device grant.

    Implementations must be safe to call concurrently; the bearer gateway
    shares one provider across all in-flight requests.
    """

    def __init__(self, client_id: str, client_secret: str, scopes: list[str]) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = list(scopes)

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'google')."""
        pass

    @abstractmethod
    async def issue_device_code(self) -> DeviceAuthorizationSession:
        """Request a device/user code pair.

        Raises:
            ProtocolError: On a non-200 status, malformed body or transport failure.
        """
        pass

    @abstractmethod
    async def exchange_device_code(self, device_code: str) -> TokenSet:
        """Try once to exchange a device code for tokens.

        Raises:
            AuthorizationPendingError: User has not authorized yet.
            SlowDownError: Client must poll less often.
            AccessDeniedError: User declined.
            DeviceCodeExpiredError: Device code is no longer valid.
            ProtocolError: Any other error response or transport failure.
        """
        pass

    @abstractmethod
    async def refresh_token(self, refresh_token: str) -> TokenSet:
        """Obtain a new access token, keeping ``refresh_token`` if none is returned."""
        pass

    @abstractmethod
    async def validate_token(self, access_token: str) -> bool:
        """Ask the server whether the token is currently valid.

        Returns:
            True only when the introspection endpoint answers HTTP 200.

        Raises:
            ProtocolError: Only when the network call itself fails.
        """
        pass

    @abstractmethod
    async def fetch_identity(self, access_token: str) -> AuthContext:
        """Retrieve the profile claims of the token's owner."""
        pass

    def create_validator(self, timeout: float = 5.0) -> TokenValidator:
        """Build a bearer token validator backed by this provider.

        The validator rejects tokens the server does not accept with
        InvalidCredentialError. A valid token whose identity cannot be
        fetched still authenticates, with a minimal context.

        Args:
            timeout: Upper bound in seconds for validation plus identity lookup.

        Returns:
            Async callable mapping an access token to an AuthContext.
        """

        async def _validate(token: str) -> AuthContext:
            try:
                return await asyncio.wait_for(self._resolve_identity(token), timeout)
            except asyncio.TimeoutError as e:
                raise InvalidCredentialError("Token validation timed out") from e

        return _validate

    async def _resolve_identity(self, token: str) -> AuthContext:
        try:
            valid = await self.validate_token(token)
        except ProtocolError as e:
            raise InvalidCredentialError("Failed to validate token") from e

        if not valid:
            raise InvalidCredentialError("Invalid token")

        try:
            identity = await self.fetch_identity(token)
        except ProtocolError as e:
            logger.warning(
                "Token is valid but identity lookup failed",
                extra={"provider": self.name, "status": e.status},
            )
            return AuthContext({"authenticated": True})

        return AuthContext({**identity, "authenticated": True})


def coerce_interval(value: Optional[object], default: float = DEFAULT_POLL_INTERVAL) -> float:
    """Return a positive polling interval, falling back to ``default``."""
    try:
        interval = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return interval if interval > 0 else default
