"""
Google OAuth 2.0 credential provider.

Implements the device authorization grant against Google's endpoints:
- Device code issuance (https://oauth2.googleapis.com/device/code)
- Token exchange and refresh (https://oauth2.googleapis.com/token)
- Token validation via the tokeninfo endpoint
- Identity retrieval via the userinfo endpoint

OAuth error codes returned by the token endpoint are mapped onto the
exception hierarchy in core.exceptions so callers never match on text.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import aiohttp

from auth.models import AuthContext, DeviceAuthorizationSession, TokenSet
from auth.provider import (
    DEFAULT_POLL_INTERVAL,
    DEVICE_CODE_GRANT_TYPE,
    REFRESH_TOKEN_GRANT_TYPE,
    CredentialProvider,
    coerce_interval,
)
from core.exceptions import (
    AccessDeniedError,
    AuthorizationPendingError,
    ConfigurationError,
    DeviceCodeExpiredError,
    ProtocolError,
    SlowDownError,
)

logger = logging.getLogger(__name__)

GOOGLE_DEVICE_AUTH_URL = "https://oauth2.googleapis.com/device/code"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

# Google does not always send expires_in on the device code response
DEFAULT_DEVICE_CODE_LIFETIME = 1800

_FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class GoogleCredentialProvider(CredentialProvider):
    """Credential provider for Google accounts.

    Each call opens its own aiohttp session, so one instance may be shared by
    concurrent device flows and gateway requests.
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        scopes: Optional[list[str]] = None,
        http_timeout: float = 30.0,
        device_auth_url: str = GOOGLE_DEVICE_AUTH_URL,
        token_url: str = GOOGLE_TOKEN_URL,
        tokeninfo_url: str = GOOGLE_TOKENINFO_URL,
        userinfo_url: str = GOOGLE_USERINFO_URL,
    ) -> None:
        """Initialize the provider with Google client credentials.

        Args:
            client_id: OAuth client ID of the Google Cloud project
            client_secret: OAuth client secret
            scopes: Scopes requested during device authorization
            http_timeout: Total timeout in seconds for each HTTP call
            device_auth_url: Override for the device authorization endpoint
            token_url: Override for the token endpoint
            tokeninfo_url: Override for the token introspection endpoint
            userinfo_url: Override for the userinfo endpoint

        Raises:
            ConfigurationError: If client_id or client_secret is missing.
        """
        missing = []
        if not client_id:
            missing.append("GOOGLE_CLIENT_ID")
        if not client_secret:
            missing.append("GOOGLE_CLIENT_SECRET")
        if missing:
            raise ConfigurationError(
                f"Google credential provider missing required configuration: {', '.join(missing)}"
            )

        super().__init__(client_id, client_secret, scopes or ["email", "profile"])  # type: ignore[arg-type]
        self.http_timeout = http_timeout
        self.device_auth_url = device_auth_url
        self.token_url = token_url
        self.tokeninfo_url = tokeninfo_url
        self.userinfo_url = userinfo_url

        logger.info(
            "GoogleCredentialProvider initialized",
            extra={"client_id": client_id, "scopes": self.scopes},
        )

    @property
    def name(self) -> str:
        return "google"

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.http_timeout)

    async def issue_device_code(self) -> DeviceAuthorizationSession:
        """Request a device code from Google.

        Returns:
            DeviceAuthorizationSession with a fixed expiry deadline.

        Raises:
            ProtocolError: On non-200 status, malformed body or network error.
        """
        data = {"client_id": self.client_id, "scope": " ".join(self.scopes)}

        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(
                    self.device_auth_url, data=data, headers=_FORM_HEADERS
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ProtocolError(
                            f"Device code request failed with status {response.status}: {error_text}",
                            status=response.status,
                        )
                    payload = await _read_json(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Device code request failed (network error): {e}")
            raise ProtocolError(f"Device code request failed: {e}") from e

        device_code = payload.get("device_code")
        user_code = payload.get("user_code")
        verification_uri = payload.get("verification_uri") or payload.get(
            "verification_url"
        )
        if not device_code or not user_code or not verification_uri:
            raise ProtocolError(
                "Device code response missing device_code, user_code or verification_uri"
            )

        expires_in = payload.get("expires_in")
        if expires_in is None:
            expires_in = DEFAULT_DEVICE_CODE_LIFETIME
        try:
            expires_in = float(expires_in)
        except (TypeError, ValueError) as e:
            raise ProtocolError(
                f"Device code response has invalid expires_in: {payload.get('expires_in')!r}"
            ) from e

        session = DeviceAuthorizationSession(
            device_code=device_code,
            user_code=user_code,
            verification_uri=verification_uri,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            interval=coerce_interval(payload.get("interval"), DEFAULT_POLL_INTERVAL),
            verification_uri_complete=payload.get("verification_uri_complete")
            or payload.get("verification_url_complete"),
        )
        logger.info(
            "Device code issued",
            extra={
                "verification_uri": session.verification_uri,
                "expires_in": expires_in,
                "interval": session.interval,
            },
        )
        return session

    async def exchange_device_code(self, device_code: str) -> TokenSet:
        """Poll Google's token endpoint once for the given device code."""
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "device_code": device_code,
            "grant_type": DEVICE_CODE_GRANT_TYPE,
        }
        status, payload = await self._post_token(data, "Token exchange")

        error = payload.get("error")
        if error:
            _raise_for_device_error(error, payload, status)

        return _parse_token_set(payload, status, "Token exchange")

    async def refresh_token(self, refresh_token: str) -> TokenSet:
        """Refresh an access token.

        Google may not return a new refresh token; the original is kept.
        """
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": REFRESH_TOKEN_GRANT_TYPE,
        }
        status, payload = await self._post_token(data, "Token refresh")

        if status != 200 or payload.get("error"):
            raise ProtocolError(
                f"Token refresh failed: {payload.get('error', status)} - {payload.get('error_description', '')}",
                error_code=payload.get("error"),
                status=status,
            )

        return _parse_token_set(
            payload, status, "Token refresh", fallback_refresh_token=refresh_token
        )

    async def validate_token(self, access_token: str) -> bool:
        """Check the token against Google's tokeninfo endpoint.

        Any status other than 200 means "not valid"; only transport failures raise.
        """
        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.get(
                    self.tokeninfo_url, params={"access_token": access_token}
                ) as response:
                    if response.status == 200:
                        return True
                    logger.debug(
                        "Token rejected by tokeninfo",
                        extra={"status": response.status},
                    )
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            # The request URL carries the token, so only the error class is reported
            logger.error(
                "Token validation failed (network error)",
                extra={"error_type": type(e).__name__},
            )
            raise ProtocolError(
                f"Token validation request failed ({type(e).__name__})"
            ) from e

    async def fetch_identity(self, access_token: str) -> AuthContext:
        """Retrieve the Google profile of the token owner."""
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.get(self.userinfo_url, headers=headers) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ProtocolError(
                            f"Userinfo request failed with status {response.status}: {error_text}",
                            status=response.status,
                        )
                    payload = await _read_json(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Userinfo request failed (network error): {e}")
            raise ProtocolError(f"Userinfo request failed: {e}") from e

        return AuthContext(payload)

    async def _post_token(self, data: Dict[str, str], action: str) -> tuple[int, Dict[str, Any]]:
        """POST a form to the token endpoint and return (status, parsed body)."""
        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(
                    self.token_url, data=data, headers=_FORM_HEADERS
                ) as response:
                    return response.status, await _read_json(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"{action} failed (network error): {e}")
            raise ProtocolError(f"{action} failed: {e}") from e


_DEVICE_FLOW_ERRORS = {
    "authorization_pending": AuthorizationPendingError,
    "access_denied": AccessDeniedError,
    "expired_token": DeviceCodeExpiredError,
}


def _raise_for_device_error(error: str, payload: Dict[str, Any], status: int) -> None:
    """Raise the exception matching an OAuth error code from the token endpoint."""
    description = payload.get("error_description") or error

    if error == "slow_down":
        interval = payload.get("interval")
        raise SlowDownError(
            description, interval=coerce_interval(interval, 0.0) or None
        )

    error_class = _DEVICE_FLOW_ERRORS.get(error)
    if error_class is not None:
        raise error_class(description)

    raise ProtocolError(
        f"Token exchange failed: {error} - {payload.get('error_description', '')}",
        error_code=error,
        status=status,
    )


async def _read_json(response: aiohttp.ClientResponse) -> Dict[str, Any]:
    """Decode a JSON object body, treating anything else as a protocol error."""
    try:
        payload = await response.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError) as e:
        raise ProtocolError(
            f"Failed to parse response: {e}", status=response.status
        ) from e
    if not isinstance(payload, dict):
        raise ProtocolError(
            "Expected a JSON object in response", status=response.status
        )
    return payload


def _parse_token_set(
    payload: Dict[str, Any],
    status: int,
    action: str,
    fallback_refresh_token: Optional[str] = None,
) -> TokenSet:
    access_token = payload.get("access_token")
    if status != 200 or not access_token:
        raise ProtocolError(
            f"{action} response missing access_token (status {status})",
            status=status,
        )

    expires_in = payload.get("expires_in")
    try:
        expires_in = float(expires_in) if expires_in is not None else None
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"{action} response has invalid expires_in: {expires_in!r}") from e

    return TokenSet.from_expires_in(
        access_token=access_token,
        refresh_token=payload.get("refresh_token") or fallback_refresh_token,
        expires_in=expires_in,
        token_type=payload.get("token_type", "Bearer"),
    )
