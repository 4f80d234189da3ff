"""
Bearer token gateway for inbound MCP requests.

BearerGateway turns the raw Authorization header of a request into an
AuthContext, or raises one of the CredentialError subclasses.
BearerAuthMiddleware applies it to every HTTP request before the MCP app
runs and stores the result on ``request.state.auth_context``.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp

from auth.models import AuthContext
from auth.provider import CredentialProvider
from core.exceptions import (
    CredentialError,
    InvalidCredentialError,
    MalformedCredentialError,
    MissingCredentialError,
)

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

ValidatorResult = Union[AuthContext, Mapping[str, Any], None]
Validator = Callable[[str], Union[ValidatorResult, Awaitable[ValidatorResult]]]


class BearerGateway:
    """Authenticates bearer tokens with a pluggable validator.

    The validator receives the bare token and returns the caller's claims
    (an AuthContext or any mapping). It may be sync or async, and it must
    tolerate concurrent calls; the gateway adds no locking.
    """

    def __init__(self, validator: Validator) -> None:
        self.validator = validator

    @classmethod
    def from_provider(
        cls, provider: CredentialProvider, timeout: float = 5.0
    ) -> "BearerGateway":
        """Create a gateway validating tokens against a credential provider."""
        return cls(provider.create_validator(timeout=timeout))

    async def authenticate(self, header_value: Optional[str]) -> AuthContext:
        """Authenticate a request from its Authorization header value.

        Args:
            header_value: Raw Authorization header, or None when absent.

        Returns:
            AuthContext produced by the validator.

        Raises:
            MissingCredentialError: No header.
            MalformedCredentialError: Not ``Bearer <token>``, or empty token.
            InvalidCredentialError: The validator rejected the token.
        """
        if not header_value:
            raise MissingCredentialError("Authorization required")

        if not header_value.startswith(BEARER_PREFIX):
            raise MalformedCredentialError(
                "Invalid Authorization format - expected Bearer token"
            )

        token = header_value[len(BEARER_PREFIX):].strip()
        if not token:
            raise MalformedCredentialError("Empty bearer token")

        try:
            result = self.validator(token)
            if inspect.isawaitable(result):
                result = await result
        except CredentialError:
            raise
        except Exception as e:
            # Validator errors may quote the token; the detail stays in __cause__
            raise InvalidCredentialError(
                f"Token validation failed ({type(e).__name__})"
            ) from e

        if not result:
            raise InvalidCredentialError("Invalid token")

        if isinstance(result, AuthContext):
            return result
        return AuthContext(result)


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Rejects requests without a valid bearer token.

    Paths in ``exclude_paths`` (by prefix) skip authentication, e.g. /health.
    """

    def __init__(
        self,
        app: ASGIApp,
        gateway: BearerGateway,
        exclude_paths: Optional[list[str]] = None,
    ) -> None:
        super().__init__(app)
        self.gateway = gateway
        self.exclude_paths = exclude_paths if exclude_paths is not None else ["/health"]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if any(request.url.path.startswith(p) for p in self.exclude_paths):
            return await call_next(request)

        try:
            auth_context = await self.gateway.authenticate(
                request.headers.get("authorization")
            )
        except CredentialError as e:
            logger.warning(
                f"Bearer authentication failed: {type(e).__name__}",
                extra={"reason": type(e).__name__, "path": request.url.path},
            )
            return PlainTextResponse(
                "Unauthorized",
                status_code=401,
                headers={"WWW-Authenticate": "Bearer"},
            )

        request.state.auth_context = auth_context
        return await call_next(request)
