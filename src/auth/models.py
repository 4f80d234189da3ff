"""
Data types shared by the credential provider, device flow and bearer gateway.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional


@dataclass(frozen=True)
class DeviceAuthorizationSession:
    """Device/user code pair issued by the authorization server.

    Created once per device flow and never modified. ``expires_at`` is a
    fixed UTC deadline computed from ``expires_in`` when the code was issued.
    """

    device_code: str
    user_code: str
    verification_uri: str
    expires_at: datetime
    interval: float
    verification_uri_complete: Optional[str] = None

    def seconds_remaining(self, now: Optional[datetime] = None) -> float:
        """Seconds until the device code expires (negative once expired)."""
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds()


@dataclass(frozen=True)
class TokenSet:
    """Tokens returned by a successful exchange or refresh.

    Expiry is checked by the caller via :meth:`is_expired`; nothing here
    enforces it.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = "Bearer"

    @classmethod
    def from_expires_in(
        cls,
        access_token: str,
        refresh_token: Optional[str],
        expires_in: Optional[float],
        token_type: str = "Bearer",
    ) -> "TokenSet":
        expires_at = None
        if expires_in is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            token_type=token_type,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


@dataclass(frozen=True, eq=False)
class AuthContext(Mapping[str, Any]):
    """Identity claims resolved for an authenticated request.

    Behaves as a read-only mapping of claim name to value. The claims are
    copied on construction, so later changes to the source dict are not
    visible here.
    """

    claims: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "claims", MappingProxyType(dict(self.claims)))

    def __getitem__(self, key: str) -> Any:
        return self.claims[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.claims)

    def __len__(self) -> int:
        return len(self.claims)

    @property
    def authenticated(self) -> bool:
        return bool(self.claims.get("authenticated", False))

    @property
    def subject(self) -> Optional[str]:
        """Stable user identifier (``sub``, falling back to Google's ``id``)."""
        value = self.claims.get("sub") or self.claims.get("id")
        return str(value) if value else None

    @property
    def email(self) -> Optional[str]:
        return self.claims.get("email")

    @property
    def name(self) -> Optional[str]:
        return self.claims.get("name")

    def to_dict(self) -> dict[str, Any]:
        return dict(self.claims)
