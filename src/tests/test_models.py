"""
Tests for the shared auth data types.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add server sources to path
server_src_path = Path(__file__).parent.parent
sys.path.insert(0, str(server_src_path))

from auth.models import AuthContext, DeviceAuthorizationSession, TokenSet  # noqa: E402
from auth.provider import coerce_interval  # noqa: E402

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestDeviceAuthorizationSession:
    def test_seconds_remaining(self):
        session = DeviceAuthorizationSession(
            device_code="dc",
            user_code="UC",
            verification_uri="https://www.google.com/device",
            expires_at=NOW + timedelta(seconds=90),
            interval=5.0,
        )

        assert session.seconds_remaining(NOW) == 90
        assert session.seconds_remaining(NOW + timedelta(seconds=120)) == -30

    def test_immutable(self):
        session = DeviceAuthorizationSession("dc", "UC", "https://x", NOW, 5.0)

        with pytest.raises(AttributeError):
            session.interval = 1.0


class TestTokenSet:
    def test_expiry(self):
        token_set = TokenSet("tok", expires_at=NOW + timedelta(seconds=60))

        assert not token_set.is_expired(NOW)
        assert token_set.is_expired(NOW + timedelta(seconds=60))

    def test_no_expiry_never_expires(self):
        token_set = TokenSet.from_expires_in("tok", None, None)

        assert token_set.expires_at is None
        assert not token_set.is_expired()


class TestAuthContext:
    def test_claims_copied(self):
        """Verify later changes to the source dict are not visible."""
        source = {"authenticated": True, "email": "user@example.com"}
        auth_context = AuthContext(source)
        source["email"] = "attacker@example.com"

        assert auth_context.email == "user@example.com"

    def test_read_only(self):
        auth_context = AuthContext({"authenticated": True})

        with pytest.raises(TypeError):
            auth_context.claims["authenticated"] = False

    def test_mapping_behaviour(self):
        auth_context = AuthContext({"authenticated": True, "sub": "123", "name": "Test"})

        assert dict(auth_context) == {"authenticated": True, "sub": "123", "name": "Test"}
        assert auth_context == AuthContext({"authenticated": True, "sub": "123", "name": "Test"})
        assert auth_context.subject == "123"
        assert auth_context.name == "Test"
        assert auth_context.email is None

    def test_unauthenticated_default(self):
        assert AuthContext({"email": "x@y.z"}).authenticated is False
        assert not AuthContext()


@pytest.mark.parametrize(
    "value,expected",
    [(10, 10.0), ("2.5", 2.5), (None, 5.0), (0, 5.0), (-3, 5.0), ("abc", 5.0)],
)
def test_coerce_interval(value, expected):
    assert coerce_interval(value, 5.0) == expected
