"""
Test configuration for OAuth2 MCP Server tests.

Provides shared fixtures for:
- Mock aiohttp sessions and responses for the Google endpoints
- A scripted in-memory CredentialProvider for device flow and gateway tests
- Environment variable setups for the server configuration
- Mock FastMCP contexts and servers
"""

import asyncio
import inspect
import json
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

# =============================================================================
# Pre-collection environment setup (runs BEFORE test modules are imported)
# =============================================================================


def pytest_configure(config):
    """Set required environment variables before test collection.

    This hook runs before pytest collects tests, ensuring that imports
    of modules like config.settings don't fail due to missing env vars.
    """
    # Disable auth by default for tests
    os.environ.setdefault("ENABLE_AUTH", "false")


# Add the server sources to path
server_src_path = Path(__file__).parent.parent
sys.path.insert(0, str(server_src_path))

from auth.models import AuthContext, DeviceAuthorizationSession, TokenSet  # noqa: E402
from auth.provider import CredentialProvider  # noqa: E402

# =============================================================================
# Test Constants
# =============================================================================

TEST_CLIENT_ID = "test-client-67890.apps.googleusercontent.com"
TEST_CLIENT_SECRET = "test-secret-abcdef"
TEST_DEVICE_CODE = "AH-1Ng2test-device-code"
TEST_USER_CODE = "GQVQ-JKEC"


# =============================================================================
# Auto-use fixture to prevent .env file loading
# =============================================================================


@pytest.fixture(autouse=True)
def prevent_dotenv_loading(monkeypatch, tmp_path):
    """Prevent Pydantic settings from reading .env file during tests.

    This fixture runs automatically before each test to ensure
    environment isolation from the development .env file.
    """
    from config.settings import reset_config

    original_cwd = os.getcwd()

    empty_env = tmp_path / ".env"
    empty_env.write_text("")

    os.chdir(tmp_path)
    reset_config()

    yield

    reset_config()
    os.chdir(original_cwd)


# =============================================================================
# Mock HTTP Fixtures (aiohttp)
# =============================================================================


def make_response(
    status: int = 200,
    json_body: Any = None,
    text: Optional[str] = None,
    json_error: Optional[BaseException] = None,
):
    """Create a mock aiohttp response."""
    mock_response = MagicMock()
    mock_response.status = status
    if json_error is not None:
        mock_response.json = AsyncMock(side_effect=json_error)
    else:
        mock_response.json = AsyncMock(return_value=json_body)
    if text is None:
        text = json.dumps(json_body) if json_body is not None else ""
    mock_response.text = AsyncMock(return_value=text)
    return mock_response


class MockHTTPSession:
    """Stand-in for an open aiohttp.ClientSession.

    Replays the queued responses in order and records every request.
    Queue an exception instance to have the request raise it.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[Dict[str, Any]] = []

    def post(self, url, **kwargs):
        return self._request("POST", url, kwargs)

    def get(self, url, **kwargs):
        return self._request("GET", url, kwargs)

    @asynccontextmanager
    async def _request(self, method, url, kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        yield item


@pytest.fixture
def response_factory():
    """Factory for mock aiohttp responses."""
    return make_response


@pytest.fixture
def mock_http():
    """Factory returning (patched ClientSession class, session) for queued responses.

    Usage:
        client, http = mock_http(make_response(200, {...}))
        with patch("aiohttp.ClientSession", client):
            ...
    """

    def _install(*responses):
        http = MockHTTPSession(responses)
        mock_client = MagicMock()
        mock_client.return_value.__aenter__ = AsyncMock(return_value=http)
        mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
        return mock_client, http

    return _install


@pytest.fixture
def device_code_payload() -> Dict[str, Any]:
    """Device code response as returned by Google."""
    return {
        "device_code": TEST_DEVICE_CODE,
        "user_code": TEST_USER_CODE,
        "verification_url": "https://www.google.com/device",
        "expires_in": 1800,
        "interval": 5,
    }


@pytest.fixture
def token_payload() -> Dict[str, Any]:
    """Successful token response as returned by Google."""
    return {
        "access_token": "ya29.test-access-token-0123456789",
        "refresh_token": "1//test-refresh-token",
        "expires_in": 3599,
        "token_type": "Bearer",
        "scope": "email profile",
    }


@pytest.fixture
def google_provider():
    """Create a GoogleCredentialProvider instance for testing."""
    from auth.google import GoogleCredentialProvider

    return GoogleCredentialProvider(
        client_id=TEST_CLIENT_ID, client_secret=TEST_CLIENT_SECRET
    )


# =============================================================================
# Scripted Credential Provider
# =============================================================================


def make_session(
    expires_in: float = 5.0,
    interval: float = 0.02,
    device_code: str = TEST_DEVICE_CODE,
    user_code: str = TEST_USER_CODE,
) -> DeviceAuthorizationSession:
    """Create a device session expiring ``expires_in`` seconds from now."""
    return DeviceAuthorizationSession(
        device_code=device_code,
        user_code=user_code,
        verification_uri="https://www.google.com/device",
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        interval=interval,
    )


class FakeCredentialProvider(CredentialProvider):
    """In-memory provider driven by scripts.

    ``exchange_script`` items are consumed one per exchange call; the last
    item repeats. Each item is a TokenSet, an exception class or instance,
    or a callable (sync or async) producing one of those.
    """

    name = "fake"

    def __init__(
        self,
        session=None,
        exchange_script=None,
        issue_error: Optional[BaseException] = None,
        valid: Any = True,
        identity: Any = None,
        validate_delay: float = 0.0,
    ):
        super().__init__("fake-client", "fake-secret", ["email", "profile"])
        self.session = session if session is not None else make_session()
        self.exchange_script = list(exchange_script or [TokenSet("fake-access-token")])
        self.issue_error = issue_error
        self.valid = valid
        self.identity = identity if identity is not None else {"email": "user@example.com"}
        self.validate_delay = validate_delay
        self.exchange_calls: list[tuple[str, float]] = []
        self.validated_tokens: list[str] = []

    async def issue_device_code(self) -> DeviceAuthorizationSession:
        if self.issue_error is not None:
            raise self.issue_error
        return self.session() if callable(self.session) else self.session

    async def exchange_device_code(self, device_code: str) -> TokenSet:
        self.exchange_calls.append((device_code, asyncio.get_running_loop().time()))
        if len(self.exchange_script) > 1:
            item = self.exchange_script.pop(0)
        else:
            item = self.exchange_script[0]

        if callable(item) and not isinstance(item, type):
            item = item(device_code)
            if inspect.isawaitable(item):
                item = await item
        if isinstance(item, type) and issubclass(item, BaseException):
            raise item()
        if isinstance(item, BaseException):
            raise item
        return item

    async def refresh_token(self, refresh_token: str) -> TokenSet:
        return TokenSet("refreshed-access-token", refresh_token=refresh_token)

    async def validate_token(self, access_token: str) -> bool:
        self.validated_tokens.append(access_token)
        if self.validate_delay:
            await asyncio.sleep(self.validate_delay)
        if isinstance(self.valid, BaseException):
            raise self.valid
        return self.valid

    async def fetch_identity(self, access_token: str) -> AuthContext:
        if isinstance(self.identity, BaseException):
            raise self.identity
        return AuthContext(self.identity)


@pytest.fixture
def fake_provider_factory():
    """Factory for scripted credential providers."""
    return FakeCredentialProvider


@pytest.fixture
def session_factory():
    """Factory for device sessions with short test intervals."""
    return make_session


# =============================================================================
# Environment Variable Fixtures
# =============================================================================


def _clear_auth_env(monkeypatch):
    """Helper to clear any existing auth environment variables."""
    for var in [
        "ENABLE_AUTH",
        "GOOGLE_CLIENT_ID",
        "GOOGLE_CLIENT_SECRET",
        "OAUTH_SCOPES",
        "POLL_INTERVAL",
        "DEVICE_FLOW_TIMEOUT",
        "VALIDATION_TIMEOUT",
        "HTTP_TIMEOUT",
        "EXCLUDED_PATHS",
    ]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def mock_env_full_auth(monkeypatch):
    """Set all required environment variables for full auth config."""
    _clear_auth_env(monkeypatch)
    monkeypatch.setenv("ENABLE_AUTH", "true")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", TEST_CLIENT_ID)
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", TEST_CLIENT_SECRET)


@pytest.fixture
def mock_env_auth_disabled(monkeypatch):
    """Set environment variables with auth disabled."""
    _clear_auth_env(monkeypatch)
    monkeypatch.setenv("ENABLE_AUTH", "false")


@pytest.fixture
def mock_env_missing_secret(monkeypatch):
    """Set environment variables with auth enabled but missing GOOGLE_CLIENT_SECRET."""
    _clear_auth_env(monkeypatch)
    monkeypatch.setenv("ENABLE_AUTH", "true")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", TEST_CLIENT_ID)
    # GOOGLE_CLIENT_SECRET intentionally not set


# =============================================================================
# Mock Context Fixtures (for auth_utils tests)
# =============================================================================


def create_mock_context(
    token: str | None = None, auth_context: AuthContext | None = None
):
    """Create a mock FastMCP Context with an authorization header and request state."""
    ctx = Mock()
    ctx.request_context = Mock()
    ctx.request_context.request = Mock()

    if token:
        ctx.request_context.request.headers = {"Authorization": f"Bearer {token}"}
    else:
        ctx.request_context.request.headers = {}

    ctx.request_context.request.state = Mock(spec=[])
    if auth_context is not None:
        ctx.request_context.request.state.auth_context = auth_context

    return ctx


@pytest.fixture
def mock_context_factory():
    """Factory for creating mock contexts."""
    return create_mock_context


# =============================================================================
# MCP Server Fixtures
# =============================================================================


@pytest.fixture
def mock_mcp_server():
    """Mock MCP server for testing."""

    class MockMCP:
        def __init__(self):
            self.tools = []

        def tool(self, tags=None, annotations=None):
            def decorator(func):
                self.tools.append(
                    {"func": func, "tags": tags or [], "annotations": annotations}
                )
                return func

            return decorator

    return MockMCP()


@pytest.fixture
def general_service():
    """General service fixture."""
    from services.general_service import GeneralService

    return GeneralService()
