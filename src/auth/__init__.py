"""
Authentication module for the OAuth2 device flow and bearer token gateway.
"""

from .device_flow import DeviceFlowClient, DeviceFlowResult, FlowState
from .gateway import BearerAuthMiddleware, BearerGateway
from .google import GoogleCredentialProvider
from .models import AuthContext, DeviceAuthorizationSession, TokenSet
from .provider import CredentialProvider

__all__ = [
    "AuthContext",
    "BearerAuthMiddleware",
    "BearerGateway",
    "CredentialProvider",
    "DeviceAuthorizationSession",
    "DeviceFlowClient",
    "DeviceFlowResult",
    "FlowState",
    "GoogleCredentialProvider",
    "TokenSet",
]
