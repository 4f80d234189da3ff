"""
MCP tool services for the OAuth2 MCP Server.
"""

from .general_service import GeneralService

__all__ = ["GeneralService"]
