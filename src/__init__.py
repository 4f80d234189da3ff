"""
OAuth2 MCP Server - MCP server gated by OAuth2 bearer token authentication.

Obtains access tokens through the OAuth 2.0 device authorization grant
(Google) and validates the bearer token of every inbound request before
dispatching it to the registered MCP tools.
"""

__version__ = "1.0.0"
