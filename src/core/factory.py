"""
Core MCP server components and factory patterns.

Tool services register their tools on a FastMCP instance through the
factory. Authentication is not configured here; the bearer middleware wraps
the HTTP app produced from the server (see server.py).
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from fastmcp import FastMCP


class Domain(Enum):
    """Service domains for organizing MCP tools."""

    GENERAL = "general"


class MCPToolBase(ABC):
    """Base class for MCP tool services.

    All tool services must inherit from this class and implement
    the register_tools method to register their tools with the MCP server.
    """

    def __init__(self, domain: Domain) -> None:
        self.domain = domain

    @abstractmethod
    def register_tools(self, mcp: FastMCP) -> None:
        """Register tools with the MCP server.

        Args:
            mcp: The FastMCP server instance to register tools with.
        """
        pass

    @property
    @abstractmethod
    def tool_count(self) -> int:
        """Return the number of tools provided by this service."""
        pass


class MCPToolFactory:
    """Factory for creating and managing MCP tools.

    Keeps one service per domain and builds a FastMCP server with every
    registered service's tools.
    """

    def __init__(self) -> None:
        self._services: Dict[Domain, MCPToolBase] = {}
        self._mcp_server: Optional[FastMCP] = None

    def register_service(self, service: MCPToolBase) -> None:
        """Register a tool service, replacing any service of the same domain."""
        self._services[service.domain] = service

    def create_mcp_server(self, name: str = "OAuth2MCP", version: str = "1.0.0") -> FastMCP:
        """Create the MCP server and register all services' tools on it.

        Args:
            name: The name of the MCP server.
            version: Version reported to MCP clients.

        Returns:
            Configured FastMCP server instance.
        """
        self._mcp_server = FastMCP(name, version=version)

        for service in self._services.values():
            service.register_tools(self._mcp_server)

        return self._mcp_server

    def get_tool_summary(self) -> Dict[str, Any]:
        """Get a summary of all tools and services.

        Returns:
            Dictionary containing service and tool counts.
        """
        summary: Dict[str, Any] = {
            "total_services": len(self._services),
            "total_tools": sum(
                service.tool_count for service in self._services.values()
            ),
            "services": {},
        }

        for domain, service in self._services.items():
            summary["services"][domain.value] = {
                "tool_count": service.tool_count,
                "class_name": service.__class__.__name__,
            }

        return summary
