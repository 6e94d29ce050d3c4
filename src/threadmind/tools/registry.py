"""
Tool registry.

Holds every locally-executable :class:`~threadmind.tools.base.Tool` (filesystem tools, bridged MCP
tools, anything else) plus the server-side declarations the model provider runs itself.
"""

import logging
import threading
from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

from threadmind.core.schema import ToolResult
from threadmind.tools.base import (
    ServerTool,
    Tool,
)

logger = logging.getLogger(__name__)


class UnknownToolError(LookupError):
    """Raised when dispatching to a name that has no local tool."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown tool: {name}")
        self.name = name


class ToolRegistry:
    """Thread-safe collection of local tools and server tool declarations."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._local: Dict[str, Tool] = {}
        self._server: List[ServerTool] = []

    def register(self, tool: Tool) -> None:
        """Insert *tool*, replacing any local tool with the same name."""
        with self._lock:
            if tool.name in self._local:
                logger.debug("Replacing tool '%s'", tool.name)
            self._local[tool.name] = tool

    def add_server_tool(self, declaration: ServerTool) -> None:
        """Append a declaration the model provider executes on its side."""
        with self._lock:
            self._server.append(declaration)

    def definitions(self) -> List[Dict[str, Any]]:
        """Every local tool schema (sorted by name) followed by every server declaration."""
        with self._lock:
            local = [self._local[name] for name in sorted(self._local)]
            server = list(self._server)
        return [tool.definition().to_api() for tool in local] + [s.to_api() for s in server]

    async def execute(self, name: str, arguments: Mapping[str, Any]) -> ToolResult:
        """
        Run the local tool registered as *name*.

        Raises
        ------
        UnknownToolError
            If no local tool has that name.
        """
        with self._lock:
            tool = self._local.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return await tool.execute(arguments)

    def has_local_tool(self, name: str) -> bool:
        with self._lock:
            return name in self._local

    def has_server_tools(self) -> bool:
        with self._lock:
            return bool(self._server)

    def local_tool_names(self) -> List[str]:
        """Sorted names of all local tools."""
        with self._lock:
            return sorted(self._local)

    def server_tool_names(self) -> List[str]:
        with self._lock:
            return [s.name for s in self._server]

    def is_empty(self) -> bool:
        with self._lock:
            return not self._local and not self._server

    def __len__(self) -> int:
        with self._lock:
            return len(self._local) + len(self._server)
