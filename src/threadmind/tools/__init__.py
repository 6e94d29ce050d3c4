"""
Tools the agent can offer to the model.

A tool is either *local* (a :class:`~threadmind.tools.base.Tool` we execute ourselves, such as the
sandboxed filesystem tools or a bridged MCP tool) or a *server tool* (a declaration such as web
search that the model provider executes on its side).  Both kinds live in a
:class:`~threadmind.tools.registry.ToolRegistry`:

    registry = ToolRegistry()
    registry.add_server_tool(ServerTool.web_search())
    for tool in filesystem_tools("/srv/sandbox"):
        registry.register(tool)
"""

from threadmind.tools.base import (
    ServerTool,
    Tool,
)
from threadmind.tools.filesystem import filesystem_tools
from threadmind.tools.registry import (
    ToolRegistry,
    UnknownToolError,
)
from threadmind.tools.sandbox import (
    InvalidPathError,
    PathEscapeError,
    SandboxError,
    resolve_sandboxed_path,
)

__all__ = [
    "InvalidPathError",
    "PathEscapeError",
    "SandboxError",
    "ServerTool",
    "Tool",
    "ToolRegistry",
    "UnknownToolError",
    "filesystem_tools",
    "resolve_sandboxed_path",
]
