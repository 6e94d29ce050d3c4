"""Bridge to external MCP tool servers (stdio, legacy SSE and streamable HTTP)."""

from threadmind.tools.mcp.bridge import (
    BridgeCatalogFailure,
    BridgeConnectFailure,
    BridgeError,
    BridgeFailure,
    MCPCallError,
    MCPConnectionError,
    MCPManager,
    MCPSession,
    MCPTool,
    result_to_text,
    translate_input_schema,
)
from threadmind.tools.mcp.transports import (
    TransportConfigError,
    TransportOpener,
    create_transport,
)

__all__ = [
    "BridgeCatalogFailure",
    "BridgeConnectFailure",
    "BridgeError",
    "BridgeFailure",
    "MCPCallError",
    "MCPConnectionError",
    "MCPManager",
    "MCPSession",
    "MCPTool",
    "TransportConfigError",
    "TransportOpener",
    "create_transport",
    "result_to_text",
    "translate_input_schema",
]
