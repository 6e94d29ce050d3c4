"""
MCP (Model Context Protocol) tool bridge.

Connects to external tool servers through the ``mcp`` SDK, discovers their tool catalogs and
registers every discovered tool in a :class:`~threadmind.tools.registry.ToolRegistry` as
``{server}_{tool}``.

Usage:
    manager = MCPManager()
    try:
        counts = await manager.connect(settings.MCP_SERVERS, registry)
    except BridgeError as exc:
        logger.warning("%s", exc)  # servers that did connect stay usable
    ...
    await manager.close()
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
)

from mcp import (
    ClientSession,
    types,
)
from mcp.shared.exceptions import McpError

from threadmind.config import MCPServerConfig
from threadmind.core.schema import (
    InputSchema,
    ToolDefinition,
    ToolResult,
)
from threadmind.tools.base import Tool
from threadmind.tools.mcp.transports import (
    TransportOpener,
    create_transport,
)
from threadmind.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

CLIENT_INFO = types.Implementation(name="threadmind", version="0.1.0")
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_REQUEST_TIMEOUT = 60.0


# ============================================================================
# Errors
# ============================================================================
class MCPConnectionError(RuntimeError):
    """The session is not (or no longer) connected to its server."""


class MCPCallError(RuntimeError):
    """A bridged tool could not be invoked (transport or protocol failure)."""


class BridgeFailure(RuntimeError):
    """One server could not be bridged."""

    def __init__(self, server: str, reason: str) -> None:
        super().__init__(f"{server}: {reason}")
        self.server = server
        self.reason = reason


class BridgeConnectFailure(BridgeFailure):
    """Transport setup, connection or handshake failed."""


class BridgeCatalogFailure(BridgeFailure):
    """The server connected but its tool catalog could not be listed."""


class BridgeError(RuntimeError):
    """Aggregate of every per-server failure from :meth:`MCPManager.connect`."""

    def __init__(self, failures: List[BridgeFailure], tool_counts: Dict[str, int]) -> None:
        super().__init__("MCP connection errors: " + "; ".join(str(f) for f in failures))
        self.failures = failures
        self.tool_counts = tool_counts


# ============================================================================
# Translation helpers
# ============================================================================
def translate_input_schema(schema: Any) -> InputSchema:
    """
    Map an MCP ``inputSchema`` onto our property/required shape.

    Anything missing or malformed degrades to an empty (but valid) schema.
    """
    if not isinstance(schema, Mapping):
        return InputSchema()
    properties = schema.get("properties")
    required = schema.get("required")
    return InputSchema(
        properties=dict(properties) if isinstance(properties, Mapping) else {},
        required=[r for r in required if isinstance(r, str)] if isinstance(required, list) else [],
    )


def result_to_text(result: Optional[types.CallToolResult]) -> str:
    """Flatten a ``tools/call`` result: text parts newline-joined, other parts as JSON."""
    if result is None:
        return ""
    parts: List[str] = []
    for item in result.content:
        if isinstance(item, types.TextContent):
            parts.append(item.text)
        else:
            payload = item.model_dump(mode="json", by_alias=True, exclude_none=True)
            parts.append(json.dumps(payload, ensure_ascii=False))
    return "\n".join(parts)


# ============================================================================
# Session
# ============================================================================
class MCPSession:
    """
    An initialised :class:`mcp.ClientSession` over one transport.

    The transport and client-session contexts live in a background task that enters and exits
    them itself (anyio cancel scopes must be closed by the task that opened them).  Requests
    may be sent from any task on the same event loop.
    """

    def __init__(
        self,
        name: str,
        opener: TransportOpener,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self.name = name
        self.request_timeout = request_timeout
        self.server_info: Dict[str, Any] = {}
        self.protocol_version: Optional[str] = None
        self._opener = opener
        self._session: Optional[ClientSession] = None
        self._task: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Future] = None
        self._closing = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> ClientSession:
        if self._session is None:
            raise MCPConnectionError(f"MCP server {self.name!r} is not connected")
        return self._session

    async def initialize(self) -> None:
        """Open the transport and run the ``initialize`` handshake."""
        if self._task is not None:
            raise MCPConnectionError(f"MCP session {self.name!r} was already started")
        self._ready = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._hold(self._ready), name=f"mcp-{self.name}")
        await self._ready
        logger.debug(
            "MCP server %r initialised (protocol %s): %s",
            self.name,
            self.protocol_version,
            self.server_info,
        )

    async def _hold(self, ready: asyncio.Future) -> None:
        try:
            async with AsyncExitStack() as stack:
                read, write = await stack.enter_async_context(self._opener())
                session = await stack.enter_async_context(
                    ClientSession(
                        read,
                        write,
                        read_timeout_seconds=timedelta(seconds=self.request_timeout),
                        client_info=CLIENT_INFO,
                    )
                )
                result = await session.initialize()
                self.server_info = result.serverInfo.model_dump(exclude_none=True)
                self.protocol_version = str(result.protocolVersion)
                self._session = session
                if not ready.done():
                    ready.set_result(None)
                await self._closing.wait()
        except Exception as exc:  # pylint: disable=broad-except
            if not ready.done():
                ready.set_exception(exc)
            else:
                logger.warning("MCP server %r connection ended: %s", self.name, exc)
        finally:
            self._session = None
            if not ready.done():
                ready.cancel()

    async def list_tools(self) -> AsyncIterator[types.Tool]:
        """Yield every tool descriptor, following ``nextCursor`` pagination."""
        cursor: Optional[str] = None
        while True:
            result = await self.session.list_tools(cursor=cursor)
            for tool in result.tools:
                yield tool
            cursor = result.nextCursor
            if not cursor:
                return

    async def call_tool(self, name: str, arguments: Mapping[str, Any]) -> types.CallToolResult:
        return await self.session.call_tool(name, dict(arguments))

    async def close(self) -> None:
        """Leave the session and stop its transport (a no-op when never started)."""
        task, self._task = self._task, None
        if task is None:
            return
        if self._session is None:
            # still connecting
            task.cancel()
        self._closing.set()
        await asyncio.wait([task])


# ============================================================================
# Bridged tool
# ============================================================================
class MCPTool(Tool):
    """Adapter exposing one remote MCP tool as a local :class:`Tool`."""

    def __init__(
        self,
        server_name: str,
        tool_name: str,
        session: MCPSession,
        description: str = "",
        input_schema: Any = None,
    ) -> None:
        self.server_name = server_name
        self.tool_name = tool_name
        self.session = session
        self.description = description or ""
        self.input_schema = input_schema

    @classmethod
    def from_descriptor(
        cls, server_name: str, session: MCPSession, tool: types.Tool
    ) -> "MCPTool":
        return cls(
            server_name,
            tool.name,
            session,
            description=tool.description or "",
            input_schema=tool.inputSchema,
        )

    @property
    def name(self) -> str:
        return f"{self.server_name}_{self.tool_name}"

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=translate_input_schema(self.input_schema),
        )

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        try:
            result = await self.session.call_tool(self.tool_name, arguments or {})
        except (McpError, MCPConnectionError) as exc:
            raise MCPCallError(f"MCP tool call failed: {exc}") from exc
        return ToolResult(content=result_to_text(result), is_error=bool(result.isError))


# ============================================================================
# Manager
# ============================================================================
TransportFactory = Callable[[MCPServerConfig], TransportOpener]


def _reason(exc: BaseException, timeout: float) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"timed out after {timeout:g}s"
    return str(exc) or type(exc).__name__


class MCPManager:
    """Owns every MCP session the process has opened."""

    def __init__(
        self,
        transport_factory: TransportFactory = create_transport,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._transport_factory = transport_factory
        self._request_timeout = request_timeout
        self._sessions: List[MCPSession] = []

    @property
    def sessions(self) -> List[MCPSession]:
        return list(self._sessions)

    async def connect(
        self,
        servers: Iterable[MCPServerConfig],
        registry: ToolRegistry,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> Dict[str, int]:
        """
        Bridge every server in *servers* into *registry*.

        Each server is handled independently; one failing never stops the others.

        Returns
        -------
        dict
            Tools registered per server.

        Raises
        ------
        BridgeError
            If at least one server failed.  Servers that succeeded remain registered.
        """
        failures: List[BridgeFailure] = []
        counts: Dict[str, int] = {}

        for config in servers:
            try:
                opener = self._transport_factory(config)
            except ValueError as exc:
                failures.append(BridgeConnectFailure(config.name, str(exc)))
                continue

            session = MCPSession(config.name, opener, self._request_timeout)
            try:
                await asyncio.wait_for(session.initialize(), timeout=timeout)
            except Exception as exc:  # pylint: disable=broad-except
                reason = f"connection failed: {_reason(exc, timeout)}"
                failures.append(BridgeConnectFailure(config.name, reason))
                await self._close_quietly(session)
                continue
            self._sessions.append(session)

            registered: List[str] = []
            try:
                await asyncio.wait_for(
                    self._register_tools(session, registry, registered), timeout=timeout
                )
            except Exception as exc:  # pylint: disable=broad-except
                failures.append(
                    BridgeCatalogFailure(
                        config.name, f"tool listing failed: {_reason(exc, timeout)}"
                    )
                )

            counts[config.name] = len(registered)
            logger.info("MCP server %r connected: %d tools", config.name, len(registered))

        if failures:
            raise BridgeError(failures, counts)
        return counts

    @staticmethod
    async def _register_tools(
        session: MCPSession, registry: ToolRegistry, registered: List[str]
    ) -> None:
        async for descriptor in session.list_tools():
            tool = MCPTool.from_descriptor(session.name, session, descriptor)
            registry.register(tool)
            registered.append(tool.name)

    @staticmethod
    async def _close_quietly(session: MCPSession) -> None:
        try:
            await session.close()
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("Cleanup of MCP server %r failed: %s", session.name, exc)

    async def close(self) -> None:
        """Close every session; one failing to close does not stop the rest."""
        sessions, self._sessions = self._sessions, []
        for session in sessions:
            try:
                await session.close()
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Error closing MCP session %r: %s", session.name, exc)

    async def __aenter__(self) -> "MCPManager":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
