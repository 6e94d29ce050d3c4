"""Test doubles shared by the test modules."""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.exceptions import McpError
from mcp.shared.memory import create_client_server_memory_streams

from threadmind.agent.messenger import BaseMessenger
from threadmind.core.schema import (
    InputSchema,
    Message,
    ModelResponse,
    TextBlock,
    ToolDefinition,
    ToolResult,
    ToolUseBlock,
)
from threadmind.tools.base import Tool


# ---------------------------------------------------------------------------
# Model responses
# ---------------------------------------------------------------------------
def text_response(text: str, stop_reason: str = "end_turn") -> ModelResponse:
    return ModelResponse(
        message=Message(role="assistant", content=(TextBlock(text=text),)),
        stop_reason=stop_reason,
    )


def tool_use_response(
    *calls: Tuple[str, str, Dict[str, Any]], text: Optional[str] = None
) -> ModelResponse:
    """Assistant turn asking for each ``(id, name, input)`` in *calls*."""
    blocks: List[Any] = [TextBlock(text=text)] if text else []
    blocks.extend(ToolUseBlock(id=call_id, name=name, input=args) for call_id, name, args in calls)
    return ModelResponse(
        message=Message(role="assistant", content=tuple(blocks)), stop_reason="tool_use"
    )


class ScriptedMessenger(BaseMessenger):
    """
    Replays canned responses in order and records every request.

    With ``repeat_last=True`` the final response is served forever.
    """

    def __init__(
        self, responses: Sequence[Union[ModelResponse, Exception]], repeat_last: bool = False
    ) -> None:
        super().__init__()
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.calls: List[Dict[str, Any]] = []

    async def send(
        self,
        history: Sequence[Message],
        system_prompt: str,
        tools: Sequence[Dict[str, Any]],
    ) -> ModelResponse:
        self.calls.append(
            {"history": list(history), "system_prompt": system_prompt, "tools": list(tools)}
        )
        if not self.responses:
            raise AssertionError("unexpected model call")
        if self.repeat_last and len(self.responses) == 1:
            item = self.responses[0]
        else:
            item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------
class EchoTool(Tool):
    """Returns its arguments as JSON; optionally sleeps or raises first."""

    def __init__(
        self, name: str = "echo", delay: float = 0.0, error: Optional[Exception] = None
    ) -> None:
        self._name = name
        self.delay = delay
        self.error = error
        self.received: List[Dict[str, Any]] = []

    @property
    def name(self) -> str:
        return self._name

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self._name,
            description="Echo the arguments back",
            input_schema=InputSchema(properties={"text": {"type": "string"}}),
        )

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        self.received.append(dict(arguments))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ToolResult(content=json.dumps(dict(arguments), sort_keys=True))


# ---------------------------------------------------------------------------
# MCP
# ---------------------------------------------------------------------------
class FakeMCPServer:
    """
    In-memory MCP server built on the SDK's low-level server.

    ``pages`` is a list of tool-descriptor lists, served one ``tools/list`` page at a time.
    ``call_results`` maps tool name to the text it returns, a ``CallToolResult``, or an
    exception to raise.  :meth:`open` is a transport opener for :class:`MCPSession`.
    """

    def __init__(
        self,
        pages: Optional[List[List[Dict[str, Any]]]] = None,
        call_results: Optional[Dict[str, Any]] = None,
        fail_list_after: Optional[int] = None,
    ) -> None:
        self.pages = pages if pages is not None else [[]]
        self.call_results = call_results or {}
        self.fail_list_after = fail_list_after
        self.list_cursors: List[Optional[str]] = []
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.opened = 0
        self.closed = 0
        self.server = Server("fake")
        self.server.request_handlers[types.ListToolsRequest] = self._list_tools
        self.server.request_handlers[types.CallToolRequest] = self._call_tool

    async def _list_tools(self, request: Optional[types.ListToolsRequest]) -> types.ServerResult:
        cursor = request.params.cursor if request is not None and request.params else None
        self.list_cursors.append(cursor)
        page = int(cursor or 0)
        if self.fail_list_after is not None and page >= self.fail_list_after:
            raise McpError(
                types.ErrorData(code=types.INTERNAL_ERROR, message="catalog unavailable")
            )
        tools = [types.Tool(**{"inputSchema": {}, **tool}) for tool in self.pages[page]]
        next_cursor = str(page + 1) if page + 1 < len(self.pages) else None
        return types.ServerResult(types.ListToolsResult(tools=tools, nextCursor=next_cursor))

    async def _call_tool(self, request: types.CallToolRequest) -> types.ServerResult:
        name = request.params.name
        self.calls.append((name, dict(request.params.arguments or {})))
        outcome = self.call_results.get(name, "ok")
        if isinstance(outcome, Exception):
            raise outcome
        if not isinstance(outcome, types.CallToolResult):
            outcome = types.CallToolResult(content=[types.TextContent(type="text", text=outcome)])
        return types.ServerResult(outcome)

    @asynccontextmanager
    async def open(self) -> AsyncIterator[Any]:
        self.opened += 1
        async with create_client_server_memory_streams() as (client_streams, server_streams):
            read, write = server_streams
            serving = asyncio.create_task(
                self.server.run(read, write, self.server.create_initialization_options())
            )
            try:
                yield client_streams
            finally:
                serving.cancel()
                await asyncio.wait([serving])
                self.closed += 1


@asynccontextmanager
async def refusing_opener() -> AsyncIterator[Any]:
    raise ConnectionRefusedError("connection refused")
    yield  # pylint: disable=unreachable


@asynccontextmanager
async def hanging_opener() -> AsyncIterator[Any]:
    await asyncio.Event().wait()
    yield
