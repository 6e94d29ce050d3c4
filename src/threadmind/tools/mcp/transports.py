"""
MCP client transports.

Three ways to reach a tool server, all provided by the ``mcp`` SDK:

* ``stdio``       - spawn a subprocess and speak JSON-RPC on its stdin/stdout;
* ``sse``         - legacy HTTP+SSE: a long-lived GET event stream plus POSTs to the endpoint
                    the server announces on it;
* ``streamable``  - streamable HTTP: every request is a POST answered with JSON or a short
                    event stream.

:func:`create_transport` turns a :class:`~threadmind.config.MCPServerConfig` into an *opener*:
a zero-argument callable returning an async context manager that yields the ``(read, write)``
stream pair a :class:`mcp.ClientSession` runs on.
"""

from __future__ import annotations

import functools
import os
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Callable,
    Dict,
    Optional,
    Tuple,
)

from mcp import StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from threadmind.config import MCPServerConfig

StreamPair = Tuple[Any, Any]
TransportOpener = Callable[[], AsyncContextManager[StreamPair]]


class TransportConfigError(ValueError):
    """The server descriptor does not describe a usable transport."""


@asynccontextmanager
async def streamable_http_streams(
    url: str, headers: Optional[Dict[str, str]] = None
) -> AsyncIterator[StreamPair]:
    """:func:`streamablehttp_client` minus the session-id getter, so every opener yields a pair."""
    async with streamablehttp_client(url, headers=headers) as (read, write, _):
        yield read, write


def create_transport(config: MCPServerConfig) -> TransportOpener:
    """
    Build the opener described by *config*.

    For stdio servers the configured ``env`` is layered over the parent environment, so the
    child still finds ``PATH`` and friends.

    Raises
    ------
    TransportConfigError
        If a required field is missing or the transport kind is unknown.
    """
    kind = (config.transport or "stdio").lower()
    headers = dict(config.headers) or None

    if kind == "stdio":
        if not config.command:
            raise TransportConfigError("stdio transport requires 'command'")
        params = StdioServerParameters(
            command=config.command,
            args=list(config.args),
            env={**os.environ, **config.env},
        )
        return functools.partial(stdio_client, params)

    if kind == "sse":
        if not config.url:
            raise TransportConfigError("sse transport requires 'url'")
        return functools.partial(sse_client, config.url, headers=headers)

    if kind == "streamable":
        if not config.url:
            raise TransportConfigError("streamable transport requires 'url'")
        return functools.partial(streamable_http_streams, config.url, headers=headers)

    raise TransportConfigError(f"unknown transport type: {config.transport!r}")
