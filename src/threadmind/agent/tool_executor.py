"""Dispatches tool calls registered in a :class:`ToolRegistry` and wraps errors."""

import asyncio
import logging
from typing import (
    Any,
    Mapping,
)

from threadmind.core.schema import ToolResult
from threadmind.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 30.0


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


class ToolExecutionTimeout(ToolExecutionError):
    """The tool did not finish within its time budget."""


class ToolExecutionFailure(ToolExecutionError):
    """The tool raised instead of returning a result."""


def effective_timeout(timeout: float | None) -> float:
    """Map an unset or non-positive timeout to :data:`DEFAULT_TOOL_TIMEOUT`."""
    if timeout is None or timeout <= 0:
        return DEFAULT_TOOL_TIMEOUT
    return float(timeout)


async def execute_tool(
    registry: ToolRegistry,
    name: str,
    args: Mapping[str, Any] | None = None,
    timeout: float | None = None,
) -> ToolResult:
    """
    Look up *name* in *registry* and invoke it with *args* under its own timeout.

    Parameters
    ----------
    registry:
        Where the tool is registered.
    name:
        The registered tool name.
    args:
        JSON arguments passed verbatim to the tool.  If *None*, an empty dict is assumed.
    timeout:
        Seconds before the call is abandoned; see :func:`effective_timeout`.

    Returns
    -------
    ToolResult
        Whatever the tool reported, error-flagged or not.

    Raises
    ------
    ToolExecutionTimeout
        If the tool exceeds its time budget.
    ToolExecutionFailure
        If the tool is missing or its invocation raises an exception.
    """

    if args is None:
        args = {}
    limit = effective_timeout(timeout)

    try:
        logger.debug("Executing tool '%s' with args=%s", name, args)
        return await asyncio.wait_for(registry.execute(name, args), timeout=limit)
    except asyncio.TimeoutError as exc:
        logger.warning("Tool '%s' timed out after %.1fs", name, limit)
        raise ToolExecutionTimeout(f"Tool '{name}' timed out after {limit:.1f}s") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", name)
        raise ToolExecutionFailure(f"Tool '{name}' raised an error: {exc}") from exc
