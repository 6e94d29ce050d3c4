"""Main orchestration loop for threadmind."""

from __future__ import annotations

import logging
from typing import List

from threadmind.agent.messenger import BaseMessenger
from threadmind.agent.tool_executor import (
    ToolExecutionError,
    effective_timeout,
    execute_tool,
)
from threadmind.core.schema import (
    STOP_REASON_TOOL_USE,
    Message,
    TextBlock,
    ToolResultBlock,
)
from threadmind.memory.conversation_store import (
    ConversationStore,
    ThreadLocks,
)
from threadmind.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

ITERATIONS_EXHAUSTED = "reached maximum tool use iterations"
TOOL_INTERNAL_ERROR = "internal error executing tool"

_WEB_SEARCH_LINE = "- Web search: you can search the web for current information"
_FILESYSTEM_LINE = "- Filesystem: you can read, write, and list files in a sandboxed directory"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def extract_text(message: Message) -> str:
    """Join the text blocks of *message* with newlines, skipping everything else."""
    return "\n".join(block.text for block in message.content if isinstance(block, TextBlock))


def tool_capabilities_prompt(registry: ToolRegistry | None) -> str:
    """
    Describe the registered tools in plain language for the system prompt.

    Built from the registry on every call so it always matches what is actually registered.
    Several tools of one family (``fs_*``) collapse into a single line.
    """
    if registry is None or registry.is_empty():
        return ""

    parts: List[str] = []
    if registry.has_server_tools():
        parts.append(_WEB_SEARCH_LINE)
    for name in registry.local_tool_names():
        if name.startswith("fs_"):
            parts.append(_FILESYSTEM_LINE)
        else:
            parts.append(f"- {name}")

    unique = list(dict.fromkeys(parts))
    if not unique:
        return ""
    return "\n\nYou have access to the following tools:\n" + "\n".join(unique)


# ---------------------------------------------------------------------------
# Agent Loop
# ---------------------------------------------------------------------------
class AgentLoop:
    """
    Drives the model-call / tool-execution cycle for one user request at a time per thread.

    Parameters
    ----------
    messenger:
        The model API.  Its :class:`~threadmind.agent.messenger.ModelCallError` is the only
        exception :meth:`run` lets through.
    store:
        Conversation history; the loop only ever appends to it.
    registry:
        Tools offered to the model.  ``None`` behaves like an empty registry.
    system_prompt:
        Base system prompt; the tool capability summary is appended to it.
    max_iterations:
        Model calls allowed per request.  Values below 1 mean exactly 1.
    tool_timeout:
        Seconds per tool call; unset or non-positive means 30.
    """

    def __init__(
        self,
        messenger: BaseMessenger,
        store: ConversationStore | None = None,
        registry: ToolRegistry | None = None,
        system_prompt: str = "",
        max_iterations: int = 10,
        tool_timeout: float | None = None,
    ) -> None:
        self.messenger = messenger
        self.store = store if store is not None else ConversationStore()
        self.registry = registry
        self.system_prompt = system_prompt or ""
        self.max_iterations = max(1, max_iterations)
        self.tool_timeout = effective_timeout(tool_timeout)
        self._locks = ThreadLocks()

    def build_system_prompt(self) -> str:
        return self.system_prompt + tool_capabilities_prompt(self.registry)

    async def run(self, thread_id: str, user_text: str) -> str:
        """
        Answer *user_text* in the conversation *thread_id*.

        Runs on the same thread id are serialised; different threads proceed independently.
        """
        async with self._locks.hold(thread_id):
            return await self._run(thread_id, user_text)

    async def _run(self, thread_id: str, user_text: str) -> str:
        self.store.append(thread_id, Message.user_text(user_text))

        registry = self.registry if self.registry is not None else ToolRegistry()
        has_tools = not registry.is_empty()

        for iteration in range(self.max_iterations):
            tools = registry.definitions() if has_tools else []
            if iteration == 0 and tools:
                logger.info(
                    "Sending %d tool(s) to the model: %s",
                    len(tools),
                    [tool.get("name", "(unknown)") for tool in tools],
                )

            # ModelCallError propagates; the user message stays in history.
            response = await self.messenger.send(
                self.store.get(thread_id), self.build_system_prompt(), tools
            )
            self.store.append(thread_id, response.message)

            if response.stop_reason != STOP_REASON_TOOL_USE:
                return extract_text(response.message)

            # Tool use with nothing registered: don't spin on malformed output.
            if not has_tools:
                return extract_text(response.message)

            results: List[ToolResultBlock] = []
            for call in response.message.tool_uses():
                if not registry.has_local_tool(call.name):
                    # Server-side tool, already handled by the provider.
                    continue
                try:
                    result = await execute_tool(registry, call.name, call.input, self.tool_timeout)
                    block = ToolResultBlock(
                        tool_use_id=call.id, content=result.content, is_error=result.is_error
                    )
                except ToolExecutionError as exc:
                    logger.error("Tool execution error (%s): %s", call.name, exc)
                    block = ToolResultBlock(
                        tool_use_id=call.id, content=TOOL_INTERNAL_ERROR, is_error=True
                    )
                results.append(block)

            if not results:
                return extract_text(response.message)

            logger.debug(
                "Thread %s: %d tool result(s) in iteration %d", thread_id, len(results), iteration
            )
            self.store.append(thread_id, Message.tool_results(results))

        logger.warning("Thread %s: tool loop hit %d iterations", thread_id, self.max_iterations)
        return ITERATIONS_EXHAUSTED
