"""
threadmind entry point.

This file handles startup concerns (arg-parsing, env setup, logging), assembles the runtime (tool
registry, conversation store, messenger, agent loop, MCP bridge) and launches the appropriate
interface (API or CLI).
"""

import argparse
import logging
import os
import sys
from typing import (
    Dict,
    Optional,
)

from threadmind.agent.agent_loop import AgentLoop
from threadmind.agent.messenger import (
    BaseMessenger,
    load_messenger,
)
from threadmind.config import (
    Settings,
    settings,
)
from threadmind.memory.conversation_store import ConversationStore
from threadmind.tools.base import ServerTool
from threadmind.tools.filesystem import filesystem_tools
from threadmind.tools.mcp.bridge import (
    BridgeError,
    MCPManager,
)
from threadmind.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------
class Runtime:
    """Everything one process needs to answer requests, wired together."""

    def __init__(
        self,
        config: Settings,
        agent: AgentLoop,
        registry: ToolRegistry,
        store: ConversationStore,
        mcp: MCPManager,
    ) -> None:
        self.config = config
        self.agent = agent
        self.registry = registry
        self.store = store
        self.mcp = mcp

    async def start(self) -> Dict[str, int]:
        """
        Bridge the configured MCP servers into the registry.

        A server that fails is logged and skipped; startup always continues.

        Returns
        -------
        dict
            Tools registered per server that connected.
        """
        if not self.config.MCP_SERVERS:
            return {}
        try:
            counts = await self.mcp.connect(
                self.config.MCP_SERVERS,
                self.registry,
                timeout=self.config.MCP_CONNECT_TIMEOUT_SECONDS,
            )
        except BridgeError as exc:
            logger.warning("%s", exc)
            counts = exc.tool_counts
        logger.info("Registered tools: %s", self.registry.local_tool_names())
        return counts

    async def close(self) -> None:
        await self.mcp.close()


def build_runtime(config: Settings, messenger: Optional[BaseMessenger] = None) -> Runtime:
    """
    Assemble a :class:`Runtime` from *config*.

    Parameters
    ----------
    config:
        Application settings.
    messenger:
        Model API to use; defaults to ``load_messenger(config=config)``.
    """
    registry = ToolRegistry()

    if config.WEB_SEARCH_ENABLED:
        registry.add_server_tool(ServerTool.web_search())
        logger.info("Web search enabled")

    if config.SANDBOX_DIR:
        sandbox = os.path.abspath(config.SANDBOX_DIR)
        os.makedirs(sandbox, exist_ok=True)
        for tool in filesystem_tools(sandbox):
            registry.register(tool)
        logger.info("Filesystem tools enabled (sandbox: %s)", sandbox)

    store = ConversationStore(max_messages=config.MAX_HISTORY_MESSAGES)
    agent = AgentLoop(
        messenger or load_messenger(config=config),
        store=store,
        registry=registry,
        system_prompt=config.SYSTEM_PROMPT,
        max_iterations=config.MAX_TOOL_ITERATIONS,
        tool_timeout=config.TOOL_TIMEOUT_SECONDS,
    )
    return Runtime(config, agent, registry, store, MCPManager())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Keep client libraries quiet unless something goes wrong
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("mcp").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the threadmind application.

    This function sets up the command-line interface, initializes logging, and starts the
    application in either API or CLI mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the threadmind agent runtime")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Launch the REST API, or the API plus an interactive CLI (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    _init_logging(settings.LOG_LEVEL)

    missing = settings.missing_required()
    if missing:
        logger.error("Missing required configuration: %s", ", ".join(missing))
        sys.exit(1)

    logger.info("Starting threadmind [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump(exclude={"ANTHROPIC_API_KEY"}))

    # Lazy import so the API module is only loaded once logging is configured
    from threadmind.api.app import run_api  # pylint: disable=import-outside-toplevel

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    import threading  # pylint: disable=import-outside-toplevel

    # Start API server in a separate thread
    api_thread = threading.Thread(
        target=run_api,
        kwargs={
            "host": "127.0.0.1",
            "port": settings.API_PORT,
            "reload": False,  # Reload doesn't work well with threading
            "log_level": "warning",
        },
        daemon=True,
    )
    api_thread.start()

    from threadmind.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    # Run CLI in main thread
    run_cli()


if __name__ == "__main__":
    main()
