"""
HTTP adapter for threadmind.

This module exposes the agent loop through a small RESTful API that's used by the terminal client.
It exposes the following endpoints:
- **GET /health**          - liveness probe for health checks.
- **POST /agent**          - one user turn: {"message": "...", "thread_id": "..."}
- **GET /threads**         - list known thread ids.
- **GET /threads/{id}**    - stored history of one thread.
- **GET /tools**           - tools currently offered to the model.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import (
    AsyncIterator,
    List,
    Optional,
)

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
)

from threadmind.agent.messenger import ModelCallError
from threadmind.api.models import (
    MessageRequest,
    MessageResponse,
    ThreadHistory,
    ToolsResponse,
)
from threadmind.common import (
    AnsiColors,
    colored_print,
)
from threadmind.config import settings
from threadmind.main import (
    Runtime,
    build_runtime,
)

logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, I encountered an error generating a response."


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    runtime:
        Pre-assembled runtime (tests inject one with a fake messenger).  When omitted, one is
        built from the global settings on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        active = runtime if runtime is not None else build_runtime(settings)
        app.state.runtime = active
        await active.start()
        try:
            yield
        finally:
            await active.close()

    app = FastAPI(
        title="threadmind API",
        version="0.1.0",
        description="Conversational agent runtime with tool use",
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/health", summary="Health check")
    async def health() -> dict[str, str]:
        """Return a simple liveness payload."""
        return {"status": "ok"}

    @app.post("/agent", response_model=MessageResponse, summary="Process a message")
    async def agent_endpoint(req: MessageRequest, request: Request) -> MessageResponse:
        """Run one user turn in the given thread (or a new one)."""
        active: Runtime = request.app.state.runtime
        thread_id = req.thread_id or str(uuid.uuid4())

        try:
            reply = await active.agent.run(thread_id, req.message)
        except ModelCallError as exc:
            logger.error("Agent error on thread %s: %s", thread_id, exc)
            reply = ERROR_REPLY

        return MessageResponse(reply=reply, thread_id=thread_id)

    @app.get("/threads", response_model=List[str], summary="List threads")
    async def list_threads(request: Request) -> List[str]:
        """List all known thread ids."""
        return request.app.state.runtime.store.thread_ids()

    @app.get("/threads/{thread_id}", response_model=ThreadHistory, summary="Thread history")
    async def get_thread(thread_id: str, request: Request) -> ThreadHistory:
        """Return the stored history of *thread_id*."""
        store = request.app.state.runtime.store
        if thread_id not in store.thread_ids():
            raise HTTPException(status_code=404, detail=f"Unknown thread: {thread_id}")
        return ThreadHistory(
            thread_id=thread_id, messages=[message.to_api() for message in store.get(thread_id)]
        )

    @app.get("/tools", response_model=ToolsResponse, summary="List tools")
    async def list_tools(request: Request) -> ToolsResponse:
        """List the local and server-side tools offered to the model."""
        registry = request.app.state.runtime.registry
        return ToolsResponse(
            local_tools=registry.local_tool_names(), server_tools=registry.server_tool_names()
        )

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn out of the import path for tests and the CLI
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting threadmind API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )

    colored_print(f"threadmind API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "threadmind.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m threadmind.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
