"""
Tests for the HTTP adapter and runtime assembly.

Run with:
$ pytest -q
"""

import asyncio
import os

import pytest
from fastapi.testclient import TestClient

from fakes import (
    ScriptedMessenger,
    text_response,
    tool_use_response,
)
from threadmind.agent.messenger import ModelCallError
from threadmind.api.app import (
    ERROR_REPLY,
    create_app,
)
from threadmind.config import (
    MCPServerConfig,
    Settings,
)
from threadmind.main import build_runtime


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, ANTHROPIC_API_KEY="test-key", **overrides)


@pytest.fixture()
def sandbox(tmp_path):
    return str(tmp_path / "sandbox")


# ---------------------------------------------------------------------------
# Runtime assembly
# ---------------------------------------------------------------------------
def test_build_runtime_registers_configured_tools(sandbox) -> None:
    runtime = build_runtime(
        _settings(SANDBOX_DIR=sandbox, WEB_SEARCH_ENABLED=True), messenger=ScriptedMessenger([])
    )

    assert os.path.isdir(sandbox)
    assert runtime.registry.local_tool_names() == ["fs_list", "fs_read", "fs_write"]
    assert runtime.registry.server_tool_names() == ["web_search"]


def test_build_runtime_without_tools() -> None:
    runtime = build_runtime(_settings(), messenger=ScriptedMessenger([]))

    assert runtime.registry.is_empty()
    assert runtime.agent.build_system_prompt() == ""


def test_runtime_start_survives_bridge_failure() -> None:
    config = _settings(MCP_SERVERS=[MCPServerConfig(name="broken", transport="sse")])
    runtime = build_runtime(config, messenger=ScriptedMessenger([]))

    async def main():
        counts = await runtime.start()
        await runtime.close()
        return counts

    assert asyncio.run(main()) == {}
    assert runtime.registry.is_empty()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
def test_health() -> None:
    runtime = build_runtime(_settings(), messenger=ScriptedMessenger([]))
    with TestClient(create_app(runtime)) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_agent_conversation_flow(sandbox) -> None:
    messenger = ScriptedMessenger(
        [
            tool_use_response(("c1", "fs_write", {"path": "todo.txt", "content": "milk"})),
            text_response("Saved your list."),
            text_response("You asked me to save a list."),
        ]
    )
    runtime = build_runtime(_settings(SANDBOX_DIR=sandbox), messenger=messenger)

    with TestClient(create_app(runtime)) as client:
        first = client.post("/agent", json={"message": "Save milk to todo.txt"})
        assert first.status_code == 200
        body = first.json()
        assert body["reply"] == "Saved your list."
        thread_id = body["thread_id"]
        assert thread_id

        second = client.post("/agent", json={"message": "What did I ask?", "thread_id": thread_id})
        assert second.json() == {"reply": "You asked me to save a list.", "thread_id": thread_id}

        assert client.get("/threads").json() == [thread_id]

        history = client.get(f"/threads/{thread_id}").json()
        assert [m["role"] for m in history["messages"]] == [
            "user",
            "assistant",
            "user",
            "assistant",
            "user",
            "assistant",
        ]
        assert history["messages"][2]["content"][0] == {
            "type": "tool_result",
            "tool_use_id": "c1",
            "content": "wrote 4 bytes to todo.txt",
            "is_error": False,
        }

        tools = client.get("/tools").json()
        assert tools == {"local_tools": ["fs_list", "fs_read", "fs_write"], "server_tools": []}

    with open(os.path.join(sandbox, "todo.txt"), encoding="utf-8") as f:
        assert f.read() == "milk"


def test_model_failure_returns_apology() -> None:
    messenger = ScriptedMessenger([ModelCallError("claude API call failed: overloaded")])
    runtime = build_runtime(_settings(), messenger=messenger)

    with TestClient(create_app(runtime)) as client:
        response = client.post("/agent", json={"message": "hi", "thread_id": "t-1"})

    assert response.status_code == 200
    assert response.json() == {"reply": ERROR_REPLY, "thread_id": "t-1"}
    # The user turn is kept even though the model call failed.
    assert len(runtime.store.get("t-1")) == 1


def test_unknown_thread_is_404() -> None:
    runtime = build_runtime(_settings(), messenger=ScriptedMessenger([]))
    with TestClient(create_app(runtime)) as client:
        assert client.get("/threads/missing").status_code == 404


def test_empty_message_is_rejected() -> None:
    runtime = build_runtime(_settings(), messenger=ScriptedMessenger([]))
    with TestClient(create_app(runtime)) as client:
        assert client.post("/agent", json={"message": ""}).status_code == 422
