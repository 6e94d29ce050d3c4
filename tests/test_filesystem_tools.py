"""
Tests for the fs_read / fs_write / fs_list tools.

Run with:
$ pytest -q
"""

import asyncio
import os

import pytest

from threadmind.core.schema import ToolResult
from threadmind.tools.filesystem import (
    EMPTY_DIRECTORY,
    MAX_FILE_READ_SIZE,
    MAX_LIST_ENTRIES,
    ListDirectoryTool,
    ReadFileTool,
    WriteFileTool,
    filesystem_tools,
)


@pytest.fixture()
def sandbox(tmp_path):
    root = tmp_path / "sandbox"
    root.mkdir()
    return str(root)


def run(tool, **arguments) -> ToolResult:
    return asyncio.run(tool.execute(arguments))


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------
def test_filesystem_tools_definitions(sandbox) -> None:
    tools = filesystem_tools(sandbox)
    defs = {tool.name: tool.definition().to_api() for tool in tools}

    assert set(defs) == {"fs_read", "fs_write", "fs_list"}
    assert defs["fs_read"]["input_schema"]["required"] == ["path"]
    assert defs["fs_write"]["input_schema"]["required"] == ["path", "content"]
    assert "required" not in defs["fs_list"]["input_schema"]


# ---------------------------------------------------------------------------
# fs_write / fs_read
# ---------------------------------------------------------------------------
def test_write_then_read(sandbox) -> None:
    written = run(WriteFileTool(sandbox), path="notes/today.txt", content="hello")

    assert not written.is_error
    assert written.content == "wrote 5 bytes to notes/today.txt"
    assert os.path.isfile(os.path.join(sandbox, "notes", "today.txt"))

    read = run(ReadFileTool(sandbox), path="notes/today.txt")
    assert read == ToolResult(content="hello")


def test_write_counts_bytes_not_characters(sandbox) -> None:
    result = run(WriteFileTool(sandbox), path="u.txt", content="héllo")

    assert result.content == "wrote 6 bytes to u.txt"


def test_write_overwrites(sandbox) -> None:
    run(WriteFileTool(sandbox), path="a.txt", content="first version")
    run(WriteFileTool(sandbox), path="a.txt", content="second")

    assert run(ReadFileTool(sandbox), path="a.txt").content == "second"


def test_read_missing_file(sandbox) -> None:
    result = run(ReadFileTool(sandbox), path="missing.txt")

    assert result.is_error
    assert result.content == "file not found: missing.txt"


def test_read_directory(sandbox) -> None:
    os.mkdir(os.path.join(sandbox, "sub"))

    result = run(ReadFileTool(sandbox), path="sub")

    assert result.is_error
    assert result.content == "path is a directory, use fs_list instead"


def test_read_too_large(sandbox) -> None:
    with open(os.path.join(sandbox, "big.bin"), "wb") as f:
        f.write(b"x" * (MAX_FILE_READ_SIZE + 1))

    result = run(ReadFileTool(sandbox), path="big.bin")

    assert result.is_error
    assert result.content == (
        f"file too large: {MAX_FILE_READ_SIZE + 1} bytes (max {MAX_FILE_READ_SIZE})"
    )


def test_read_invalid_utf8_is_replaced(sandbox) -> None:
    with open(os.path.join(sandbox, "bin.dat"), "wb") as f:
        f.write(b"ok\xff")

    result = run(ReadFileTool(sandbox), path="bin.dat")

    assert not result.is_error
    assert result.content == "ok�"


@pytest.mark.parametrize("tool_cls", [ReadFileTool, WriteFileTool, ListDirectoryTool])
def test_escape_is_reported_as_error_result(sandbox, tool_cls) -> None:
    result = run(tool_cls(sandbox), path="../outside.txt", content="x")

    assert result.is_error
    assert result.content == "path escapes sandbox"
    assert not os.path.exists(os.path.join(os.path.dirname(sandbox), "outside.txt"))


def test_invalid_arguments(sandbox) -> None:
    result = run(ReadFileTool(sandbox), path=["not", "a", "string"])

    assert result.is_error
    assert result.content.startswith("invalid input:")


# ---------------------------------------------------------------------------
# fs_list
# ---------------------------------------------------------------------------
def test_list_empty_directory(sandbox) -> None:
    result = run(ListDirectoryTool(sandbox))

    assert result == ToolResult(content=EMPTY_DIRECTORY)


def test_list_is_sorted_and_marks_directories(sandbox) -> None:
    os.mkdir(os.path.join(sandbox, "beta"))
    for name in ("gamma.txt", "alpha.txt"):
        with open(os.path.join(sandbox, name), "w", encoding="utf-8") as f:
            f.write(name)

    for path in ("", "."):
        result = run(ListDirectoryTool(sandbox), path=path)
        assert result.content == "alpha.txt\nbeta/\ngamma.txt\n"


def test_list_subdirectory(sandbox) -> None:
    run(WriteFileTool(sandbox), path="docs/readme.md", content="# hi")

    assert run(ListDirectoryTool(sandbox), path="docs").content == "readme.md\n"


def test_list_is_capped(sandbox) -> None:
    for i in range(MAX_LIST_ENTRIES + 5):
        open(os.path.join(sandbox, f"f{i:04d}.txt"), "w", encoding="utf-8").close()

    lines = run(ListDirectoryTool(sandbox)).content.splitlines()

    assert len(lines) == MAX_LIST_ENTRIES + 1
    assert lines[0] == "f0000.txt"
    assert lines[-1] == "... and 5 more entries"


def test_list_missing_directory(sandbox) -> None:
    result = run(ListDirectoryTool(sandbox), path="nope")

    assert result.is_error
    assert result.content.startswith("failed to list directory:")
