"""
Filesystem tools: ``fs_read``, ``fs_write`` and ``fs_list``.

All three operate inside a sandbox directory (see :mod:`threadmind.tools.sandbox`).  Every failure
they can anticipate, including sandbox escapes, is returned to the model as an error-flagged
result so it can correct itself; nothing here raises into the agent loop.
"""

import asyncio
import logging
import os
from typing import (
    Any,
    ClassVar,
    List,
    Mapping,
    Type,
)

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
)

from threadmind.core.schema import (
    InputSchema,
    ToolDefinition,
    ToolResult,
)
from threadmind.tools.base import Tool
from threadmind.tools.sandbox import (
    SandboxError,
    resolve_sandboxed_path,
)

logger = logging.getLogger(__name__)

MAX_FILE_READ_SIZE = 1 << 20  # 1 MiB
MAX_LIST_ENTRIES = 200
EMPTY_DIRECTORY = "(empty directory)"

_PATH_PROPERTY = {"type": "string", "description": "Relative path within the sandbox directory"}


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------
class ReadInput(BaseModel):
    path: str = ""


class WriteInput(BaseModel):
    path: str = ""
    content: str = ""


class ListInput(BaseModel):
    path: str = Field(default="", description="Empty or '.' for the sandbox root")


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class FilesystemTool(Tool):
    """Common plumbing: input parsing, worker-thread offload."""

    tool_name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[Type[BaseModel]]
    input_schema: ClassVar[InputSchema]

    def __init__(self, sandbox_dir: str) -> None:
        self.sandbox_dir = sandbox_dir

    @property
    def name(self) -> str:
        return self.tool_name

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.tool_name, description=self.description, input_schema=self.input_schema
        )

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        try:
            params = self.input_model.model_validate(dict(arguments or {}))
        except (ValidationError, TypeError, ValueError) as exc:
            return ToolResult.error(f"invalid input: {exc}")
        return await asyncio.to_thread(self._run, params)

    def _run(self, params: Any) -> ToolResult:
        raise NotImplementedError

    def _resolve(self, path: str) -> str:
        return resolve_sandboxed_path(self.sandbox_dir, path)


# ---------------------------------------------------------------------------
# Concrete tools
# ---------------------------------------------------------------------------
class ReadFileTool(FilesystemTool):
    tool_name = "fs_read"
    description = "Read a file from the sandbox directory. Returns file contents as text. Max 1MB."
    input_model = ReadInput
    input_schema = InputSchema(properties={"path": _PATH_PROPERTY}, required=["path"])

    def _run(self, params: ReadInput) -> ToolResult:
        try:
            resolved = self._resolve(params.path)
        except SandboxError as exc:
            return ToolResult.error(str(exc))

        try:
            st = os.stat(resolved)
        except OSError:
            return ToolResult.error(f"file not found: {params.path}")
        if os.path.isdir(resolved):
            return ToolResult.error("path is a directory, use fs_list instead")
        if st.st_size > MAX_FILE_READ_SIZE:
            return ToolResult.error(
                f"file too large: {st.st_size} bytes (max {MAX_FILE_READ_SIZE})"
            )

        try:
            with open(resolved, "rb") as f:
                data = f.read()
        except OSError as exc:
            return ToolResult.error(f"failed to read file: {exc}")
        return ToolResult(content=data.decode("utf-8", errors="replace"))


class WriteFileTool(FilesystemTool):
    tool_name = "fs_write"
    description = (
        "Write content to a file in the sandbox directory. Creates parent directories as needed."
    )
    input_model = WriteInput
    input_schema = InputSchema(
        properties={
            "path": _PATH_PROPERTY,
            "content": {"type": "string", "description": "Content to write to the file"},
        },
        required=["path", "content"],
    )

    def _run(self, params: WriteInput) -> ToolResult:
        try:
            resolved = self._resolve(params.path)
        except SandboxError as exc:
            return ToolResult.error(str(exc))

        try:
            os.makedirs(os.path.dirname(resolved), mode=0o755, exist_ok=True)
        except OSError as exc:
            return ToolResult.error(f"failed to create directories: {exc}")

        data = params.content.encode("utf-8")
        try:
            with open(resolved, "wb") as f:
                f.write(data)
        except OSError as exc:
            return ToolResult.error(f"failed to write file: {exc}")

        logger.debug("fs_write: %d bytes to %s", len(data), resolved)
        return ToolResult(content=f"wrote {len(data)} bytes to {params.path}")


class ListDirectoryTool(FilesystemTool):
    tool_name = "fs_list"
    description = (
        "List files and directories in a path within the sandbox directory. Max 200 entries."
    )
    input_model = ListInput
    input_schema = InputSchema(
        properties={
            "path": {
                "type": "string",
                "description": 'Relative path within the sandbox directory (empty or "." for root)',
            }
        }
    )

    def _run(self, params: ListInput) -> ToolResult:
        try:
            resolved = self._resolve(params.path or ".")
        except SandboxError as exc:
            return ToolResult.error(str(exc))

        try:
            with os.scandir(resolved) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            return ToolResult.error(f"failed to list directory: {exc}")

        if not entries:
            return ToolResult(content=EMPTY_DIRECTORY)

        lines: List[str] = []
        for entry in entries[:MAX_LIST_ENTRIES]:
            suffix = "/" if entry.is_dir(follow_symlinks=False) else ""
            lines.append(f"{entry.name}{suffix}\n")
        if len(entries) > MAX_LIST_ENTRIES:
            lines.append(f"... and {len(entries) - MAX_LIST_ENTRIES} more entries\n")
        return ToolResult(content="".join(lines))


def filesystem_tools(sandbox_dir: str) -> List[Tool]:
    """Return the read/write/list tools bound to *sandbox_dir*."""
    return [
        ReadFileTool(sandbox_dir),
        WriteFileTool(sandbox_dir),
        ListDirectoryTool(sandbox_dir),
    ]
