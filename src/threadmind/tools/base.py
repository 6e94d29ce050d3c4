"""Tool capability interface shared by local, bridged and server-side tools."""

from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Dict,
    Mapping,
)

from threadmind.core.schema import (
    ToolDefinition,
    ToolResult,
)


class Tool(ABC):
    """
    A locally-executed capability the model can invoke.

    ``execute`` returns a :class:`ToolResult` for anything the tool itself can report (including
    domain failures, flagged with ``is_error``).  It raises only when the tool could not be
    invoked at all.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key; must be unique among local tools."""

    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Schema advertised to the model."""

    @abstractmethod
    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        """Run the tool with the model-supplied arguments."""


class ServerTool:
    """
    A tool declaration executed by the model provider, never by this process.

    The payload is forwarded to the API untouched.
    """

    def __init__(self, payload: Mapping[str, Any]) -> None:
        if "name" not in payload:
            raise ValueError("server tool declaration needs a 'name'")
        self._payload: Dict[str, Any] = dict(payload)

    @property
    def name(self) -> str:
        return str(self._payload["name"])

    def to_api(self) -> Dict[str, Any]:
        return dict(self._payload)

    @classmethod
    def web_search(cls, max_uses: int | None = None) -> "ServerTool":
        """The provider-hosted web search tool."""
        payload: Dict[str, Any] = {"type": "web_search_20250305", "name": "web_search"}
        if max_uses:
            payload["max_uses"] = max_uses
        return cls(payload)

    def __repr__(self) -> str:
        return f"ServerTool({self._payload!r})"
