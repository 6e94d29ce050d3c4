"""
Schema definitions for agent <-> model <-> tool messages.

These data models serve as the contract between the model API, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Literal,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

STOP_REASON_TOOL_USE = "tool_use"


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------
class TextBlock(BaseModel):
    """Plain text segment."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_use"] = "tool_use"
    id: str = Field(..., description="Opaque invocation id, echoed back in the result")
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """The outcome of one tool invocation, sent back to the model."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


class OpaqueBlock(BaseModel):
    """
    Any other block the API hands us (server tool calls, search results, thinking...).

    Extra fields are kept verbatim so the block can be replayed on the next request.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock, OpaqueBlock]

_BLOCK_TYPES: Dict[str, type] = {
    "text": TextBlock,
    "tool_use": ToolUseBlock,
    "tool_result": ToolResultBlock,
}


def parse_content_block(raw: Union[ContentBlock, Mapping[str, Any]]) -> ContentBlock:
    """Route a raw block dict to the matching model, falling back to :class:`OpaqueBlock`."""
    if isinstance(raw, BaseModel):
        return raw  # type: ignore[return-value]
    block_cls = _BLOCK_TYPES.get(str(raw.get("type")), OpaqueBlock)
    return block_cls.model_validate(dict(raw))  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
class Message(BaseModel):
    """A role-tagged, immutable list of content blocks."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: Tuple[ContentBlock, ...] = ()

    @field_validator("content", mode="before")
    @classmethod
    def _parse_blocks(cls, value: Any) -> Tuple[ContentBlock, ...]:
        if isinstance(value, str):
            return (TextBlock(text=value),)
        return tuple(parse_content_block(block) for block in value)

    @classmethod
    def user_text(cls, text: str) -> "Message":
        """Build a user message carrying a single text block."""
        return cls(role="user", content=(TextBlock(text=text),))

    @classmethod
    def tool_results(cls, results: Iterable[ToolResultBlock]) -> "Message":
        """Build the aggregated user message that carries tool results."""
        return cls(role="user", content=tuple(results))

    def tool_uses(self) -> List[ToolUseBlock]:
        """Return the tool invocation requests in this message, in order."""
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    def has_tool_results(self) -> bool:
        """True when the message carries at least one tool result."""
        return any(isinstance(block, ToolResultBlock) for block in self.content)

    def to_api(self) -> Dict[str, Any]:
        """Serialise to the Messages API ``MessageParam`` shape."""
        return {
            "role": self.role,
            "content": [block.model_dump(exclude_none=True) for block in self.content],
        }


class ModelResponse(BaseModel):
    """What the messaging capability hands back for one model call."""

    message: Message
    stop_reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------
class InputSchema(BaseModel):
    """JSON-schema object describing the arguments a tool accepts."""

    type: Literal["object"] = "object"
    properties: Dict[str, Any] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)


class ToolDefinition(BaseModel):
    """Name, description and input schema of a tool, as advertised to the model."""

    name: str = Field(..., description="Unique within the registry's local namespace")
    description: str = ""
    input_schema: InputSchema = Field(default_factory=InputSchema)

    def to_api(self) -> Dict[str, Any]:
        """Serialise to the Messages API tool shape."""
        schema: Dict[str, Any] = {
            "type": self.input_schema.type,
            "properties": self.input_schema.properties,
        }
        if self.input_schema.required:
            schema["required"] = list(self.input_schema.required)
        return {"name": self.name, "description": self.description, "input_schema": schema}


class ToolResult(BaseModel):
    """Result string of a tool run; ``is_error`` flags a domain-level failure."""

    content: str
    is_error: bool = False

    @classmethod
    def error(cls, content: str) -> "ToolResult":
        """Shorthand for an error-flagged result."""
        return cls(content=content, is_error=True)
