"""
Pydantic models for threadmind API requests and responses.
This module defines the request and response schemas used by the threadmind API.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for the agent")
    thread_id: Optional[str] = Field(
        None, description="Conversation thread; a new one is started when omitted"
    )


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    thread_id: str


class ThreadHistory(BaseModel):
    """Stored history of one thread, in Messages API shape."""

    thread_id: str
    messages: List[Dict[str, Any]]


class ToolsResponse(BaseModel):
    """Tools currently offered to the model."""

    local_tools: List[str]
    server_tools: List[str]
