"""Configuration settings for the application."""

from typing import (
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)
from pydantic_settings import BaseSettings


class MCPServerConfig(BaseModel):
    """How to reach one MCP tool server."""

    name: str
    transport: str = "stdio"  # "stdio", "sse" or "streamable"

    # stdio
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)

    # sse / streamable
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    MESSENGER: str = "anthropic"
    ANTHROPIC_API_KEY: str | None = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    CLAUDE_MAX_TOKENS: int = 4096
    SYSTEM_PROMPT: str = ""

    # Tools
    WEB_SEARCH_ENABLED: bool = False
    SANDBOX_DIR: str | None = None
    MAX_TOOL_ITERATIONS: int = 10
    TOOL_TIMEOUT_SECONDS: float = 30
    MCP_SERVERS: List[MCPServerConfig] = Field(default_factory=list)  # JSON list in the env
    MCP_CONNECT_TIMEOUT_SECONDS: float = 30

    # Memory
    MAX_HISTORY_MESSAGES: int = 0  # 0 keeps every message

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"

    def missing_required(self) -> List[str]:
        """Names of settings that must be set for the selected messenger but are not."""
        missing = []
        if self.MESSENGER.lower() == "anthropic" and not self.ANTHROPIC_API_KEY:
            missing.append("ANTHROPIC_API_KEY")
        return missing


settings = Settings()
