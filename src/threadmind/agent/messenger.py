"""
Messaging interface for threadmind.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
memory) stays model-agnostic and talks to a :class:`BaseMessenger`.

Additional providers can be added by subclassing :class:`BaseMessenger` and registering via
:func:`register_messenger`.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

from pydantic import ValidationError

from threadmind.config import (
    Settings,
    settings as default_settings,
)
from threadmind.core.schema import (
    Message,
    ModelResponse,
)

logger = logging.getLogger(__name__)


class ModelCallError(RuntimeError):
    """Raised when the model API cannot be reached, rejects the request, or answers garbage."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_MESSENGER_REGISTRY: dict[str, Type["BaseMessenger"]] = {}


def register_messenger(name: str) -> Callable:
    """Decorator to register a messenger class under *name*."""

    def wrapper(cls: Type["BaseMessenger"]) -> Type["BaseMessenger"]:
        _MESSENGER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_messenger(name: str | None = None, config: Settings | None = None) -> "BaseMessenger":
    """
    Factory that returns an instantiated messenger.

    Fallback order:
    1. *name* arg
    2. ``settings.MESSENGER`` env option
    3. default: ``"anthropic"``
    """
    config = config or default_settings
    target = name or getattr(config, "MESSENGER", "anthropic")
    cls = _MESSENGER_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Messenger '{target}' is not registered.")
    return cls(config)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseMessenger(ABC):
    """Sends the accumulated history to a model and returns its next message."""

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or default_settings

    @abstractmethod
    async def send(
        self,
        history: Sequence[Message],
        system_prompt: str,
        tools: Sequence[Dict[str, Any]],
    ) -> ModelResponse:
        """
        Run one model call.

        Raises
        ------
        ModelCallError
            On any transport or API failure.
        """


# ---------------------------------------------------------------------------
# Concrete messengers
# ---------------------------------------------------------------------------
@register_messenger("anthropic")
class AnthropicMessenger(BaseMessenger):
    """Anthropic Messages API via the async SDK client."""

    def __init__(self, config: Settings | None = None, client: Any = None) -> None:
        super().__init__(config)
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            import anthropic  # pylint: disable=import-outside-toplevel

            self._client = anthropic.AsyncAnthropic(api_key=self.config.ANTHROPIC_API_KEY)
        return self._client

    def build_params(
        self,
        history: Sequence[Message],
        system_prompt: str,
        tools: Sequence[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Translate our history into ``messages.create`` keyword arguments."""
        params: Dict[str, Any] = {
            "model": self.config.CLAUDE_MODEL,
            "max_tokens": self.config.CLAUDE_MAX_TOKENS,
            "messages": [message.to_api() for message in history],
        }
        if system_prompt:
            params["system"] = system_prompt
        if tools:
            params["tools"] = list(tools)
        return params

    async def send(
        self,
        history: Sequence[Message],
        system_prompt: str,
        tools: Sequence[Dict[str, Any]],
    ) -> ModelResponse:
        import anthropic  # pylint: disable=import-outside-toplevel

        params = self.build_params(history, system_prompt, tools)
        try:
            response = await self.client.messages.create(**params)
        except anthropic.APIError as exc:
            logger.error("Anthropic API error: %s", exc)
            raise ModelCallError(f"claude API call failed: {exc}") from exc

        blocks: List[Dict[str, Any]] = [
            block.model_dump(mode="json", exclude_none=True) for block in response.content
        ]
        logger.debug(
            "Anthropic response: stop_reason=%s blocks=%d", response.stop_reason, len(blocks)
        )
        try:
            return ModelResponse(
                message=Message(role="assistant", content=blocks),
                stop_reason=response.stop_reason,
            )
        except ValidationError as exc:
            logger.error("Malformed Anthropic response: %s", exc)
            raise ModelCallError(f"claude returned a malformed response: {exc}") from exc
