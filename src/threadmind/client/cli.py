"""
Terminal client for the threadmind API.

Keeps one conversation thread open against ``POST /agent``.  Shell commands:

* ``/new``    - forget the current thread and start a fresh one;
* ``/tools``  - show the tools the agent can use;
* ``exit`` / ``quit`` (or Ctrl+C / Ctrl+D) - leave.
"""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    Optional,
    cast,
)

import httpx

from threadmind.common import (
    AnsiColors,
    colored_print,
)
from threadmind.config import settings

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit"}
NEW_THREAD_COMMAND = "/new"
TOOLS_COMMAND = "/tools"


class ApiUnavailable(RuntimeError):
    """The API could not be reached, or answered with an error status."""


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------
class ThreadClient:
    """
    Talks to one running API, remembering the thread id the server assigned.

    Parameters
    ----------
    base_url:
        API root; defaults to ``http://localhost:<API_PORT>``.
    max_retries:
        Attempts per request while the server refuses connections (it may still be starting).
    timeout:
        Seconds per request.  Agent turns with several tool rounds can take a while.
    transport:
        Custom httpx transport (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        max_retries: int = 5,
        timeout: float = 120.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url or f"http://localhost:{settings.API_PORT}"
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self.thread_id: Optional[str] = None
        self._transport = transport

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        for attempt in range(self.max_retries):
            try:
                with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                    response = client.request(method, url, **kwargs)
            except httpx.ConnectError as exc:
                if attempt == self.max_retries - 1:
                    raise ApiUnavailable(
                        f"Failed to connect to API after {self.max_retries} attempts"
                    ) from exc
                delay = 0.5 * (2**attempt)  # 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready, retrying in %.1fs (attempt %d/%d)",
                    delay,
                    attempt + 1,
                    self.max_retries,
                )
                time.sleep(delay)
                continue
            except httpx.HTTPError as exc:
                raise ApiUnavailable(f"Error connecting to API: {exc}") from exc

            if response.is_error:
                raise ApiUnavailable(f"API error {response.status_code}: {_detail(response)}")
            return cast(Dict[str, Any], response.json())
        raise AssertionError("unreachable")

    def send(self, message: str) -> str:
        """Send one user turn and return the agent's reply."""
        payload: Dict[str, Any] = {"message": message}
        if self.thread_id:
            payload["thread_id"] = self.thread_id
        body = self._request("POST", "/agent", json=payload)
        self.thread_id = body.get("thread_id", self.thread_id)
        return str(body.get("reply", ""))

    def tools(self) -> Dict[str, Any]:
        return self._request("GET", "/tools")

    def reset(self) -> None:
        self.thread_id = None


def _detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("detail", response.text))
    except ValueError:
        return response.text


# ---------------------------------------------------------------------------
# REPL
# ---------------------------------------------------------------------------
def read_line(prompt: str) -> Optional[str]:
    """Prompt for one line; ``None`` on Ctrl+C / Ctrl+D."""
    colored_print(prompt, AnsiColors.BLUE, end="", flush=True)
    try:
        return input().strip()
    except (EOFError, KeyboardInterrupt):
        return None


def run_cli(base_url: Optional[str] = None, client: Optional[ThreadClient] = None) -> None:
    """Run the interactive shell until the user leaves."""
    client = client or ThreadClient(base_url)
    colored_print(
        f"\nthreadmind shell - '{NEW_THREAD_COMMAND}' starts a new thread, "
        f"'{TOOLS_COMMAND}' lists tools, 'exit' leaves",
        AnsiColors.GREEN,
    )

    while True:
        line = read_line("\nYou: ")
        if line is None or line.lower() in EXIT_COMMANDS:
            break
        if not line:
            continue

        try:
            if line.lower() == NEW_THREAD_COMMAND:
                client.reset()
                colored_print("Started a new thread.", AnsiColors.GREY)
            elif line.lower() == TOOLS_COMMAND:
                tools = client.tools()
                names = tools.get("local_tools", []) + tools.get("server_tools", [])
                colored_print(", ".join(names) or "(no tools)", AnsiColors.GREY)
            else:
                colored_print(client.send(line) or "(empty reply)", AnsiColors.YELLOW)
        except ApiUnavailable as exc:
            logger.debug("API call failed", exc_info=True)
            colored_print(str(exc), AnsiColors.RED)


if __name__ == "__main__":
    run_cli()
