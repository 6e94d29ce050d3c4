"""Terminal helpers shared by the CLI and the API launcher."""

import sys
from enum import Enum
from typing import (
    Any,
    TextIO,
)

ANSI_RESET = "\033[0m"


class AnsiColors(Enum):
    """ANSI escape sequences for the few colours the shell uses."""

    RED = "\033[91m"  # errors
    GREEN = "\033[92m"  # banners
    YELLOW = "\033[33m"  # agent replies
    BLUE = "\033[94m"  # prompts
    GREY = "\033[90m"  # status lines


def colorize(text: str, color: AnsiColors, stream: TextIO | None = None) -> str:
    """Wrap *text* in *color* when *stream* (default stdout) is a terminal."""
    stream = stream or sys.stdout
    if not stream.isatty():
        return text
    return f"{color.value}{text}{ANSI_RESET}"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    ``print`` *text* in *color*.

    Extra positional and keyword arguments are passed to :func:`print` unchanged; colour is
    skipped when the target stream is not a terminal (pipes, log files, pytest capture).
    """
    print(colorize(text, color, kwargs.get("file")), *args, **kwargs)
