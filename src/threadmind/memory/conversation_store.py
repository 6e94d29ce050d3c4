"""
In-process conversation history, keyed by thread id.

History lives for the lifetime of the process only.  Readers always get an independent copy, so
nothing outside the store can mutate a stored sequence.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import (
    AsyncIterator,
    Dict,
    List,
    Tuple,
)

from threadmind.core.schema import Message

logger = logging.getLogger(__name__)

_LockKey = Tuple[asyncio.AbstractEventLoop, str]


class ConversationStore:
    """
    Thread-safe mapping of thread id -> ordered message history.

    Parameters
    ----------
    max_messages:
        ``0`` (the default) keeps every message forever.  A positive value caps each thread: after
        an append, the oldest messages are dropped until the history fits and starts on a plain
        user turn, so a tool request is never separated from its results.
    """

    def __init__(self, max_messages: int = 0) -> None:
        self._lock = threading.Lock()
        self._threads: Dict[str, List[Message]] = {}
        self.max_messages = max(0, max_messages)

    def get(self, thread_id: str) -> List[Message]:
        """Return a copy of the history for *thread_id* (empty for unknown ids)."""
        with self._lock:
            return list(self._threads.get(thread_id, ()))

    def append(self, thread_id: str, *messages: Message) -> None:
        """Append *messages* to the thread, creating it on first use."""
        with self._lock:
            history = self._threads.setdefault(thread_id, [])
            history.extend(messages)
            if self.max_messages:
                self._evict(thread_id, history)

    def thread_ids(self) -> List[str]:
        with self._lock:
            return list(self._threads)

    def __len__(self) -> int:
        with self._lock:
            return len(self._threads)

    def _evict(self, thread_id: str, history: List[Message]) -> None:
        start = max(0, len(history) - self.max_messages)
        while start < len(history) and not _is_turn_start(history[start]):
            start += 1
        # Never drop the tail we just wrote.
        if start >= len(history):
            return
        if start:
            logger.debug("Evicting %d message(s) from thread %s", start, thread_id)
            del history[:start]


def _is_turn_start(message: Message) -> bool:
    return message.role == "user" and not message.has_tool_results()


class ThreadLocks:
    """
    One :class:`asyncio.Lock` per thread id and event loop, created on demand.

    Serialises agent runs on the same conversation so each run reads the history the previous run
    left behind.  Locks are dropped once nobody holds or waits on them.

    An asyncio lock only works inside one event loop, so runs are serialised per loop: the API
    drives every run from its single loop.  Callers that run the same conversation from several
    loops at once (one ``asyncio.run`` per OS thread) get no ordering between those loops.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[_LockKey, asyncio.Lock] = {}
        self._users: Dict[_LockKey, int] = {}

    @asynccontextmanager
    async def hold(self, thread_id: str) -> AsyncIterator[None]:
        key = (asyncio.get_running_loop(), thread_id)
        with self._guard:
            lock = self._locks.setdefault(key, asyncio.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
