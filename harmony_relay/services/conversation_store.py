# harmony_relay/services/conversation_store.py
from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Iterable, List

from harmony_relay.models.chat import Message, ROLE_SYSTEM, systems_first

logger = logging.getLogger("harmony.conversation_store")


@dataclass
class _SessionLock:
    lock: asyncio.Lock
    users: int = 0


class ConversationStore:
    """
    In-memory session id -> ordered message list.

    One instance per process (see ``harmony_relay.main.create_app``); tests
    build their own. Unknown session ids read as empty conversations and
    every mutation on them is a no-op or creates the entry, never an error.
    """

    def __init__(self) -> None:
        self._index: Dict[str, List[Message]] = {}
        self._lock = threading.RLock()
        self._session_locks: Dict[str, _SessionLock] = {}

    def append(self, sid: str, message: Message) -> None:
        with self._lock:
            msgs = self._index.setdefault(sid, [])
            msgs.append(message)
            size = len(msgs)
        logger.debug("append sid=%s role=%s len=%d size=%d", sid, message.role, len(message.content), size)

    def read(self, sid: str) -> List[Message]:
        with self._lock:
            return list(self._index.get(sid, []))

    def read_for_backend(self, sid: str) -> List[Message]:
        """Copy with all system messages first, as the backend must see it."""
        return systems_first(self.read(sid))

    def replace_system_prefix(self, sid: str, system_messages: Iterable[Message]) -> None:
        new_prefix = list(system_messages)
        with self._lock:
            rest = [m for m in self._index.get(sid, []) if m.role != ROLE_SYSTEM]
            self._index[sid] = new_prefix + rest
        logger.debug("replace_system_prefix sid=%s system=%d rest=%d", sid, len(new_prefix), len(rest))

    def remove_last(self, sid: str) -> None:
        with self._lock:
            msgs = self._index.get(sid)
            if not msgs:
                return
            dropped = msgs.pop()
        logger.debug("remove_last sid=%s role=%s", sid, dropped.role)

    def set_exact(self, sid: str, messages: Iterable[Message]) -> None:
        with self._lock:
            self._index[sid] = list(messages)

    @asynccontextmanager
    async def session_turn(self, sid: str) -> AsyncIterator[None]:
        """
        Hold the session for one whole relay turn.

        Turns of the same session queue on one lock; the lock is dropped once
        no turn holds or waits for it, so idle sessions keep no lock around.
        """
        with self._lock:
            entry = self._session_locks.get(sid)
            if entry is None:
                entry = self._session_locks[sid] = _SessionLock(asyncio.Lock())
            entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if entry.users == 0 and self._session_locks.get(sid) is entry:
                    del self._session_locks[sid]

    def turns_in_flight(self, sid: str) -> int:
        """Turns of ``sid`` currently running or queued."""
        with self._lock:
            entry = self._session_locks.get(sid)
            return entry.users if entry else 0

    def stats(self) -> dict:
        with self._lock:
            total = sum(len(v) for v in self._index.values())
            return {
                "sessions": len(self._index),
                "messages": total,
            }
