"""Session bootstrap and per-session locking."""
from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from config.settings import settings
from graph.state import ConversationState, new_conversation_state


def new_session(session_id: Optional[str] = None) -> ConversationState:
    """Create a fresh ConversationState, generating an id when none is given."""

    return new_conversation_state(session_id or str(uuid.uuid4()), root_name=settings.ROOT_TOPIC_NAME)


class SessionLocks:
    """One ``asyncio.Lock`` per session id; different sessions never contend."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        async with self.lock_for(session_id):
            yield

    def discard(self, session_id: str) -> None:
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._locks[session_id]


__all__ = ["new_session", "SessionLocks"]
