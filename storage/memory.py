"""In-process session store holding JSON snapshots."""
from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from graph.checkpointer import dumps, loads
from graph.state import ConversationState

from .base import SaveResult


class InMemorySessionStore:
    """Keeps serialized snapshots so callers never share live state objects."""

    def __init__(self) -> None:
        self._rows: Dict[str, Tuple[int, str]] = {}
        self._mutex = threading.Lock()

    def load_session(self, session_id: str) -> Optional[ConversationState]:
        row = self._rows.get(session_id)
        if row is None:
            return None
        version, snapshot = row
        state = loads(snapshot)
        state.version = version
        return state

    def save_session(self, session_id: str, state: ConversationState) -> SaveResult:
        if state.session_id != session_id:
            raise ValueError(f"state belongs to {state.session_id}, not {session_id}")
        with self._mutex:
            stored_version = self._rows[session_id][0] if session_id in self._rows else 0
            if stored_version != state.version:
                return "conflict"
            state.version += 1
            self._rows[session_id] = (state.version, dumps(state))
        return "ok"

    def list_sessions(self) -> List[str]:
        return list(self._rows)

    def delete_session(self, session_id: str) -> bool:
        return self._rows.pop(session_id, None) is not None


__all__ = ["InMemorySessionStore"]
