"""Persistence contract for interview sessions."""
from __future__ import annotations

from typing import Literal, Optional, Protocol

from graph.state import ConversationState

SaveResult = Literal["ok", "conflict"]


class SessionStore(Protocol):
    """Load/save of whole-session snapshots with an optimistic version check.

    ``save_session`` succeeds only when ``state.version`` still matches the
    stored version; on success it bumps ``state.version`` in place.
    """

    def load_session(self, session_id: str) -> Optional[ConversationState]: ...

    def save_session(self, session_id: str, state: ConversationState) -> SaveResult: ...


__all__ = ["SaveResult", "SessionStore"]
