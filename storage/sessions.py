"""SQLite-backed session store."""
from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional, Tuple

from graph.checkpointer import dumps, loads
from graph.state import ConversationState, utc_now

from .base import SaveResult
from .migrate import migrate
from .sqlite import get_conn

logger = logging.getLogger(__name__)


class SqliteSessionStore:
    """Stores one JSON snapshot row per session, guarded by a version column."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path
        migrate(db_path)

    def load_session(self, session_id: str) -> Optional[ConversationState]:
        with get_conn(self.db_path) as conn:
            row = conn.execute(
                "SELECT version, snapshot_json FROM interview_sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        version, snapshot_json = row
        state = loads(snapshot_json)
        state.version = int(version)
        return state

    def save_session(self, session_id: str, state: ConversationState) -> SaveResult:
        if state.session_id != session_id:
            raise ValueError(f"state belongs to {state.session_id}, not {session_id}")
        expected = state.version
        new_version = expected + 1
        state.version = new_version
        snapshot = dumps(state)
        now = utc_now()
        try:
            with get_conn(self.db_path) as conn:
                if expected == 0:
                    conn.execute(
                        """INSERT INTO interview_sessions
                           (session_id, version, snapshot_json, turn_count, completed, created_at, updated_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?)""",
                        (session_id, new_version, snapshot, state.turn_count, int(state.completed), now, now),
                    )
                    updated = 1
                else:
                    cur = conn.execute(
                        """UPDATE interview_sessions
                           SET version = ?, snapshot_json = ?, turn_count = ?, completed = ?, updated_at = ?
                           WHERE session_id = ? AND version = ?""",
                        (new_version, snapshot, state.turn_count, int(state.completed), now, session_id, expected),
                    )
                    updated = cur.rowcount
        except sqlite3.IntegrityError:
            updated = 0
        if updated != 1:
            state.version = expected
            logger.warning("Version conflict session=%s expected=%d", session_id, expected)
            return "conflict"
        return "ok"

    def list_sessions(self, limit: int = 20) -> List[Tuple[str, int, int, bool, str]]:
        """Most recently updated sessions as ``(id, version, turns, completed, updated_at)``."""

        with get_conn(self.db_path) as conn:
            rows = conn.execute(
                """SELECT session_id, version, turn_count, completed, updated_at
                   FROM interview_sessions
                   ORDER BY updated_at DESC
                   LIMIT ?""",
                (limit,),
            ).fetchall()
        return [(sid, int(ver), int(turns), bool(done), ts) for sid, ver, turns, done, ts in rows]

    def delete_session(self, session_id: str) -> bool:
        with get_conn(self.db_path) as conn:
            cur = conn.execute("DELETE FROM interview_sessions WHERE session_id = ?", (session_id,))
            return cur.rowcount > 0


__all__ = ["SqliteSessionStore"]
