"""Lightweight CLI helpers for inspecting stored interview sessions."""
from __future__ import annotations

import argparse
import json
from typing import Optional, Sequence

from graph.checkpointer import save_checkpoint
from services.errors import InterviewEngineError
from services.summary import summarize
from storage.sessions import SqliteSessionStore


def list_sessions(store: SqliteSessionStore, limit: int = 20) -> None:
    for session_id, version, turns, completed, updated_at in store.list_sessions(limit):
        status = "completed" if completed else "active"
        print(f"[{updated_at}] {session_id} v{version} turns={turns} {status}")


def show_summary(store: SqliteSessionStore, session_id: str) -> int:
    state = store.load_session(session_id)
    if state is None:
        print(f"No session {session_id}")
        return 1
    summary = summarize(state)
    print(json.dumps(summary.model_dump(exclude={"tree", "tree_text"}), indent=2, ensure_ascii=False))
    return 0


def show_tree(store: SqliteSessionStore, session_id: str) -> int:
    state = store.load_session(session_id)
    if state is None:
        print(f"No session {session_id}")
        return 1
    print(summarize(state).tree_text)
    return 0


def export_session(store: SqliteSessionStore, session_id: str, out_dir: str) -> int:
    state = store.load_session(session_id)
    if state is None:
        print(f"No session {session_id}")
        return 1
    print(save_checkpoint(state, out_dir))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect stored interview sessions")
    parser.add_argument("--db", help="SQLite path (defaults to settings.DB_PATH)")
    parser.add_argument("--list", type=int, metavar="N", help="Show the N most recently updated sessions")
    parser.add_argument("--summary", metavar="SESSION_ID", help="Print a session summary as JSON")
    parser.add_argument("--tree", metavar="SESSION_ID", help="Print the topic tree of a session")
    parser.add_argument("--export", metavar="SESSION_ID", help="Write a session snapshot file")
    parser.add_argument("--out-dir", default="data/checkpoints", help="Directory for --export")
    args = parser.parse_args(argv)

    store = SqliteSessionStore(args.db)
    code = 0
    try:
        if args.list:
            list_sessions(store, args.list)
        if args.summary:
            code = max(code, show_summary(store, args.summary))
        if args.tree:
            code = max(code, show_tree(store, args.tree))
        if args.export:
            code = max(code, export_session(store, args.export, args.out_dir))
    except InterviewEngineError as exc:
        print(f"error: {exc}")
        return 2
    return code


if __name__ == "__main__":
    raise SystemExit(main())
