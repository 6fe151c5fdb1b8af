"""Tests for the SQLite migration and session stores."""
from __future__ import annotations

import os
import sqlite3

import pytest

from graph.state import ROOT_ID, new_conversation_state
from graph.tree import add_child
from services.errors import TreeCorruptionError
from storage.memory import InMemorySessionStore
from storage.migrate import migrate
from storage.sessions import SqliteSessionStore


def test_migrate_creates_sessions_table(tmp_db: str):
    migrate(tmp_db)
    assert os.path.exists(tmp_db)
    conn = sqlite3.connect(tmp_db)
    try:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    finally:
        conn.close()
    assert "interview_sessions" in tables


@pytest.mark.parametrize("factory", [SqliteSessionStore, InMemorySessionStore])
def test_store_round_trip_and_versions(factory):
    store = factory()
    state = new_conversation_state("store-1")
    add_child(state, ROOT_ID, "Kafka")

    assert store.load_session("store-1") is None
    assert store.save_session("store-1", state) == "ok"
    assert state.version == 1

    loaded = store.load_session("store-1")
    assert loaded == state
    loaded.turn_count = 4
    assert store.save_session("store-1", loaded) == "ok"
    assert loaded.version == 2
    assert store.load_session("store-1").turn_count == 4


@pytest.mark.parametrize("factory", [SqliteSessionStore, InMemorySessionStore])
def test_store_detects_stale_writer(factory):
    store = factory()
    store.save_session("store-2", new_conversation_state("store-2"))

    first = store.load_session("store-2")
    second = store.load_session("store-2")
    assert store.save_session("store-2", first) == "ok"
    assert store.save_session("store-2", second) == "conflict"
    assert second.version == 1


@pytest.mark.parametrize("factory", [SqliteSessionStore, InMemorySessionStore])
def test_store_rejects_duplicate_create(factory):
    store = factory()
    assert store.save_session("dup", new_conversation_state("dup")) == "ok"
    assert store.save_session("dup", new_conversation_state("dup")) == "conflict"


def test_store_rejects_mismatched_session_id():
    with pytest.raises(ValueError):
        SqliteSessionStore().save_session("other", new_conversation_state("store-3"))


def test_sqlite_store_refuses_corrupted_snapshot(tmp_db: str):
    store = SqliteSessionStore()
    store.save_session("bad", new_conversation_state("bad"))
    conn = sqlite3.connect(tmp_db)
    try:
        conn.execute(
            "UPDATE interview_sessions SET snapshot_json = ? WHERE session_id = ?",
            ('{"session_id": "bad", "nodes": [], "current_path": ["root"]}', "bad"),
        )
        conn.commit()
    finally:
        conn.close()
    with pytest.raises(TreeCorruptionError):
        store.load_session("bad")


def test_sqlite_list_and_delete():
    store = SqliteSessionStore()
    store.save_session("a", new_conversation_state("a"))
    store.save_session("b", new_conversation_state("b"))
    ids = {row[0] for row in store.list_sessions()}
    assert ids == {"a", "b"}
    assert store.delete_session("a") is True
    assert store.load_session("a") is None
    assert store.delete_session("a") is False
