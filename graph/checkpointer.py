"""Snapshot serialization for ``ConversationState``."""
from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from pydantic import ValidationError

from services.errors import TreeCorruptionError

from .state import BuzzwordStat, ConversationState
from .tree import validate_tree

BASE_DIR = "data/checkpoints"


def to_snapshot(state: ConversationState) -> Dict[str, Any]:
    """Flatten state into plain data: nodes in arena order, buzzwords as an ordered array."""

    data = state.model_dump(mode="json", exclude={"buzzwords"})
    data["buzzwords"] = [
        {
            "term": term,
            "count": stat.count,
            "source_turn_indices": sorted(stat.source_turn_indices),
        }
        for term, stat in state.buzzwords.items()
    ]
    return data


def from_snapshot(data: Dict[str, Any]) -> ConversationState:
    """Rebuild state from a snapshot and re-check the tree and path invariants."""

    payload = dict(data)
    buzzwords = payload.pop("buzzwords", []) or []
    try:
        state = ConversationState.model_validate(payload)
        state.buzzwords = {
            str(entry["term"]): BuzzwordStat(
                count=entry.get("count", 0),
                source_turn_indices=set(entry.get("source_turn_indices", [])),
            )
            for entry in buzzwords
        }
    except (ValidationError, KeyError, TypeError) as exc:
        raise TreeCorruptionError(f"unreadable session snapshot: {exc}") from exc
    validate_tree(state)
    return state


def dumps(state: ConversationState) -> str:
    return json.dumps(to_snapshot(state), ensure_ascii=False)


def loads(raw: str) -> ConversationState:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise TreeCorruptionError(f"session snapshot is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise TreeCorruptionError("session snapshot must be a JSON object")
    return from_snapshot(data)


def _checkpoint_path(session_id: str, base_dir: str) -> str:
    return os.path.join(base_dir, f"{session_id}.json")


def save_checkpoint(state: ConversationState, base_dir: str = BASE_DIR) -> str:
    """Write the snapshot to disk atomically and return the file path."""
    os.makedirs(base_dir, exist_ok=True)
    path = _checkpoint_path(state.session_id, base_dir)
    tmp_path = path + ".tmp"
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(to_snapshot(state), handle, ensure_ascii=False, indent=2)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)
    return path


def load_checkpoint(session_id: str, base_dir: str = BASE_DIR) -> Optional[ConversationState]:
    """Load a snapshot file if present."""
    path = _checkpoint_path(session_id, base_dir)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as handle:
        return loads(handle.read())


__all__ = ["to_snapshot", "from_snapshot", "dumps", "loads", "save_checkpoint", "load_checkpoint"]
