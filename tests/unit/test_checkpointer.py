import json

import pytest

from graph.checkpointer import dumps, from_snapshot, load_checkpoint, loads, save_checkpoint, to_snapshot
from graph.state import ROOT_ID, BuzzwordStat, QAPair, ResponseGrade, new_conversation_state
from graph.tree import add_child
from services.errors import TreeCorruptionError


def _populated_state():
    state = new_conversation_state("snap-1")
    k8s = add_child(state, ROOT_ID, "Kubernetes", context="I run Kubernetes")
    add_child(state, ROOT_ID, "Docker")
    k8s.status = "exploring"
    state.current_path.append(k8s.id)
    state.total_depth = 1
    state.max_depth_reached = 1
    state.turn_count = 2
    state.grades.append(
        ResponseGrade(turn_index=0, score=71.5, engagement_level="high", content_snapshot="I run Kubernetes")
    )
    state.qa_pairs.append(QAPair(question="Tell me about your work", answer="I run Kubernetes", turn_index=0))
    state.buzzwords["kubernetes"] = BuzzwordStat(count=2, source_turn_indices={0, 1})
    state.buzzwords["docker"] = BuzzwordStat(count=1, source_turn_indices={1})
    return state


def test_snapshot_round_trip_is_lossless():
    state = _populated_state()
    restored = loads(dumps(state))
    assert restored == state
    assert restored.node(state.current_path[-1]).name == "Kubernetes"
    assert list(restored.buzzwords) == ["kubernetes", "docker"]


def test_buzzwords_serialize_as_ordered_array():
    snapshot = to_snapshot(_populated_state())
    assert snapshot["buzzwords"] == [
        {"term": "kubernetes", "count": 2, "source_turn_indices": [0, 1]},
        {"term": "docker", "count": 1, "source_turn_indices": [1]},
    ]
    assert [node["name"] for node in snapshot["nodes"]] == ["General Background", "Kubernetes", "Docker"]


def test_from_snapshot_rejects_invalid_path():
    snapshot = to_snapshot(_populated_state())
    snapshot["current_path"] = [snapshot["nodes"][1]["id"]]
    with pytest.raises(TreeCorruptionError):
        from_snapshot(snapshot)


def test_from_snapshot_rejects_inconsistent_children():
    snapshot = to_snapshot(_populated_state())
    snapshot["nodes"][0]["children"] = []
    with pytest.raises(TreeCorruptionError):
        from_snapshot(snapshot)


def test_loads_rejects_garbage():
    with pytest.raises(TreeCorruptionError):
        loads("{not json")
    with pytest.raises(TreeCorruptionError):
        loads(json.dumps([1, 2, 3]))
    with pytest.raises(TreeCorruptionError):
        loads(json.dumps({"session_id": "x", "nodes": "nope"}))


def test_checkpoint_file_round_trip(tmp_path):
    state = _populated_state()
    path = save_checkpoint(state, str(tmp_path))
    assert path.endswith("snap-1.json")
    assert load_checkpoint("snap-1", str(tmp_path)) == state
    assert load_checkpoint("missing", str(tmp_path)) is None
