"""End-of-session summary built from persisted state."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from config.settings import settings
from graph.checkpointer import to_snapshot
from graph.state import ConversationState
from graph.tree import path_names, render_tree
from services.scoring import average_score

STATUSES = ("unexplored", "exploring", "exhausted", "rich")


class BuzzwordEntry(BaseModel):
    term: str
    count: int
    first_turn: int


class InterviewSummary(BaseModel):
    session_id: str
    turn_count: int
    total_nodes: int
    node_counts: Dict[str, int]
    average_score: float
    top_buzzwords: List[BuzzwordEntry] = Field(default_factory=list)
    current_path: List[str] = Field(default_factory=list)
    exhausted_topics: List[str] = Field(default_factory=list)
    max_depth_reached: int = 0
    total_depth: int = 0
    start_time: str
    completed: bool = False
    tree_text: str = ""
    tree: Dict[str, Any] = Field(default_factory=dict)


class SummaryDelta(BaseModel):
    turn_count: int
    current_path: List[str]
    node_counts: Dict[str, int]
    average_score: float
    last_score: Optional[float] = None
    max_depth_reached: int = 0


def node_counts(state: ConversationState) -> Dict[str, int]:
    counts = {status: 0 for status in STATUSES}
    for node in state.nodes:
        counts[node.status] += 1
    return counts


def top_buzzwords(state: ConversationState, limit: Optional[int] = None) -> List[BuzzwordEntry]:
    """Count descending, then earliest source turn, then term."""

    entries = [
        BuzzwordEntry(
            term=term,
            count=stat.count,
            first_turn=min(stat.source_turn_indices) if stat.source_turn_indices else -1,
        )
        for term, stat in state.buzzwords.items()
    ]
    entries.sort(key=lambda entry: (-entry.count, entry.first_turn, entry.term))
    cap = settings.TOP_BUZZWORDS if limit is None else limit
    return entries[:cap]


def summarize(state: ConversationState) -> InterviewSummary:
    snapshot = to_snapshot(state)
    return InterviewSummary(
        session_id=state.session_id,
        turn_count=state.turn_count,
        total_nodes=len(state.nodes),
        node_counts=node_counts(state),
        average_score=average_score(state),
        top_buzzwords=top_buzzwords(state),
        current_path=path_names(state),
        exhausted_topics=[state.node(node_id).name for node_id in state.exhausted_topics],
        max_depth_reached=state.max_depth_reached,
        total_depth=state.total_depth,
        start_time=state.start_time,
        completed=state.completed,
        tree_text=render_tree(state),
        tree={"nodes": snapshot["nodes"], "current_path": snapshot["current_path"]},
    )


def summary_delta(state: ConversationState) -> SummaryDelta:
    return SummaryDelta(
        turn_count=state.turn_count,
        current_path=path_names(state),
        node_counts=node_counts(state),
        average_score=average_score(state),
        last_score=state.grades[-1].score if state.grades else None,
        max_depth_reached=state.max_depth_reached,
    )


__all__ = ["BuzzwordEntry", "InterviewSummary", "SummaryDelta", "summarize", "summary_delta", "top_buzzwords", "node_counts"]
