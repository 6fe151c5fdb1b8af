"""Turn orchestration: analyze, grade, decide, persist."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from agents.response_analyzer import ResponseAnalyzer, TurnAnalyzer
from agents.types import ResponseAnalysis
from graph.state import ConversationState, QAPair, ResponseGrade
from graph.tree import validate_path
from observability.logger import log_event
from observability.tracing import span
from services.errors import SessionCompletedError, SessionConflictError, SessionNotFoundError
from services.scoring import Grader
from services.sessions import SessionLocks, new_session
from services.summary import InterviewSummary, SummaryDelta, summarize, summary_delta
from services.traversal import TraversalAction, TraversalDecision, decide, suggest_next_topic
from storage.base import SessionStore
from storage.sessions import SqliteSessionStore


class TurnResult(BaseModel):
    session_id: str
    turn_index: int
    next_action: TraversalAction
    target_node_id: Optional[str] = None
    focus_topic: str
    suggested_topic: Optional[str] = None
    completion_eligible: bool = False
    degraded: bool = False
    grade: ResponseGrade
    summary_delta: SummaryDelta
    events: List[Dict[str, Any]] = Field(default_factory=list)


class InterviewEngine:
    """Entry points for one interview controller instance.

    Turns for the same session are serialized by ``SessionLocks`` and the
    store's version check; turns for different sessions run independently.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        *,
        analyzer: Optional[TurnAnalyzer] = None,
        grader: Optional[Grader] = None,
        locks: Optional[SessionLocks] = None,
    ) -> None:
        self.store: SessionStore = store if store is not None else SqliteSessionStore()
        self.analyzer: TurnAnalyzer = analyzer or ResponseAnalyzer()
        self.grader = grader or Grader()
        self.locks = locks or SessionLocks()

    def _load(self, session_id: str) -> ConversationState:
        state = self.store.load_session(session_id)
        if state is None:
            raise SessionNotFoundError(f"Unknown interview session: {session_id}")
        return state

    async def _load_off_loop(self, session_id: str) -> ConversationState:
        state = await asyncio.to_thread(self.store.load_session, session_id)
        if state is None:
            raise SessionNotFoundError(f"Unknown interview session: {session_id}")
        return state

    def start_session(self, session_id: Optional[str] = None) -> ConversationState:
        """Create and persist a new session; an existing id returns its stored state."""

        if session_id is not None:
            existing = self.store.load_session(session_id)
            if existing is not None:
                return existing
        state = new_session(session_id)
        if self.store.save_session(state.session_id, state) == "conflict":
            return self._load(state.session_id)
        log_event("session.start", state.session_id, node=state.root.id)
        return state

    def _apply(
        self,
        state: ConversationState,
        analysis: ResponseAnalysis,
        raw_utterance: str,
        question: str,
        events: List[Dict[str, Any]],
    ) -> Tuple[ResponseGrade, TraversalDecision]:
        turn_index = state.next_turn_index()
        current = state.current_node
        with span(events, "grade"):
            grade = self.grader.grade(turn_index, analysis, current, state, utterance=raw_utterance)
        with span(events, "decide"):
            decision = decide(current, analysis, state, utterance=raw_utterance)
        validate_path(state)
        state.qa_pairs.append(QAPair(question=question, answer=raw_utterance, turn_index=turn_index))
        state.turn_count += 1
        return grade, decision

    async def process_turn(self, session_id: str, raw_utterance: str, question: str = "") -> TurnResult:
        """Run one turn end to end and persist the result.

        A version conflict on save reloads the session and replays grading and
        traversal with the same analysis once; a second conflict raises
        ``SessionConflictError``. Store reads and writes run in a worker thread
        through ``asyncio.to_thread``.
        """

        async with self.locks.hold(session_id):
            state = await self._load_off_loop(session_id)
            if state.completed:
                raise SessionCompletedError(f"Interview session {session_id} is completed")
            events: List[Dict[str, Any]] = []
            log_event("turn.start", session_id, turn=state.next_turn_index(), node=state.current_node.id)

            with span(events, "analyze"):
                analysis = await self.analyzer.analyze(raw_utterance, state.current_node, state)

            for attempt in (1, 2):
                grade, decision = self._apply(state, analysis, raw_utterance, question, events)
                if await asyncio.to_thread(self.store.save_session, session_id, state) == "ok":
                    break
                log_event("turn.conflict", session_id, level=logging.WARNING, turn=grade.turn_index, outcome=attempt)
                if attempt == 2:
                    raise SessionConflictError(f"Interview session {session_id} was modified concurrently")
                state = await self._load_off_loop(session_id)
                if state.completed:
                    raise SessionCompletedError(f"Interview session {session_id} is completed")

            suggestion = suggest_next_topic(state)
            log_event(
                "turn.end",
                session_id,
                turn=grade.turn_index,
                action=decision.action,
                target=decision.target_node_id,
                score=grade.score,
                degraded=analysis.degraded,
                version=state.version,
                spans=events,
            )
            return TurnResult(
                session_id=session_id,
                turn_index=grade.turn_index,
                next_action=decision.action,
                target_node_id=decision.target_node_id,
                focus_topic=state.current_node.name,
                suggested_topic=suggestion.name if suggestion else None,
                completion_eligible=decision.completion_eligible,
                degraded=analysis.degraded,
                grade=grade,
                summary_delta=summary_delta(state),
                events=events,
            )

    def get_summary(self, session_id: str) -> InterviewSummary:
        return summarize(self._load(session_id))

    async def complete_session(self, session_id: str) -> InterviewSummary:
        """Mark the session completed and return its final summary.

        The session lock is dropped once the session is completed.
        """

        async with self.locks.hold(session_id):
            state = await self._finish(session_id)
        self.locks.discard(session_id)
        return summarize(state)

    async def _finish(self, session_id: str) -> ConversationState:
        for attempt in (1, 2):
            state = await self._load_off_loop(session_id)
            if state.completed:
                return state
            state.completed = True
            if await asyncio.to_thread(self.store.save_session, session_id, state) == "ok":
                break
            if attempt == 2:
                raise SessionConflictError(f"Interview session {session_id} was modified concurrently")
        log_event("session.complete", session_id, turn=state.turn_count)
        return state


__all__ = ["InterviewEngine", "TurnResult"]
