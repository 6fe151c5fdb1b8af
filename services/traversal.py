"""Traversal policy: where the interview goes after each graded turn."""
from __future__ import annotations

import logging
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from agents.types import ResponseAnalysis
from config.settings import settings
from graph.state import ConversationState, TopicNode
from graph.tree import add_child, can_add_child, find_child, unexplored_children

logger = logging.getLogger(__name__)

TraversalAction = Literal["descend-new", "descend-existing", "continue", "backtrack", "mark-rich"]


class TraversalDecision(BaseModel):
    action: TraversalAction
    target_node_id: Optional[str] = None
    backtracked: List[str] = Field(default_factory=list)
    created: List[str] = Field(default_factory=list)
    completion_eligible: bool = False
    loop_breaker: bool = False


def descend(state: ConversationState, target: TopicNode) -> None:
    target.status = "exploring"
    state.current_path.append(target.id)
    state.total_depth += target.depth
    state.max_depth_reached = max(state.max_depth_reached, target.depth)


def _mark_exhausted(state: ConversationState, node: TopicNode) -> None:
    node.status = "exhausted"
    if node.id not in state.exhausted_topics:
        state.exhausted_topics.append(node.id)


def _close(state: ConversationState, node: TopicNode) -> TraversalAction:
    """Rich when the node was probed enough, otherwise exhausted."""

    if len(node.mentions) >= settings.RICH_MIN_MENTIONS:
        node.status = "rich"
        return "mark-rich"
    _mark_exhausted(state, node)
    return "backtrack"


def _pop_and_cascade(state: ConversationState) -> List[str]:
    """Pop the active node, then keep popping fully probed ancestors."""

    popped = [state.current_path.pop()]
    # The cascade can pop at most len(path) - 1 nodes; the root never leaves.
    while len(state.current_path) > 1:
        node = state.current_node
        if unexplored_children(state, node.id):
            break
        if len(node.mentions) < settings.FULLY_PROBED_MENTIONS:
            break
        _close(state, node)
        popped.append(state.current_path.pop())
    return popped


def _root_done(state: ConversationState) -> bool:
    return not unexplored_children(state, state.root.id)


def decide(
    current_node: TopicNode,
    analysis: ResponseAnalysis,
    state: ConversationState,
    *,
    utterance: str = "",
) -> TraversalDecision:
    """Apply the first matching rule and mutate ``state`` accordingly.

    Rules, in order: exhaustion with nothing left below, new topics, known
    subtopics, then continue (with the loop breaker).
    """

    if not state.current_path or state.current_path[-1] != current_node.id:
        raise ValueError(f"{current_node.id} is not the active topic")
    if current_node.status == "unexplored":
        current_node.status = "exploring"

    # 1. exhaustion; the root is never closed
    if (
        analysis.exhaustion_signals
        and not current_node.is_root
        and not unexplored_children(state, current_node.id)
    ):
        action = _close(state, current_node)
        popped = _pop_and_cascade(state)
        return TraversalDecision(
            action=action,
            target_node_id=state.current_node.id,
            backtracked=popped,
            completion_eligible=state.current_node.is_root and _root_done(state),
        )

    # 2. new topics
    candidates: List[str] = []
    created: List[TopicNode] = []
    for topic in analysis.new_topics:
        if find_child(state, current_node.id, topic) is not None:
            candidates.append(topic)
            continue
        if not can_add_child(state, current_node.id):
            logger.info(
                "Tree limit reached session=%s node=%s; not adding %r", state.session_id, current_node.id, topic
            )
            continue
        created.append(add_child(state, current_node.id, topic, context=utterance))
    if created:
        current_node.unproductive_turns = 0
        descend(state, created[0])
        return TraversalDecision(
            action="descend-new",
            target_node_id=created[0].id,
            created=[node.id for node in created],
        )

    # 3. subtopics
    for topic in list(analysis.subtopics) + candidates:
        child = find_child(state, current_node.id, topic)
        if child is not None and child.status != "exhausted":
            current_node.unproductive_turns = 0
            descend(state, child)
            return TraversalDecision(action="descend-existing", target_node_id=child.id)

    # 4. continue
    if not analysis.degraded:
        current_node.unproductive_turns += 1
    stalled = current_node.unproductive_turns >= settings.LOOP_BREAKER_TURNS
    if stalled and not current_node.is_root:
        _mark_exhausted(state, current_node)
        popped = _pop_and_cascade(state)
        return TraversalDecision(
            action="backtrack",
            target_node_id=state.current_node.id,
            backtracked=popped,
            completion_eligible=state.current_node.is_root and _root_done(state),
            loop_breaker=True,
        )
    return TraversalDecision(
        action="continue",
        target_node_id=current_node.id,
        completion_eligible=current_node.is_root
        and (stalled or bool(analysis.exhaustion_signals))
        and _root_done(state),
    )


def suggest_next_topic(state: ConversationState) -> Optional[TopicNode]:
    """First unexplored child of the active topic, if any."""

    pending = unexplored_children(state, state.current_node.id)
    return pending[0] if pending else None


__all__ = ["TraversalAction", "TraversalDecision", "decide", "descend", "suggest_next_topic"]
