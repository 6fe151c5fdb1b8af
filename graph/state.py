"""Serializable interview state: topic tree arena and session aggregate."""
from __future__ import annotations

import datetime as dt
from typing import Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

NodeStatus = Literal["unexplored", "exploring", "exhausted", "rich"]
EngagementLevel = Literal["high", "medium", "low"]

ROOT_ID = "root"


def utc_now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


class Mention(BaseModel):
    """One turn that touched a topic node."""

    turn_index: int
    timestamp: str
    response_excerpt: str
    engagement_level: EngagementLevel


class TopicNode(BaseModel):
    """A node of the interview's subject tree."""

    id: str
    name: str
    depth: int = Field(ge=0)
    parent_id: Optional[str] = None
    children: List[str] = Field(default_factory=list)
    status: NodeStatus = "unexplored"
    context: str = ""
    mentions: List[Mention] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)
    unproductive_turns: int = Field(default=0, ge=0)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class QAPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str
    turn_index: int
    timestamp: str = Field(default_factory=utc_now)


class ResponseGrade(BaseModel):
    model_config = ConfigDict(frozen=True)

    turn_index: int
    score: float = Field(ge=0.0, le=100.0)
    timestamp: str = Field(default_factory=utc_now)
    engagement_level: EngagementLevel
    content_snapshot: str
    degraded: bool = False


class BuzzwordStat(BaseModel):
    count: int = Field(default=0, ge=0)
    source_turn_indices: Set[int] = Field(default_factory=set)


class ConversationState(BaseModel):
    """Session aggregate loaded at turn start and persisted at turn end.

    The topic tree is an arena: ``nodes`` keeps discovery order and a private
    id -> position index is rebuilt whenever the model is constructed.
    """

    session_id: str
    nodes: List[TopicNode] = Field(default_factory=list)
    current_path: List[str] = Field(default_factory=list)
    exhausted_topics: List[str] = Field(default_factory=list)
    grades: List[ResponseGrade] = Field(default_factory=list)
    buzzwords: Dict[str, BuzzwordStat] = Field(default_factory=dict)
    qa_pairs: List[QAPair] = Field(default_factory=list)
    start_time: str = Field(default_factory=utc_now)
    total_depth: int = Field(default=0, ge=0)
    max_depth_reached: int = Field(default=0, ge=0)
    turn_count: int = Field(default=0, ge=0)
    completed: bool = False
    version: int = Field(default=0, ge=0)

    _index: Dict[str, int] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: object) -> None:
        self.reindex()

    def reindex(self) -> None:
        self._index = {node.id: pos for pos, node in enumerate(self.nodes)}

    # Arena access

    def has_node(self, node_id: str) -> bool:
        return node_id in self._index

    def node(self, node_id: str) -> TopicNode:
        try:
            return self.nodes[self._index[node_id]]
        except KeyError:
            raise KeyError(f"Unknown topic node: {node_id}") from None

    def add_node(self, node: TopicNode) -> TopicNode:
        if node.id in self._index:
            raise ValueError(f"Duplicate topic node id: {node.id}")
        self._index[node.id] = len(self.nodes)
        self.nodes.append(node)
        return node

    @property
    def root(self) -> TopicNode:
        return self.node(ROOT_ID)

    @property
    def current_node(self) -> TopicNode:
        return self.node(self.current_path[-1])

    def children_of(self, node_id: str) -> List[TopicNode]:
        return [self.node(child_id) for child_id in self.node(node_id).children]

    def next_turn_index(self) -> int:
        return self.turn_count


def new_conversation_state(session_id: str, root_name: str = "General Background") -> ConversationState:
    """Create an empty session with the root node as the active topic."""

    state = ConversationState(session_id=session_id)
    state.add_node(
        TopicNode(
            id=ROOT_ID,
            name=root_name,
            depth=0,
            parent_id=None,
            status="unexplored",
            context="Starting conversation",
        )
    )
    state.current_path = [ROOT_ID]
    return state


__all__ = [
    "ROOT_ID",
    "NodeStatus",
    "EngagementLevel",
    "Mention",
    "TopicNode",
    "QAPair",
    "ResponseGrade",
    "BuzzwordStat",
    "ConversationState",
    "new_conversation_state",
    "utc_now",
]
