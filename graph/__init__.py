"""Topic tree and session state for the interview controller."""
from .state import ROOT_ID, ConversationState, TopicNode, new_conversation_state
from .checkpointer import dumps, from_snapshot, loads, to_snapshot

__all__ = [
    "ROOT_ID",
    "ConversationState",
    "TopicNode",
    "new_conversation_state",
    "dumps",
    "loads",
    "to_snapshot",
    "from_snapshot",
]
