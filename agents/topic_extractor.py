"""Topic extraction through the model registry."""
from __future__ import annotations

from typing import Any, List

from agents.types import TopicList
from config.registry import TOPIC_KEY, get_model
from graph.tree import normalize_terms


def _coerce(raw: Any) -> TopicList:
    if isinstance(raw, TopicList):
        return raw
    if isinstance(raw, (list, tuple)):
        return TopicList(topics=[str(item) for item in raw])
    return TopicList.model_validate(raw)


async def extract_topics(text: str) -> List[str]:
    """Return the topics raised by ``text``, deduplicated in first-seen order."""

    model = get_model(TOPIC_KEY)
    raw = await model(text)
    return normalize_terms(_coerce(raw).topics)


__all__ = ["extract_topics"]
