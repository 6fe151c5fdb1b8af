"""Turn analyzer: classifies one utterance into a ``ResponseAnalysis``.

Topic and skill extraction run concurrently through the model registry, each
under a timeout. Length, confidence, engagement and exhaustion cues are local
lexical heuristics, so they are deterministic for a given utterance and
extraction result. If either extractor fails the whole turn falls back to a
degraded analysis rather than applying half of the extraction.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Protocol, Sequence, Tuple

from agents.skill_extractor import extract_skills
from agents.topic_extractor import extract_topics
from agents.types import (
    ConfidenceLevel,
    EngagementLevel,
    ResponseAnalysis,
    ResponseLength,
    SkillExtraction,
)
from config.settings import settings
from graph.state import ConversationState, TopicNode
from graph.tree import find_child, normalize_terms, on_path_match

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9'.+#-]*")

STRUGGLING_CUES = (
    "don't know",
    "dont know",
    "do not know",
    "no idea",
    "not sure",
    "can't remember",
    "cannot remember",
    "never really",
)
UNCERTAIN_CUES = (
    "maybe",
    "i guess",
    "i think",
    "probably",
    "sort of",
    "kind of",
    "i suppose",
    "perhaps",
)
CLOSING_CUES = (
    "nothing else",
    "that's about it",
    "that is about it",
    "that's all",
    "that is all",
    "not much more",
    "nothing more",
    "that's it",
)
DONT_KNOW_CUES = ("don't know", "dont know", "do not know", "no idea")
VAGUE_CUES = ("stuff", "things", "whatever", "etc", "and so on", "something like that")


class TurnAnalyzer(Protocol):
    async def analyze(
        self, raw_utterance: str, current_node: TopicNode, context: ConversationState
    ) -> ResponseAnalysis: ...


def _normalize_text(text: str) -> str:
    return " ".join(text.replace("’", "'").lower().split())


def _has_cue(text: str, cues: Sequence[str]) -> bool:
    return any(re.search(rf"(?<![a-z']){re.escape(cue)}(?![a-z])", text) for cue in cues)


def word_count(text: str) -> int:
    return len(_WORD_RE.findall(text))


def classify_length(words: int) -> ResponseLength:
    if words > settings.DETAILED_WORDS:
        return "detailed"
    if words > settings.MODERATE_WORDS:
        return "moderate"
    return "brief"


def classify_confidence(text: str) -> ConfidenceLevel:
    normalized = _normalize_text(text)
    if _has_cue(normalized, STRUGGLING_CUES):
        return "struggling"
    if _has_cue(normalized, UNCERTAIN_CUES):
        return "uncertain"
    return "confident"


def classify_engagement(length: ResponseLength, specificity: int) -> EngagementLevel:
    points = {"detailed": 2, "moderate": 1, "brief": 0}[length] + min(specificity, 2)
    if points >= 3:
        return "high"
    if points >= 1:
        return "medium"
    return "low"


def exhaustion_signals(
    text: str, words: int, length: ResponseLength, confidence: ConfidenceLevel
) -> List[str]:
    normalized = _normalize_text(text)
    signals: List[str] = []
    if words < settings.SHORT_ANSWER_WORDS:
        signals.append("short_answer")
    if _has_cue(normalized, CLOSING_CUES):
        signals.append("closing_phrase")
    if _has_cue(normalized, DONT_KNOW_CUES):
        signals.append("dont_know")
    if length == "brief" and _has_cue(normalized, VAGUE_CUES):
        signals.append("vague")
    if length == "brief" and confidence == "struggling":
        signals.append("struggling_brief")
    return signals


def split_topics(
    topics: Sequence[str], current_node: TopicNode, context: ConversationState
) -> Tuple[List[str], List[str]]:
    """Separate extracted topics into ``(new_topics, subtopics)``.

    Topics already covered by a node on the active path are dropped. Topics
    naming a child of the current node are subtopics and the rest are new.
    """

    new_topics: List[str] = []
    subtopics: List[str] = []
    for topic in normalize_terms(topics):
        if on_path_match(context, topic) is not None:
            continue
        if find_child(context, current_node.id, topic) is not None:
            subtopics.append(topic)
        else:
            new_topics.append(topic)
    return new_topics, subtopics


def buzzwords_from(skills: Sequence[SkillExtraction]) -> List[str]:
    return normalize_terms(
        [skill.name for skill in skills if skill.confidence >= settings.MIN_SKILL_CONFIDENCE],
        lower=True,
    )


def degraded_analysis(raw_utterance: str) -> ResponseAnalysis:
    words = word_count(raw_utterance)
    length = classify_length(words)
    return ResponseAnalysis(
        engagement_level=classify_engagement(length, 0),
        confidence_level="uncertain",
        response_length=length,
        exhaustion_signals=exhaustion_signals(raw_utterance, words, length, "uncertain"),
        degraded=True,
    )


async def _extract(raw_utterance: str) -> Tuple[List[str], List[SkillExtraction]]:
    timeout = settings.EXTRACTOR_TIMEOUT_S
    topics, skills = await asyncio.gather(
        asyncio.wait_for(extract_topics(raw_utterance), timeout),
        asyncio.wait_for(extract_skills(raw_utterance), timeout),
        return_exceptions=True,
    )
    for outcome in (topics, skills):
        if isinstance(outcome, BaseException):
            raise outcome
    return topics, skills


class ResponseAnalyzer:
    """Default analyzer backed by the registry-bound extractors."""

    async def analyze(
        self, raw_utterance: str, current_node: TopicNode, context: ConversationState
    ) -> ResponseAnalysis:
        if not raw_utterance or not raw_utterance.strip():
            raise ValueError("raw_utterance must be non-empty")
        if current_node.id not in context.current_path:
            raise ValueError(f"{current_node.id} is not on the current path")

        turn_index = context.next_turn_index()
        try:
            topics, skills = await _extract(raw_utterance)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Extractor failure session=%s turn=%d error=%s; using degraded analysis",
                context.session_id,
                turn_index,
                repr(exc),
            )
            return degraded_analysis(raw_utterance)

        new_topics, subtopics = split_topics(topics, current_node, context)
        buzzwords = buzzwords_from(skills)
        words = word_count(raw_utterance)
        length = classify_length(words)
        confidence = classify_confidence(raw_utterance)
        specificity = len(new_topics) + len(subtopics) + len(buzzwords)
        return ResponseAnalysis(
            engagement_level=classify_engagement(length, specificity),
            confidence_level=confidence,
            response_length=length,
            new_topics=new_topics,
            subtopics=subtopics,
            exhaustion_signals=exhaustion_signals(raw_utterance, words, length, confidence),
            buzzwords=buzzwords,
        )


async def analyze(raw_utterance: str, current_node: TopicNode, context: ConversationState) -> ResponseAnalysis:
    return await ResponseAnalyzer().analyze(raw_utterance, current_node, context)


__all__ = [
    "TurnAnalyzer",
    "ResponseAnalyzer",
    "analyze",
    "word_count",
    "classify_length",
    "classify_confidence",
    "classify_engagement",
    "exhaustion_signals",
    "split_topics",
    "buzzwords_from",
    "degraded_analysis",
]
