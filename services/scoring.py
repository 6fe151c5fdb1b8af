"""Per-turn grading and buzzword bookkeeping."""
from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from agents.types import ResponseAnalysis
from config.settings import settings
from graph.state import BuzzwordStat, ConversationState, Mention, ResponseGrade, TopicNode, utc_now
from services.errors import MalformedAnalysisError

EXCERPT_CHARS = 200

ENGAGEMENT_VALUES = {"high": 1.0, "medium": 0.6, "low": 0.2}
CONFIDENCE_VALUES = {"confident": 1.0, "uncertain": 0.5, "struggling": 0.2}
LENGTH_VALUES = {"detailed": 1.0, "moderate": 0.6, "brief": 0.3}

_REQUIRED_FIELDS = (
    "engagement_level",
    "confidence_level",
    "response_length",
    "new_topics",
    "subtopics",
    "exhaustion_signals",
    "buzzwords",
)


def _round1(value: float) -> float:
    """Round a float to one decimal place with stable formatting."""
    return float(f"{value:.1f}")


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def novelty(analysis: ResponseAnalysis) -> float:
    distinct = {topic.casefold() for topic in analysis.new_topics} | {
        topic.casefold() for topic in analysis.subtopics
    }
    return min(1.0, len(distinct) / 3)


class ScoringStrategy(Protocol):
    def score(self, analysis: ResponseAnalysis) -> float: ...


class WeightedScoringStrategy:
    """Weighted sum of engagement, confidence, length and novelty.

    On degraded turns the confidence and novelty components come from a
    failed extraction, so they are dropped and the remaining weights are
    renormalized.
    """

    def __init__(
        self,
        *,
        engagement: Optional[float] = None,
        confidence: Optional[float] = None,
        length: Optional[float] = None,
        novelty_weight: Optional[float] = None,
    ) -> None:
        self.weights = {
            "engagement": settings.WEIGHT_ENGAGEMENT if engagement is None else engagement,
            "confidence": settings.WEIGHT_CONFIDENCE if confidence is None else confidence,
            "length": settings.WEIGHT_LENGTH if length is None else length,
            "novelty": settings.WEIGHT_NOVELTY if novelty_weight is None else novelty_weight,
        }
        for name, weight in self.weights.items():
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"weight {name} must be within [0, 1]")
        if abs(sum(self.weights.values()) - 1.0) > 1e-6:
            raise ValueError("scoring weights must sum to 1")

    def score(self, analysis: ResponseAnalysis) -> float:
        components = {
            "engagement": ENGAGEMENT_VALUES[analysis.engagement_level],
            "length": LENGTH_VALUES[analysis.response_length],
        }
        if not analysis.degraded:
            components["confidence"] = CONFIDENCE_VALUES[analysis.confidence_level]
            components["novelty"] = novelty(analysis)
        total_weight = sum(self.weights[name] for name in components)
        if total_weight <= 0:
            return 0.0
        weighted = sum(self.weights[name] * value for name, value in components.items())
        return _round1(_clamp(100.0 * weighted / total_weight))


class LengthOnlyScoringStrategy:
    """Scores a turn by answer length alone."""

    def score(self, analysis: ResponseAnalysis) -> float:
        return _round1(_clamp(100.0 * LENGTH_VALUES[analysis.response_length]))


def _coerce_analysis(analysis: Any) -> ResponseAnalysis:
    if isinstance(analysis, dict):
        try:
            return ResponseAnalysis.model_validate(analysis)
        except ValidationError as exc:
            raise MalformedAnalysisError(f"malformed turn analysis: {exc}") from exc
    if not isinstance(analysis, ResponseAnalysis):
        raise MalformedAnalysisError(f"expected ResponseAnalysis, got {type(analysis).__name__}")
    # model_construct() skips validation and can leave fields unset
    missing = [name for name in _REQUIRED_FIELDS if getattr(analysis, name, None) is None]
    if missing:
        raise MalformedAnalysisError(f"turn analysis missing fields: {', '.join(missing)}")
    return analysis


def fold_buzzwords(state: ConversationState, turn_index: int, analysis: ResponseAnalysis) -> None:
    """Count each buzzword once for this turn."""

    for term in analysis.buzzwords:
        stat = state.buzzwords.setdefault(term, BuzzwordStat())
        if turn_index in stat.source_turn_indices:
            continue
        stat.count += 1
        stat.source_turn_indices.add(turn_index)


class Grader:
    def __init__(self, strategy: Optional[ScoringStrategy] = None) -> None:
        self.strategy: ScoringStrategy = strategy or WeightedScoringStrategy()

    def grade(
        self,
        turn_index: int,
        analysis: Any,
        current_node: TopicNode,
        state: ConversationState,
        *,
        utterance: str = "",
    ) -> ResponseGrade:
        """Score the turn and record it on ``current_node`` and ``state``."""

        parsed = _coerce_analysis(analysis)
        excerpt = utterance.strip()[:EXCERPT_CHARS]
        timestamp = utc_now()

        grade = ResponseGrade(
            turn_index=turn_index,
            score=self.strategy.score(parsed),
            timestamp=timestamp,
            engagement_level=parsed.engagement_level,
            content_snapshot=excerpt,
            degraded=parsed.degraded,
        )
        current_node.mentions.append(
            Mention(
                turn_index=turn_index,
                timestamp=timestamp,
                response_excerpt=excerpt,
                engagement_level=parsed.engagement_level,
            )
        )
        fold_buzzwords(state, turn_index, parsed)
        state.grades.append(grade)
        return grade


def grade(
    turn_index: int,
    analysis: Any,
    current_node: TopicNode,
    state: ConversationState,
    *,
    utterance: str = "",
) -> ResponseGrade:
    return Grader().grade(turn_index, analysis, current_node, state, utterance=utterance)


def average_score(state: ConversationState) -> float:
    if not state.grades:
        return 0.0
    return _round1(sum(grade.score for grade in state.grades) / len(state.grades))


def score_breakdown(analysis: ResponseAnalysis) -> Dict[str, float]:
    """Component values before weighting, for logs and summaries."""

    return {
        "engagement": ENGAGEMENT_VALUES[analysis.engagement_level],
        "confidence": CONFIDENCE_VALUES[analysis.confidence_level],
        "length": LENGTH_VALUES[analysis.response_length],
        "novelty": _round1(novelty(analysis)),
    }


__all__ = [
    "ScoringStrategy",
    "WeightedScoringStrategy",
    "LengthOnlyScoringStrategy",
    "Grader",
    "grade",
    "fold_buzzwords",
    "average_score",
    "novelty",
    "score_breakdown",
]
