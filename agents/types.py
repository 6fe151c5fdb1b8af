"""Shared type definitions for the turn analysis agents."""
from __future__ import annotations

import json
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator

from graph.tree import normalize_terms

EngagementLevel = Literal["high", "medium", "low"]
ConfidenceLevel = Literal["confident", "uncertain", "struggling"]
ResponseLength = Literal["detailed", "moderate", "brief"]
ExhaustionSignal = Literal["short_answer", "closing_phrase", "dont_know", "vague", "struggling_brief"]


class SkillExtraction(BaseModel):
    name: str = Field(min_length=1)
    evidence: str = ""
    confidence: float = Field(ge=0.0, le=1.0)


class TopicList(BaseModel):
    """Topic extractor output."""

    topics: List[str] = Field(default_factory=list)

    @classmethod
    def from_raw_content(cls, content: str) -> "TopicList":
        # Models often answer with a bare JSON array.
        return cls.model_validate({"topics": json.loads(content)})


class SkillList(BaseModel):
    """Skill extractor output."""

    skills: List[SkillExtraction] = Field(default_factory=list)


class ResponseAnalysis(BaseModel):
    engagement_level: EngagementLevel
    confidence_level: ConfidenceLevel
    response_length: ResponseLength
    new_topics: List[str] = Field(default_factory=list)
    subtopics: List[str] = Field(default_factory=list)
    exhaustion_signals: List[ExhaustionSignal] = Field(default_factory=list)
    buzzwords: List[str] = Field(default_factory=list)
    degraded: bool = False

    @field_validator("new_topics", "subtopics", mode="after")
    @classmethod
    def _dedupe_topics(cls, value: List[str]) -> List[str]:
        return normalize_terms(value)

    @field_validator("buzzwords", mode="after")
    @classmethod
    def _dedupe_buzzwords(cls, value: List[str]) -> List[str]:
        return normalize_terms(value, lower=True)

    @field_validator("exhaustion_signals", mode="before")
    @classmethod
    def _dedupe_signals(cls, value: object) -> object:
        if isinstance(value, (list, tuple)):
            return normalize_terms([str(item) for item in value], lower=True)
        return value


__all__ = [
    "EngagementLevel",
    "ConfidenceLevel",
    "ResponseLength",
    "ExhaustionSignal",
    "SkillExtraction",
    "TopicList",
    "SkillList",
    "ResponseAnalysis",
]
