"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")

    ROOT_TOPIC_NAME: str = "General Background"

    # Classification collaborators
    EXTRACTOR_TIMEOUT_S: float = Field(default=8.0, gt=0.0)
    MIN_SKILL_CONFIDENCE: float = Field(default=0.5, ge=0.0, le=1.0)

    # Response length heuristics (word counts)
    SHORT_ANSWER_WORDS: int = Field(default=8, ge=1)
    MODERATE_WORDS: int = Field(default=15, ge=1)
    DETAILED_WORDS: int = Field(default=30, ge=1)

    # Traversal thresholds
    RICH_MIN_MENTIONS: int = Field(default=2, ge=1)
    FULLY_PROBED_MENTIONS: int = Field(default=2, ge=1)
    LOOP_BREAKER_TURNS: int = Field(default=3, ge=1)

    # Tree limits
    MAX_TREE_DEPTH: int = Field(default=50, ge=1)
    MAX_TREE_NODES: int = Field(default=10000, ge=1)

    # Scoring weights, must sum to 1
    WEIGHT_ENGAGEMENT: float = Field(default=0.30, ge=0.0, le=1.0)
    WEIGHT_CONFIDENCE: float = Field(default=0.25, ge=0.0, le=1.0)
    WEIGHT_LENGTH: float = Field(default=0.20, ge=0.0, le=1.0)
    WEIGHT_NOVELTY: float = Field(default=0.25, ge=0.0, le=1.0)

    TOP_BUZZWORDS: int = Field(default=50, ge=1)

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")

    @model_validator(mode="after")
    def _check_weights(self) -> "Settings":
        total = self.WEIGHT_ENGAGEMENT + self.WEIGHT_CONFIDENCE + self.WEIGHT_LENGTH + self.WEIGHT_NOVELTY
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"scoring weights must sum to 1.0, got {total:.4f}")
        if not self.MODERATE_WORDS < self.DETAILED_WORDS:
            raise ValueError("MODERATE_WORDS must be lower than DETAILED_WORDS")
        return self


settings = Settings()
