import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

from storage.migrate import migrate
from config.settings import settings
from config.registry import SKILL_KEY, TOPIC_KEY, bind_model, unbind_model

VOCABULARY: Dict[str, str] = {
    "kubernetes": "Kubernetes",
    "helm": "Helm",
    "docker": "Docker",
    "terraform": "Terraform",
    "python": "Python",
    "postgres": "Postgres",
    "kafka": "Kafka",
}


class StubExtractors:
    """Keyword-driven stand-ins for the topic and skill extractors."""

    def __init__(self) -> None:
        self.fail: bool = False
        self.delay: float = 0.0
        self.skill_confidence: float = 0.9
        self.calls: List[str] = []

    def _found(self, text: str) -> List[str]:
        lowered = text.lower()
        hits = [(lowered.index(key), name) for key, name in VOCABULARY.items() if key in lowered]
        return [name for _, name in sorted(hits)]

    async def _gate(self, text: str) -> None:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("extractor unavailable")

    async def extract_topics(self, text: str) -> List[str]:
        await self._gate(text)
        return self._found(text)

    async def extract_skills(self, text: str) -> Dict[str, List[dict]]:
        await self._gate(text)
        return {
            "skills": [
                {"name": name, "evidence": name.lower(), "confidence": self.skill_confidence}
                for name in self._found(text)
            ]
        }


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


@pytest.fixture
def stub_extractors():
    stub = StubExtractors()
    bind_model(TOPIC_KEY, stub.extract_topics)
    bind_model(SKILL_KEY, stub.extract_skills)
    try:
        yield stub
    finally:
        unbind_model(TOPIC_KEY)
        unbind_model(SKILL_KEY)


def analysis_for(
    *,
    engagement: str = "medium",
    confidence: str = "confident",
    length: str = "moderate",
    new_topics: Optional[List[str]] = None,
    subtopics: Optional[List[str]] = None,
    signals: Optional[List[str]] = None,
    buzzwords: Optional[List[str]] = None,
    degraded: bool = False,
):
    from agents.types import ResponseAnalysis

    return ResponseAnalysis(
        engagement_level=engagement,
        confidence_level=confidence,
        response_length=length,
        new_topics=new_topics or [],
        subtopics=subtopics or [],
        exhaustion_signals=signals or [],
        buzzwords=buzzwords or [],
        degraded=degraded,
    )


@pytest.fixture
def make_analysis():
    return analysis_for
