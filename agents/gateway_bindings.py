"""Bind LLM-backed extractors into the model registry."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from agents.types import SkillExtraction, SkillList, TopicList
from config.registry import SKILL_KEY, TOPIC_KEY, bind_model
from config.routes import AppConfig, LlmRoute, resolve_registry
from llm_gateway import HttpClient, chat

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"

_SCHEMAS: Dict[str, Type[BaseModel]] = {
    TOPIC_KEY: TopicList,
    SKILL_KEY: SkillList,
}

_PROMPT_FILES = {
    TOPIC_KEY: "topic_extractor.txt",
    SKILL_KEY: "skill_extractor.txt",
}


def _load_prompt(name: str) -> str:
    return (PROMPTS_DIR / name).read_text(encoding="utf-8").strip()


def _topic_caller(route: LlmRoute, prompt: str, client: Optional[HttpClient]) -> Callable[[str], Awaitable[List[str]]]:
    async def _extract(text: str) -> List[str]:
        messages = [
            {"role": "system", "content": prompt},
            {"role": "user", "content": text},
        ]
        result = await chat(messages, TopicList, cfg=route, client=client)
        return list(result.topics)

    return _extract


def _skill_caller(
    route: LlmRoute, prompt: str, client: Optional[HttpClient]
) -> Callable[[str], Awaitable[List[SkillExtraction]]]:
    async def _extract(text: str) -> List[SkillExtraction]:
        messages = [
            {"role": "system", "content": prompt},
            {"role": "user", "content": text},
        ]
        result = await chat(messages, SkillList, cfg=route, client=client)
        return list(result.skills)

    return _extract


def bind_extractors(cfg: AppConfig, *, client: Optional[HttpClient] = None) -> None:
    """Resolve both extractor routes from ``cfg`` and bind them into the registry."""

    resolved = resolve_registry(cfg, _SCHEMAS)
    topic_route, _ = resolved[TOPIC_KEY]
    skill_route, _ = resolved[SKILL_KEY]
    bind_model(TOPIC_KEY, _topic_caller(topic_route, _load_prompt(_PROMPT_FILES[TOPIC_KEY]), client))
    bind_model(SKILL_KEY, _skill_caller(skill_route, _load_prompt(_PROMPT_FILES[SKILL_KEY]), client))
    logger.info("Bound extractors topic_route=%s skill_route=%s", topic_route.name, skill_route.name)


__all__ = ["bind_extractors"]
