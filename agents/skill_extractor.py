"""Skill extraction through the model registry."""
from __future__ import annotations

from typing import Any, List

from agents.types import SkillExtraction, SkillList
from config.registry import SKILL_KEY, get_model


def _coerce(raw: Any) -> SkillList:
    if isinstance(raw, SkillList):
        return raw
    if isinstance(raw, (list, tuple)):
        return SkillList.model_validate({"skills": list(raw)})
    return SkillList.model_validate(raw)


async def extract_skills(text: str) -> List[SkillExtraction]:
    model = get_model(SKILL_KEY)
    raw = await model(text)
    return list(_coerce(raw).skills)


__all__ = ["extract_skills"]
