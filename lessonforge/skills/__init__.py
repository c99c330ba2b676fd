"""Skill definitions module."""

from lessonforge.skills.base import BaseSkill, LLMSkill, keyword_confidence
from lessonforge.skills.context import SkillContext
from lessonforge.skills.registry import SkillRegistry
from lessonforge.skills.schemas import (
    AgentResult,
    DetectionConfig,
    DetectionResult,
    ErrorCode,
    SkillMetadata,
    SkillResult,
)

__all__ = [
    "AgentResult",
    "BaseSkill",
    "DetectionConfig",
    "DetectionResult",
    "ErrorCode",
    "LLMSkill",
    "SkillContext",
    "SkillMetadata",
    "SkillRegistry",
    "SkillResult",
    "keyword_confidence",
]
