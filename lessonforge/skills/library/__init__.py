"""Built-in content skills and the default registry."""

import logging
from typing import Optional

from lessonforge.llm.backends import TextGenerator
from lessonforge.skills.base import BaseSkill
from lessonforge.skills.library.accessibility_validator import AccessibilityValidatorSkill
from lessonforge.skills.library.assessment_generation import AssessmentGenerationSkill
from lessonforge.skills.library.curriculum_design import CurriculumDesignSkill
from lessonforge.skills.library.game_builder import GameBuilderSkill
from lessonforge.skills.library.game_ideation import GameIdeationSkill
from lessonforge.skills.library.metadata_formatter import MetadataFormatterSkill
from lessonforge.skills.library.react_component import ReactComponentSkill
from lessonforge.skills.registry import SkillRegistry
from lessonforge.skills.schemas import DetectionConfig

logger = logging.getLogger(__name__)


def default_skills(
    backend: Optional[TextGenerator] = None,
    max_tokens: Optional[int] = None,
) -> list[BaseSkill]:
    """Instantiate every built-in skill, wiring LLM skills to ``backend``.

    ``max_tokens`` overrides each LLM skill's own response budget.
    """
    return [
        GameIdeationSkill(backend, max_tokens=max_tokens),
        GameBuilderSkill(backend, max_tokens=max_tokens),
        ReactComponentSkill(backend, max_tokens=max_tokens),
        AccessibilityValidatorSkill(),
        MetadataFormatterSkill(),
        AssessmentGenerationSkill(backend, max_tokens=max_tokens),
        CurriculumDesignSkill(backend, max_tokens=max_tokens),
    ]


def build_default_registry(
    backend: Optional[TextGenerator] = None,
    config: Optional[DetectionConfig] = None,
    max_tokens: Optional[int] = None,
) -> SkillRegistry:
    """Create a registry with all built-in skills registered."""
    registry = SkillRegistry(config)
    for skill in default_skills(backend, max_tokens):
        registry.register_skill(skill)
    logger.info(
        f"Default skill registry ready: {registry.count()} skills "
        f"(LLM backend: {backend.model_id if backend else 'none'})"
    )
    return registry


__all__ = [
    "AccessibilityValidatorSkill",
    "AssessmentGenerationSkill",
    "CurriculumDesignSkill",
    "GameBuilderSkill",
    "GameIdeationSkill",
    "MetadataFormatterSkill",
    "ReactComponentSkill",
    "build_default_registry",
    "default_skills",
]
