"""Skill registry - holds registered skills and ranks them against requests.

The registry is an explicitly constructed instance, passed to the
orchestrator and to callers. Skills are registered once at startup; after
that the registry is read-mostly and safe for concurrent lookups.
"""

import logging
from typing import Optional

from lessonforge.skills.base import BaseSkill, matched_triggers
from lessonforge.skills.context import SkillContext
from lessonforge.skills.schemas import DetectionConfig, DetectionResult, SkillMetadata

logger = logging.getLogger(__name__)

CHAIN_MIN_CONFIDENCE = 60
DEFAULT_MAX_CHAIN = 3


class SkillRegistry:
    """Registry of skills keyed by stable identifier."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        self._skills: dict[str, BaseSkill] = {}

    # --- Registration ---

    def register_skill(self, skill: BaseSkill) -> None:
        """Register a skill, overwriting any existing skill with the same id."""
        metadata = skill.metadata
        if metadata.id in self._skills:
            logger.warning(f"Skill {metadata.id} is already registered. Overwriting...")
        self._skills[metadata.id] = skill
        logger.info(f"Registered skill: {metadata.id} ({metadata.name})")

    def unregister_skill(self, skill_id: str) -> bool:
        removed = self._skills.pop(skill_id, None) is not None
        if removed:
            logger.info(f"Unregistered skill: {skill_id}")
        return removed

    def clear(self) -> None:
        """Remove all skills (used by tests)."""
        self._skills.clear()
        logger.info("Cleared all skills from registry")

    # --- Lookup ---

    def get_skill(self, skill_id: str) -> Optional[BaseSkill]:
        return self._skills.get(skill_id)

    def has_skill(self, skill_id: str) -> bool:
        return skill_id in self._skills

    def list_skills(self) -> list[BaseSkill]:
        return list(self._skills.values())

    def list_metadata(self) -> list[SkillMetadata]:
        return [s.metadata for s in self._skills.values()]

    def count(self) -> int:
        return len(self._skills)

    def get_skills_by_capability(self, capability: str) -> list[BaseSkill]:
        return [s for s in self._skills.values() if capability in s.metadata.capabilities]

    def get_skills_by_trigger(self, trigger: str) -> list[BaseSkill]:
        lower_trigger = trigger.lower()
        return [
            s
            for s in self._skills.values()
            if any(t.lower() == lower_trigger for t in s.metadata.triggers)
        ]

    def export_state(self) -> dict:
        """Export registry state for debugging and the API."""
        return {
            "skill_count": self.count(),
            "skills": [m.model_dump() for m in self.list_metadata()],
        }

    # --- Detection ---

    def detect_skills(
        self,
        user_request: str,
        context: Optional[SkillContext] = None,
        config: Optional[DetectionConfig] = None,
    ) -> list[DetectionResult]:
        """Rank skills that can handle the request, highest confidence first.

        Only skills scoring at or above the suggestion threshold are returned.
        A skill whose ``can_handle`` raises is logged and skipped.
        """
        config = config or self.config
        results: list[DetectionResult] = []

        for skill in list(self._skills.values()):
            metadata = skill.metadata
            try:
                confidence = float(skill.can_handle(user_request, context))
            except Exception as e:
                logger.error(f"Error detecting skill {metadata.id}: {e}")
                continue

            if confidence < config.suggestion_threshold:
                continue

            matched = matched_triggers(user_request, metadata.triggers)
            results.append(
                DetectionResult(
                    skill_id=metadata.id,
                    confidence=confidence,
                    reason=self._build_detection_reason(metadata, matched),
                    matched_triggers=matched,
                )
            )

        # Stable sort keeps registration order for ties
        results.sort(key=lambda r: r.confidence, reverse=True)

        if results:
            logger.info(
                "Skill detection: "
                + ", ".join(f"{r.skill_id} ({r.confidence:.1f}%)" for r in results)
            )
        else:
            logger.info(f"Skill detection: no candidates for request '{user_request[:80]}'")

        return results

    def get_best_skill(
        self,
        user_request: str,
        context: Optional[SkillContext] = None,
        config: Optional[DetectionConfig] = None,
    ) -> Optional[str]:
        """Return the top skill id only if it meets the auto-select threshold."""
        config = config or self.config
        results = self.detect_skills(user_request, context, config)
        if not results:
            return None

        top = results[0]
        if top.confidence >= config.auto_select_threshold:
            return top.skill_id
        return None

    def get_skill_chain(
        self,
        user_request: str,
        context: Optional[SkillContext] = None,
        max_skills: int = DEFAULT_MAX_CHAIN,
    ) -> list[str]:
        """Return up to ``max_skills`` top-ranked ids with confidence >= 60.

        Intended for requests where no single skill is confidently dominant;
        callers run the chain in ranked order, feeding each output forward.
        """
        results = self.detect_skills(user_request, context)
        return [
            r.skill_id
            for r in results[: max(max_skills, 0)]
            if r.confidence >= CHAIN_MIN_CONFIDENCE
        ]

    @staticmethod
    def _build_detection_reason(metadata: SkillMetadata, matched: list[str]) -> str:
        if not matched:
            return f"{metadata.name} (semantic match)"
        if len(matched) == 1:
            return f'Matched keyword: "{matched[0]}"'
        return f"Matched keywords: {', '.join(matched[:3])}"
