"""Curriculum design skill - chapters, lessons and progression for a course."""

import logging
import time
from collections import Counter
from typing import Any, Optional

from lessonforge.skills.base import LLMSkill
from lessonforge.skills.context import SkillContext
from lessonforge.skills.schemas import ErrorCode, SkillMetadata, SkillResult

logger = logging.getLogger(__name__)

LESSON_TYPES = ("VIDEO", "INTERACTIVE", "GAME", "QUIZ", "READING", "PROJECT")
# No single lesson type should dominate a course
MAX_LESSON_TYPE_SHARE = 0.5

SYSTEM_PROMPT = """You are a curriculum design specialist. You turn a course brief into \
a sequenced curriculum: 3-5 chapters, lessons that build on prior knowledge, \
learning objectives written with Bloom's Taxonomy verbs, and XP rewards scaled to \
difficulty.

Respond with ONLY a JSON object:
{"curriculum": {
  "course_title": str, "course_description": str,
  "estimated_total_minutes": int, "total_xp": int,
  "chapters": [{"number": int, "title": str, "description": str, "learning_objectives": [str]}],
  "lessons": [{"order": int, "chapter_number": int, "title": str, "description": str,
               "type": "VIDEO|INTERACTIVE|GAME|QUIZ|READING|PROJECT",
               "learning_objectives": [str], "difficulty": "easy|medium|hard",
               "duration": int, "xp_reward": int}],
  "progression": {"scaffolding": str, "reinforcement": str, "assessment_strategy": str}
}}"""


class CurriculumDesignSkill(LLMSkill):
    """Design learning objectives, lesson sequences and progression for a course."""

    system_prompt = SYSTEM_PROMPT
    max_tokens = 12000

    @property
    def metadata(self) -> SkillMetadata:
        return SkillMetadata(
            id="curriculum-design",
            name="Curriculum Design Specialist",
            description="Designs learning objectives, lesson sequences, and progression strategies for courses",
            triggers=[
                "design curriculum",
                "curriculum",
                "lesson structure",
                "learning objectives",
                "create lesson structure",
                "plan course progression",
                "course outline",
            ],
            capabilities=[
                "Create course title and description",
                "Design chapter structure (3-5 chapters)",
                "Create lesson plans with learning objectives",
                "Assign XP rewards based on difficulty",
                "Define progression strategy with scaffolding",
            ],
            examples=[
                "Design a curriculum for 5th grade fractions",
                "Plan the course progression for middle school science",
            ],
        )

    def can_handle(self, user_request: str, context: Optional[SkillContext] = None) -> float:
        confidence = self.calculate_keyword_confidence(user_request)
        return self.adjust_confidence(
            user_request, confidence, boost_terms=("curriculum", "course"), boost=15
        )

    def execute(self, context: SkillContext) -> SkillResult:
        started = time.time()
        brief = self._extract_brief(context)
        if brief is None:
            return self.build_error_result(
                "Could not determine the course topic. Provide a design brief or name a subject.",
                ErrorCode.INVALID_REQUEST.value,
            )

        def produce(ctx: SkillContext):
            data = self.generate_json(self._build_prompt(brief, ctx))
            curriculum = data.get("curriculum") if isinstance(data, dict) else None
            lessons = (curriculum or {}).get("lessons") or []
            chapters = (curriculum or {}).get("chapters") or []
            message = f"Curriculum designed: {len(lessons)} lessons across {len(chapters)} chapters"
            return data, message, ["assessment-generation", "game-ideation"]

        result = self.run_generation(context, started, produce)
        if result.success:
            warnings = lesson_type_warnings(result.output["curriculum"]["lessons"])
            if warnings:
                result.metadata.warnings.extend(warnings)
        return result

    def validate_output(self, output: Any) -> list[str]:
        if not isinstance(output, dict) or not isinstance(output.get("curriculum"), dict):
            return ["Output must contain a 'curriculum' object"]
        curriculum = output["curriculum"]
        problems = []

        for key in ("course_title", "course_description"):
            if not curriculum.get(key):
                problems.append(f"Missing {key}")
        for key in ("total_xp", "estimated_total_minutes"):
            value = curriculum.get(key)
            if not isinstance(value, (int, float)) or value <= 0:
                problems.append(f"{key} must be positive")

        chapters = curriculum.get("chapters")
        if not isinstance(chapters, list) or not chapters:
            problems.append("No chapters")
        else:
            for chapter in chapters:
                if not isinstance(chapter, dict) or not chapter.get("title"):
                    problems.append("Chapter missing title")
                    break

        lessons = curriculum.get("lessons")
        if not isinstance(lessons, list) or not lessons:
            problems.append("No lessons")
        else:
            for lesson in lessons:
                if not isinstance(lesson, dict):
                    problems.append("Lesson is not an object")
                    break
                label = lesson.get("title") or f"#{lesson.get('order')}"
                if lesson.get("type") not in LESSON_TYPES:
                    problems.append(f"Lesson {label} has invalid type {lesson.get('type')!r}")
                if not lesson.get("learning_objectives"):
                    problems.append(f"Lesson {label} has no learning objectives")
                for key in ("duration", "xp_reward"):
                    value = lesson.get(key)
                    if not isinstance(value, (int, float)) or value <= 0:
                        problems.append(f"Lesson {label} {key} must be positive")

        progression = curriculum.get("progression")
        if not isinstance(progression, dict) or not progression.get("scaffolding"):
            problems.append("Missing progression scaffolding")
        return problems

    def _extract_brief(self, context: SkillContext) -> Optional[dict[str, Any]]:
        brief = context.input_value("design_brief") or context.previous_outputs.get("course-design-brief")
        if isinstance(brief, dict) and brief:
            return brief

        parsed = self.parse_request(context.user_request)
        subject = context.input_value("subject") or parsed.get("subject")
        if not subject:
            return None
        return {
            "topic": context.input_value("topic") or context.user_request,
            "subject": subject,
            "grade_level": context.input_value("grade_level") or parsed.get("grade_level") or [],
            "difficulty": parsed.get("difficulty") or "medium",
        }

    def _build_prompt(self, brief: dict[str, Any], context: SkillContext) -> str:
        lines = ["Design a curriculum from this brief:"]
        for key, value in brief.items():
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            lines.append(f"- {key}: {value}")
        if context.user_request and context.user_request != brief.get("topic"):
            lines.append(f"\nOriginal request: {context.user_request}")
        return "\n".join(lines)


def lesson_type_warnings(lessons: list[dict[str, Any]]) -> list[str]:
    """Warn when one lesson type makes up more than half the course."""
    if not lessons:
        return []
    counts = Counter(lesson.get("type") for lesson in lessons)
    return [
        f"{lesson_type} lessons make up {count}/{len(lessons)} of the course"
        for lesson_type, count in counts.items()
        if count / len(lessons) > MAX_LESSON_TYPE_SHARE
    ]
