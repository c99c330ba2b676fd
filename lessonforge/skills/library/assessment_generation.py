"""Assessment generation skill - diagnostics, rubrics and quiz questions."""

import time
from typing import Any, Optional

from lessonforge.skills.base import LLMSkill
from lessonforge.skills.context import SkillContext
from lessonforge.skills.schemas import ErrorCode, SkillMetadata, SkillResult

SYSTEM_PROMPT = """You are an assessment design specialist. You create diagnostic \
pre/post tests, project rubrics with clear age-appropriate criteria, and quiz \
questions aligned to the stated learning objectives.

Respond with ONLY a JSON object:
{"assessment_strategy": {"diagnostic": str, "formative": str, "summative": str, "mastery_criteria": str},
 "project_rubrics": [{"title": str, "criteria": [{"name": str, "levels": {"4": str, "3": str, "2": str, "1": str}}]}],
 "quiz_questions": [{"question": str, "type": "multiple_choice|true_false|short_answer",
                     "options": [str], "answer": str, "learning_objective": str}]}"""


class AssessmentGenerationSkill(LLMSkill):
    system_prompt = SYSTEM_PROMPT
    max_tokens = 10000

    @property
    def metadata(self) -> SkillMetadata:
        return SkillMetadata(
            id="assessment-generation",
            name="Assessment Generation Specialist",
            description="Creates diagnostic tests, project rubrics, and quiz questions aligned to objectives",
            triggers=[
                "generate assessments",
                "assessment",
                "diagnostic",
                "rubric",
                "quiz",
                "test questions",
                "create diagnostic test",
            ],
            capabilities=[
                "Create diagnostic pre/post tests",
                "Generate project rubrics with clear criteria",
                "Build question banks for quiz lessons",
                "Align assessments to learning objectives",
            ],
            examples=[
                "Generate quiz questions for the fractions unit",
                "Create rubrics for the science fair project",
            ],
        )

    def can_handle(self, user_request: str, context: Optional[SkillContext] = None) -> float:
        confidence = self.calculate_keyword_confidence(user_request)
        confidence = self.adjust_confidence(
            user_request, confidence, boost_terms=("assessment", "diagnostic", "rubric"), boost=15
        )
        # A curriculum from an earlier step makes assessments the natural follow-up
        if confidence > 0 and context is not None and "curriculum-design" in context.previous_outputs:
            confidence = min(confidence + 10, 100)
        return confidence

    def execute(self, context: SkillContext) -> SkillResult:
        started = time.time()
        curriculum = self._extract_curriculum(context)
        objectives = context.input_value("learning_objectives", [])
        if curriculum is None and not objectives:
            parsed = self.parse_request(context.user_request)
            if not parsed.get("subject"):
                return self.build_error_result(
                    "Nothing to assess. Provide a curriculum, learning objectives, or a subject.",
                    ErrorCode.INVALID_REQUEST.value,
                )

        def produce(ctx: SkillContext):
            data = self.generate_json(self._build_prompt(ctx, curriculum, objectives))
            questions = data.get("quiz_questions", []) if isinstance(data, dict) else []
            rubrics = data.get("project_rubrics", []) if isinstance(data, dict) else []
            message = f"Generated {len(questions)} quiz questions and {len(rubrics)} rubrics"
            return data, message, []

        return self.run_generation(context, started, produce)

    def validate_output(self, output: Any) -> list[str]:
        if not isinstance(output, dict):
            return ["Output must be an object"]
        problems = []
        if not output.get("assessment_strategy"):
            problems.append("Missing assessment_strategy")
        if not isinstance(output.get("project_rubrics"), list):
            problems.append("project_rubrics must be a list")
        if not isinstance(output.get("quiz_questions"), list):
            problems.append("quiz_questions must be a list")
        return problems

    @staticmethod
    def _extract_curriculum(context: SkillContext) -> Optional[dict[str, Any]]:
        curriculum = context.input_value("curriculum")
        if curriculum is None:
            designed = context.previous_outputs.get("curriculum-design")
            if isinstance(designed, dict):
                curriculum = designed.get("curriculum")
        return curriculum if isinstance(curriculum, dict) else None

    @staticmethod
    def _build_prompt(context: SkillContext, curriculum: Optional[dict[str, Any]], objectives: list[str]) -> str:
        lines = [f"Request: {context.user_request}"]
        if curriculum:
            lines.append(f"Course: {curriculum.get('course_title', '')}")
            for lesson in curriculum.get("lessons") or []:
                goals = "; ".join(lesson.get("learning_objectives") or [])
                lines.append(f"- Lesson {lesson.get('order')}: {lesson.get('title')} ({lesson.get('type')}) - {goals}")
        if objectives:
            lines.append("Learning objectives:")
            lines.extend(f"- {o}" for o in objectives)
        return "\n".join(lines)
