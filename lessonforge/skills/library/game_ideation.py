"""Game ideation skill - brainstorms curriculum-aligned game concepts."""

import logging
import time
from typing import Any, Optional

from lessonforge.skills.base import LLMSkill
from lessonforge.skills.context import SkillContext
from lessonforge.skills.schemas import ErrorCode, SkillMetadata, SkillResult

logger = logging.getLogger(__name__)

MIN_CONCEPTS = 3
MAX_CONCEPTS = 5
REQUIRED_CONCEPT_FIELDS = ("title", "description", "learning_objectives")

SYSTEM_PROMPT = """You are an expert educational game designer. You create game concepts \
that balance engagement with measurable learning, matched to the student's grade level \
and aligned with common curriculum standards.

Respond with ONLY a JSON array of concept objects. Each object has:
- title (string)
- description (string, 2-3 sentences)
- subject (string)
- grade_level (array of strings)
- skills (array of strings)
- learning_objectives (array of strings)
- gameplay_mechanics (array of strings)
- estimated_time (string, e.g. "10-15 minutes")
- difficulty ("easy" | "medium" | "hard")
- educational_value (integer 1-10)
- engagement_potential (integer 1-10)"""


class GameIdeationSkill(LLMSkill):
    """Generate 3-5 unique game concepts for a subject and grade level."""

    system_prompt = SYSTEM_PROMPT
    max_tokens = 4000

    @property
    def metadata(self) -> SkillMetadata:
        return SkillMetadata(
            id="game-ideation",
            name="Game Ideation",
            description="Brainstorm creative educational game concepts aligned with curriculum standards",
            triggers=[
                "game idea",
                "brainstorm",
                "concept",
                "create game",
                "educational game",
                "game concept",
                "new game",
                "design game",
                "think of a game",
            ],
            capabilities=[
                "Generate 3-5 unique game concepts",
                "Align with curriculum standards",
                "Consider grade-appropriate difficulty",
                "Balance engagement and learning",
            ],
            examples=[
                "Create a math game for 3rd graders",
                "Brainstorm science game ideas",
                "I need game concepts for teaching multiplication",
            ],
        )

    def can_handle(self, user_request: str, context: Optional[SkillContext] = None) -> float:
        confidence = self.calculate_keyword_confidence(user_request)
        confidence = self.adjust_confidence(
            user_request,
            confidence,
            boost_terms=("idea", "brainstorm", "concept"),
            boost=15,
            penalty_terms=("build", "code", "implement"),
            penalty=20,
        )
        return confidence

    def execute(self, context: SkillContext) -> SkillResult:
        started = time.time()
        request = self._parse_game_request(context)
        if not request.get("subject") or not request.get("grade_level"):
            return self.build_error_result(
                "Could not determine subject and grade level from request. Please specify "
                "what subject and grade level the game should be for.",
                ErrorCode.INVALID_REQUEST.value,
            )

        def produce(ctx: SkillContext):
            concepts = self.generate_json(self._build_prompt(request, ctx))
            if isinstance(concepts, dict):
                concepts = concepts.get("concepts", [])
            output = {
                "concepts": concepts,
                "subject": request["subject"],
                "grade_level": request["grade_level"],
            }
            message = f"Generated {len(concepts) if isinstance(concepts, list) else 0} game concepts for {request['subject']}"
            return output, message, ["game-builder", "react-component"]

        return self.run_generation(context, started, produce)

    def validate_output(self, output: Any) -> list[str]:
        if not isinstance(output, dict):
            return ["Output must be an object with a 'concepts' list"]
        concepts = output.get("concepts")
        if not isinstance(concepts, list) or not concepts:
            return ["No game concepts were generated"]

        problems = []
        if len(concepts) > MAX_CONCEPTS:
            problems.append(f"Expected at most {MAX_CONCEPTS} concepts, got {len(concepts)}")
        for i, concept in enumerate(concepts):
            if not isinstance(concept, dict):
                problems.append(f"Concept {i} is not an object")
                continue
            missing = [f for f in REQUIRED_CONCEPT_FIELDS if not concept.get(f)]
            if missing:
                problems.append(f"Concept {i} missing fields: {', '.join(missing)}")
        return problems

    def _parse_game_request(self, context: SkillContext) -> dict[str, Any]:
        parsed = self.parse_request(context.user_request)
        preferences = context.user_preferences

        subject = context.input_value("subject") or parsed.get("subject")
        if not subject and preferences.subjects:
            subject = preferences.subjects[0]

        grade_level = context.input_value("grade_level") or parsed.get("grade_level")
        if not grade_level and preferences.grade_level:
            grade_level = [preferences.grade_level]
        if isinstance(grade_level, str):
            grade_level = [grade_level]

        difficulty = context.input_value("difficulty") or parsed.get("difficulty")
        if not difficulty and preferences.preferred_difficulty:
            difficulty = preferences.preferred_difficulty.value

        return {
            "subject": subject,
            "grade_level": grade_level,
            "difficulty": difficulty or "medium",
            "learning_objectives": context.input_value("learning_objectives", []),
        }

    def _build_prompt(self, request: dict[str, Any], context: SkillContext) -> str:
        lines = [
            f"Create {MIN_CONCEPTS}-{MAX_CONCEPTS} educational game concepts.",
            f"Subject: {request['subject']}",
            f"Grade level: {', '.join(request['grade_level'])}",
            f"Difficulty: {request['difficulty']}",
        ]
        if request["learning_objectives"]:
            lines.append("Learning objectives:")
            lines.extend(f"- {o}" for o in request["learning_objectives"])
        if context.user_preferences.accessibility_requirements:
            lines.append(
                "Accessibility requirements: "
                + ", ".join(context.user_preferences.accessibility_requirements)
            )
        lines.append("")
        lines.append(f"Original request: {context.user_request}")
        return "\n".join(lines)
