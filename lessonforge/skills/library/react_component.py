"""React component skill - builds a TypeScript React game component."""

import re
import time
from typing import Any, Optional

from lessonforge.llm.client import strip_code_fences
from lessonforge.skills.base import LLMSkill
from lessonforge.skills.context import SkillContext
from lessonforge.skills.library.game_builder import extract_game_concept
from lessonforge.skills.schemas import ErrorCode, SkillMetadata, SkillResult

MIN_COMPONENT_LENGTH = 100

SYSTEM_PROMPT = """You are an expert React and TypeScript developer building \
educational game components for a learning platform.

Write ONE .tsx file that:
- exports a default function component with typed props
  (onComplete?: (score: number) => void)
- keeps all state in hooks, with no external dependencies beyond React
- uses semantic elements, ARIA labels and keyboard handlers
- shows instructions, feedback and a score

Respond with ONLY the code."""


def component_name(title: str) -> str:
    words = re.findall(r"[A-Za-z0-9]+", title)
    name = "".join(w[:1].upper() + w[1:] for w in words)
    if not name or not name[0].isalpha():
        name = f"Game{name}"
    return name


class ReactComponentSkill(LLMSkill):
    system_prompt = SYSTEM_PROMPT
    max_tokens = 12000

    @property
    def metadata(self) -> SkillMetadata:
        return SkillMetadata(
            id="react-component",
            name="React Component Builder",
            description="Generate React game components for platform integration",
            triggers=["react game", "component", "typescript game", "interactive component", "react", "tsx"],
            capabilities=[
                "Generate React components",
                "TypeScript support",
                "Platform integration",
                "State management",
            ],
            examples=["Create a React game for multiplication", "Build a React component for fractions"],
        )

    def can_handle(self, user_request: str, context: Optional[SkillContext] = None) -> float:
        confidence = self.calculate_keyword_confidence(user_request)
        return self.adjust_confidence(
            user_request,
            confidence,
            boost_terms=("react",),
            boost=25,
            penalty_terms=("html",),
            penalty=30,
        )

    def execute(self, context: SkillContext) -> SkillResult:
        started = time.time()
        concept = extract_game_concept(self, context)
        if concept is None:
            return self.build_error_result(
                "No game concept found. Run game ideation first or describe the subject of the game.",
                ErrorCode.INVALID_REQUEST.value,
            )

        def produce(ctx: SkillContext):
            title = concept.get("title") or "Educational Game"
            code = strip_code_fences(self.generate_text(self._build_prompt(concept)))
            name = component_name(title)
            output = {
                "component_name": name,
                "file_name": f"{name}.tsx",
                "title": title,
                "code": code,
                "concept": concept,
            }
            return output, f"Generated React component {name}", [
                "accessibility-validator",
                "metadata-formatter",
            ]

        return self.run_generation(context, started, produce)

    def validate_output(self, output: Any) -> list[str]:
        if not isinstance(output, dict) or not output.get("code"):
            return ["No component code was generated"]
        code = output["code"]
        problems = []
        if "export" not in code:
            problems.append("Component is not exported")
        if "function" not in code and "=>" not in code:
            problems.append("No component function found")
        if len(code) <= MIN_COMPONENT_LENGTH:
            problems.append("Component code is implausibly short")
        return problems

    def _build_prompt(self, concept: dict[str, Any]) -> str:
        objectives = "\n".join(f"- {o}" for o in concept.get("learning_objectives") or [])
        return (
            f"Component for the game: {concept.get('title', 'Educational Game')}\n"
            f"Description: {concept.get('description', '')}\n"
            f"Subject: {concept.get('subject', '')}\n"
            f"Grade level: {', '.join(concept.get('grade_level') or [])}\n"
            f"Difficulty: {concept.get('difficulty', 'medium')}\n"
            f"Learning objectives:\n{objectives}"
        )
