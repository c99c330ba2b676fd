"""Game builder skill - turns a game concept into a single-file HTML game."""

import logging
import re
import time
from typing import Any, Optional

from lessonforge.llm.client import strip_code_fences
from lessonforge.skills.base import BaseSkill, LLMSkill
from lessonforge.skills.context import SkillContext
from lessonforge.skills.schemas import ErrorCode, SkillMetadata, SkillResult

logger = logging.getLogger(__name__)

# Games are served as single files; anything larger is rejected
MAX_GAME_BYTES = 3 * 1024 * 1024

SYSTEM_PROMPT = """You are an expert front-end developer who builds small educational \
browser games. You write a single self-contained HTML5 file with inline CSS and \
JavaScript, no external assets or network requests.

Requirements:
- Start with <!DOCTYPE html> and include <html lang="en">, <head> and <body>
- Semantic HTML, ARIA labels on interactive controls, full keyboard support
- Visible focus styles and WCAG 2.1 AA colour contrast
- Clear instructions, immediate feedback, and a score or progress indicator

Respond with ONLY the HTML document."""


def extract_game_concept(skill: BaseSkill, context: SkillContext) -> Optional[dict[str, Any]]:
    """Find the concept to build: step input, then ideation output, then the request text."""
    concept = context.input_value("concept")
    if isinstance(concept, dict) and concept:
        return concept

    ideation = context.previous_outputs.get("game-ideation")
    if isinstance(ideation, dict):
        concepts = ideation.get("concepts") or []
        if concepts and isinstance(concepts[0], dict):
            return concepts[0]
    elif isinstance(ideation, list) and ideation and isinstance(ideation[0], dict):
        return ideation[0]

    parsed = skill.parse_request(context.user_request)
    if not parsed.get("subject"):
        return None
    return {
        "title": context.input_value("title") or f"{parsed['subject'].title()} Adventure",
        "description": context.user_request,
        "subject": parsed["subject"],
        "grade_level": parsed.get("grade_level") or ["3"],
        "skills": ["problem-solving"],
        "learning_objectives": ["Master concepts"],
        "estimated_time": "10-15 minutes",
        "difficulty": parsed.get("difficulty") or "medium",
        "gameplay_mechanics": [],
    }


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "game"


class GameBuilderSkill(LLMSkill):
    """Build a complete, accessible HTML5 game from a concept."""

    system_prompt = SYSTEM_PROMPT
    max_tokens = 16000

    @property
    def metadata(self) -> SkillMetadata:
        return SkillMetadata(
            id="game-builder",
            name="Game Builder",
            description="Build complete HTML5 educational games from concepts",
            triggers=[
                "build game",
                "create html",
                "implement game",
                "code game",
                "html game",
                "make game",
                "develop game",
                "build the game",
                "create the game",
                "build",
                "build it",
                "build this",
            ],
            capabilities=[
                "Generate single-file HTML5 games",
                "Accessible markup and keyboard controls",
                "Responsive layout",
                "Score and progress tracking",
            ],
            examples=[
                "Build an HTML game for fraction practice",
                "Implement the first game concept",
            ],
        )

    def can_handle(self, user_request: str, context: Optional[SkillContext] = None) -> float:
        confidence = self.calculate_keyword_confidence(user_request)
        confidence = self.adjust_confidence(
            user_request,
            confidence,
            boost_terms=("build", "implement", "code"),
            boost=15,
            penalty_terms=("react", "component", "tsx"),
            penalty=30,
        )
        # Building right after ideation is the usual next move
        if confidence > 0 and context is not None and "game-ideation" in context.previous_outputs:
            confidence = min(confidence + 10, 100)
        return float(confidence)

    def execute(self, context: SkillContext) -> SkillResult:
        started = time.time()
        concept = extract_game_concept(self, context)
        if concept is None:
            return self.build_error_result(
                "No game concept found. Run game ideation first or describe the subject of the game.",
                ErrorCode.INVALID_REQUEST.value,
            )

        def produce(ctx: SkillContext):
            html = strip_code_fences(self.generate_text(self._build_prompt(concept)))
            title = concept.get("title") or "Educational Game"
            output = {
                "game_id": f"{slugify(title)}-{int(time.time())}",
                "title": title,
                "html": html,
                "file_size": len(html.encode("utf-8")),
                "concept": concept,
            }
            return output, f"Built HTML game '{title}' ({output['file_size']:,} bytes)", [
                "accessibility-validator",
                "metadata-formatter",
            ]

        return self.run_generation(context, started, produce)

    def validate_output(self, output: Any) -> list[str]:
        if not isinstance(output, dict) or not output.get("html"):
            return ["No HTML was generated"]
        html = output["html"]
        problems = []
        if "<!doctype html>" not in html.lower():
            problems.append("Missing <!DOCTYPE html>")
        for tag in ("<html", "<head", "<body"):
            if tag not in html.lower():
                problems.append(f"Missing {tag}> element")
        if len(html.encode("utf-8")) >= MAX_GAME_BYTES:
            problems.append("Game file exceeds 3MB")
        return problems

    def _build_prompt(self, concept: dict[str, Any]) -> str:
        lines = [
            f"Build this educational game: {concept.get('title', 'Educational Game')}",
            f"Description: {concept.get('description', '')}",
            f"Subject: {concept.get('subject', '')}",
            f"Grade level: {', '.join(concept.get('grade_level') or [])}",
            f"Difficulty: {concept.get('difficulty', 'medium')}",
        ]
        for label, key in (
            ("Learning objectives", "learning_objectives"),
            ("Gameplay mechanics", "gameplay_mechanics"),
        ):
            items = concept.get(key) or []
            if items:
                lines.append(f"{label}:")
                lines.extend(f"- {item}" for item in items)
        return "\n".join(lines)
