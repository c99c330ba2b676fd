"""Metadata formatter skill - builds a catalog entry for a finished game."""

import json
import time
from typing import Any, Optional

from lessonforge.skills.base import BaseSkill
from lessonforge.skills.context import SkillContext
from lessonforge.skills.library.game_builder import slugify
from lessonforge.skills.schemas import ErrorCode, SkillMetadata, SkillResult

REQUIRED_FIELDS = ("id", "title", "description", "category")

# Catalog arrays the platform keeps per subject
TARGET_ARRAYS = {
    "math": "mathGames",
    "science": "scienceGames",
    "english": "englishGames",
    "history": "historyGames",
    "social studies": "historyGames",
}


class MetadataFormatterSkill(BaseSkill):
    """Format game metadata for catalog integration (no LLM call)."""

    @property
    def metadata(self) -> SkillMetadata:
        return SkillMetadata(
            id="metadata-formatter",
            name="Metadata Formatter",
            description="Format game metadata for catalog integration",
            triggers=["format metadata", "catalog entry", "add to catalog", "publish game", "metadata"],
            capabilities=["Generate catalog entries", "Validate metadata", "Format for integration"],
            examples=["Format metadata for the math game", "Add this game to the catalog"],
        )

    def can_handle(self, user_request: str, context: Optional[SkillContext] = None) -> float:
        confidence = self.calculate_keyword_confidence(user_request)
        return self.adjust_confidence(
            user_request, confidence, boost_terms=("catalog", "metadata"), boost=20
        )

    def execute(self, context: SkillContext) -> SkillResult:
        started = time.time()
        entry = self.generate_catalog_entry(context)
        problems = self.validate_output(entry)
        if problems:
            return self.build_error_result(
                "Invalid catalog entry", ErrorCode.VALIDATION_FAILED.value, problems
            )
        return self.build_success_result(
            entry,
            f"Catalog entry created for '{entry['title']}'",
            execution_time_ms=int((time.time() - started) * 1000),
            suggested_next_steps=[f"Add the entry to {entry['target_array']} in the catalog"],
        )

    def validate_output(self, output: Any) -> list[str]:
        if not isinstance(output, dict):
            return ["Catalog entry must be an object"]
        missing = [f for f in REQUIRED_FIELDS if not output.get(f)]
        return [f"Missing field: {f}" for f in missing]

    def generate_catalog_entry(self, context: SkillContext) -> dict[str, Any]:
        concept, built = self._find_game(context)
        parsed = self.parse_request(context.user_request)

        title = context.input_value("title") or (built or {}).get("title") or concept.get("title") or "Educational Game"
        subject = (concept.get("subject") or parsed.get("subject") or "math").lower()
        game_id = (built or {}).get("game_id") or context.input_value("game_id") or slugify(title)
        game_type = "react" if built and "code" in built else "html"

        entry = {
            "id": game_id,
            "title": title,
            "description": concept.get("description") or context.user_request,
            "category": subject,
            "type": "game",
            "format": game_type,
            "grade_level": concept.get("grade_level") or parsed.get("grade_level") or ["3"],
            "difficulty": concept.get("difficulty") or parsed.get("difficulty") or "medium",
            "skills": concept.get("skills") or ["problem-solving"],
            "estimated_time": concept.get("estimated_time") or "10-15 minutes",
            "featured": False,
            "target_array": TARGET_ARRAYS.get(subject, "mathGames"),
        }
        if game_type == "html":
            entry["file_path"] = f"/games/{game_id}.html"
        else:
            entry["component_name"] = built.get("component_name")
        entry["code_snippet"] = json.dumps(
            {k: entry[k] for k in ("id", "title", "category", "grade_level", "difficulty")}, indent=2
        )
        return entry

    @staticmethod
    def _find_game(context: SkillContext) -> tuple[dict[str, Any], Optional[dict[str, Any]]]:
        """Return (concept, builder output) from step inputs or earlier skills."""
        for key in ("game", "build"):
            built = context.input_value(key)
            if isinstance(built, dict):
                return built.get("concept") or {}, built
        for skill_id in ("game-builder", "react-component"):
            built = context.previous_outputs.get(skill_id)
            if isinstance(built, dict):
                return built.get("concept") or {}, built
        concept = context.input_value("concept")
        if isinstance(concept, dict):
            return concept, None
        return {}, None
