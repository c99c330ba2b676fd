"""Base classes that every skill inherits from.

Provides keyword-based confidence scoring, result builders, and free-text
request parsing. Concrete skills implement ``metadata``, ``can_handle``
and ``execute``; ``validate_output`` is optional.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

from lessonforge.errors import LLMUnavailableError
from lessonforge.llm.backends import TextGenerator
from lessonforge.llm.client import parse_llm_json_response
from lessonforge.skills.context import SkillContext
from lessonforge.skills.schemas import (
    ErrorCode,
    ResultMetadata,
    SkillError,
    SkillMetadata,
    SkillResult,
)

logger = logging.getLogger(__name__)

# Keyword scoring constants
SINGLE_MATCH_CONFIDENCE = 65
DOUBLE_MATCH_CONFIDENCE = 80
MULTI_MATCH_CONFIDENCE = 90
COVERAGE_BONUS_MAX = 10
COVERAGE_TRIGGER_CAP = 5
MAX_KEYWORD_CONFIDENCE = 98

SUBJECTS = ["math", "science", "english", "history", "social studies"]

_GRADE_RE = re.compile(r"grade\s+(\d+)", re.IGNORECASE)
_ORDINAL_GRADE_RE = re.compile(r"(\d+)(?:st|nd|rd|th)\s+grade", re.IGNORECASE)


def matched_triggers(request: str, triggers: list[str]) -> list[str]:
    """Return the triggers found (case-insensitively) in ``request``."""
    lower_request = request.lower()
    return [t for t in triggers if t and t.lower() in lower_request]


def keyword_confidence(request: str, triggers: list[str]) -> float:
    """Score a request against trigger keywords.

    1 hit -> 65, 2 hits -> 80, 3+ hits -> 90, plus a coverage bonus of
    (hits / min(len(triggers), 5)) * 10, capped at 98. No hits -> 0.
    """
    hits = len(matched_triggers(request, triggers))
    if hits == 0:
        return 0.0

    if hits == 1:
        confidence = SINGLE_MATCH_CONFIDENCE
    elif hits == 2:
        confidence = DOUBLE_MATCH_CONFIDENCE
    else:
        confidence = MULTI_MATCH_CONFIDENCE

    coverage = hits / min(len(triggers), COVERAGE_TRIGGER_CAP)
    return float(min(confidence + coverage * COVERAGE_BONUS_MAX, MAX_KEYWORD_CONFIDENCE))


class BaseSkill(ABC):
    """Abstract base class for all skills.

    Skills are stateless across invocations; the registry owns exactly one
    instance per id.
    """

    @property
    @abstractmethod
    def metadata(self) -> SkillMetadata:
        """Skill metadata (id, name, triggers, capabilities, examples)."""

    @property
    def skill_id(self) -> str:
        return self.metadata.id

    @abstractmethod
    def can_handle(self, user_request: str, context: Optional[SkillContext] = None) -> float:
        """Return a confidence score (0-100) that this skill handles the request."""

    @abstractmethod
    def execute(self, context: SkillContext) -> SkillResult:
        """Run the skill against a context."""

    def validate_output(self, output: Any) -> list[str]:
        """Validate a produced output. Returns a list of error strings."""
        return []

    # --- Confidence helpers ---

    def calculate_keyword_confidence(self, user_request: str, triggers: Optional[list[str]] = None) -> float:
        return keyword_confidence(user_request, triggers or self.metadata.triggers)

    def adjust_confidence(
        self,
        user_request: str,
        base: float,
        *,
        boost_terms: tuple[str, ...] = (),
        boost: float = 0,
        penalty_terms: tuple[str, ...] = (),
        penalty: float = 0,
    ) -> float:
        """Apply domain boosts/penalties on top of a keyword score.

        A zero keyword score stays zero: boosts never rescue a request that
        matched none of the skill's triggers.
        """
        if base <= 0:
            return 0.0
        lower = user_request.lower()
        confidence = base
        if boost_terms and any(term in lower for term in boost_terms):
            confidence = min(confidence + boost, 100)
        if penalty_terms and any(term in lower for term in penalty_terms):
            confidence = max(confidence - penalty, 0)
        return float(confidence)

    # --- Result builders ---

    def build_success_result(
        self,
        output: Any,
        message: str,
        execution_time_ms: Optional[int] = None,
        confidence: float = 95,
        suggested_next_skills: Optional[list[str]] = None,
        suggested_next_steps: Optional[list[str]] = None,
        warnings: Optional[list[str]] = None,
    ) -> SkillResult:
        return SkillResult(
            success=True,
            output=output,
            message=message,
            metadata=ResultMetadata(
                skill_id=self.skill_id,
                execution_time_ms=execution_time_ms,
                confidence=confidence,
                suggested_next_skills=suggested_next_skills or [],
                suggested_next_steps=suggested_next_steps or [],
                warnings=warnings or [],
            ),
        )

    def build_error_result(
        self,
        message: str,
        code: str = ErrorCode.EXECUTION_ERROR.value,
        details: Any = None,
    ) -> SkillResult:
        return SkillResult(
            success=False,
            output=None,
            message=message,
            metadata=ResultMetadata(skill_id=self.skill_id, confidence=0),
            error=SkillError(code=code, message=message, details=details),
            errors=[message],
        )

    # --- Request parsing ---

    def parse_request(self, user_request: str) -> dict[str, Any]:
        """Extract subject, grade levels, difficulty and game type from free text."""
        lower = user_request.lower()
        parsed: dict[str, Any] = {}

        for subject in SUBJECTS:
            if subject in lower:
                parsed["subject"] = subject
                break

        match = _GRADE_RE.search(lower) or _ORDINAL_GRADE_RE.search(lower)
        if match:
            parsed["grade_level"] = [match.group(1)]
        elif "elementary" in lower:
            parsed["grade_level"] = ["1", "2", "3", "4", "5"]
        elif "middle school" in lower:
            parsed["grade_level"] = ["6", "7", "8"]
        elif "high school" in lower:
            parsed["grade_level"] = ["9", "10", "11", "12"]

        if "easy" in lower or "beginner" in lower:
            parsed["difficulty"] = "easy"
        elif any(term in lower for term in ("hard", "advanced", "challenging")):
            parsed["difficulty"] = "hard"
        elif "medium" in lower or "intermediate" in lower:
            parsed["difficulty"] = "medium"

        if "html" in lower:
            parsed["game_type"] = "html"
        elif "react" in lower or "component" in lower:
            parsed["game_type"] = "react"

        return parsed

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.skill_id!r}>"


class LLMSkill(BaseSkill):
    """A skill whose execution calls the generative text service.

    The backend is injected so the same skill runs against Anthropic in
    production and a fake generator in tests.
    """

    system_prompt: str = "You are an expert educational content designer."
    max_tokens: int = 8000

    def __init__(self, backend: Optional[TextGenerator] = None, *, max_tokens: Optional[int] = None):
        self.backend = backend
        if max_tokens is not None:
            self.max_tokens = max_tokens

    def generate_text(self, prompt: str) -> str:
        """Call the backend and return the raw text response.

        Raises:
            LLMUnavailableError: If no backend is configured
        """
        if self.backend is None:
            raise LLMUnavailableError(
                f"Skill {self.skill_id} requires an LLM backend but none is configured"
            )
        result = self.backend.execute_sync(
            self.system_prompt,
            prompt,
            max_tokens=self.max_tokens,
            label=self.skill_id,
        )
        return result.content

    def generate_json(self, prompt: str) -> Any:
        """Call the backend and parse the response as JSON."""
        return parse_llm_json_response(self.generate_text(prompt))

    def run_generation(self, context: SkillContext, started: float, produce) -> SkillResult:
        """Shared execute() body: call ``produce(context)`` and map failures.

        ``produce`` returns a ``(output, message, suggested_next_skills)``
        tuple. LLM unavailability, bad JSON and failed validation become typed
        error results; anything else propagates to the execution wrapper.
        """
        try:
            output, message, next_skills = produce(context)
        except LLMUnavailableError as e:
            return self.build_error_result(e.message, ErrorCode.LLM_UNAVAILABLE.value)
        except ValueError as e:
            logger.warning(f"Skill {self.skill_id} got an unparseable response: {e}")
            return self.build_error_result(
                f"Could not parse generated content: {e}", ErrorCode.EXECUTION_ERROR.value
            )

        problems = self.validate_output(output)
        if problems:
            return self.build_error_result(
                "Generated content failed validation. Please try again.",
                ErrorCode.VALIDATION_FAILED.value,
                details=problems,
            )

        return self.build_success_result(
            output,
            message,
            execution_time_ms=int((time.time() - started) * 1000),
            suggested_next_skills=next_skills,
        )
