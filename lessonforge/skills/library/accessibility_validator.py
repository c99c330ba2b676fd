"""Accessibility validator skill - heuristic WCAG 2.1 AA checks on generated games.

Runs without the LLM: it inspects the HTML (or TSX) produced by an earlier
builder step with a handful of pattern checks and returns a QA report.
"""

import logging
import re
import time
from typing import Any, Optional

from lessonforge.skills.base import BaseSkill
from lessonforge.skills.context import SkillContext
from lessonforge.skills.schemas import ErrorCode, SkillMetadata, SkillResult

logger = logging.getLogger(__name__)

PASSING_SCORE = 70
ISSUE_PENALTY = 25

_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_ALT_RE = re.compile(r"\balt\s*=", re.IGNORECASE)
_BUTTON_RE = re.compile(r"<button\b([^>]*)>(.*?)</button>", re.IGNORECASE | re.DOTALL)
_INPUT_RE = re.compile(r"<input\b([^>]*)>", re.IGNORECASE)
_LABEL_ATTR_RE = re.compile(r"\baria-label(?:ledby)?\s*=|\bid\s*=", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_CLICKABLE_DIV_RE = re.compile(r"<(div|span)\b[^>]*\bon[Cc]lick\s*=", re.IGNORECASE)
_POSITIVE_TABINDEX_RE = re.compile(r"tab[iI]ndex\s*=\s*[\"'{]?\s*[1-9]")
_KEY_HANDLER_RE = re.compile(r"keydown|keyup|onKeyDown|onKeyUp|addEventListener\(\s*[\"']key", re.IGNORECASE)
_OUTLINE_NONE_RE = re.compile(r"outline\s*:\s*(none|0)\b", re.IGNORECASE)
_FOCUS_STYLE_RE = re.compile(r":focus(-visible)?\b", re.IGNORECASE)
_SEMANTIC_RE = re.compile(r"<(main|header|nav|section|article|footer|h1|h2)\b", re.IGNORECASE)


class AccessibilityValidatorSkill(BaseSkill):
    """Validate generated game markup for common accessibility problems."""

    @property
    def metadata(self) -> SkillMetadata:
        return SkillMetadata(
            id="accessibility-validator",
            name="Accessibility Validator",
            description="Validate games for WCAG 2.1 AA compliance",
            triggers=[
                "check accessibility",
                "validate",
                "a11y",
                "wcag",
                "accessibility audit",
                "validate accessibility",
            ],
            capabilities=["WCAG validation", "Semantic HTML checks", "ARIA validation", "Keyboard checks"],
            examples=["Check accessibility of the game", "Validate WCAG compliance"],
        )

    def can_handle(self, user_request: str, context: Optional[SkillContext] = None) -> float:
        confidence = self.calculate_keyword_confidence(user_request)
        return self.adjust_confidence(
            user_request, confidence, boost_terms=("accessibility", "a11y"), boost=25
        )

    def execute(self, context: SkillContext) -> SkillResult:
        started = time.time()
        source = self._find_markup(context)
        if not source:
            return self.build_error_result(
                "No game markup to validate. Provide 'html' or 'code' input, or run a builder skill first.",
                ErrorCode.INVALID_REQUEST.value,
            )

        report = self.validate_markup(source)
        problems = self.validate_output(report)
        if problems:
            return self.build_error_result(
                "Accessibility report failed validation", ErrorCode.VALIDATION_FAILED.value, problems
            )

        status = "Passed" if report["passed"] else "Issues found"
        logger.info(f"Accessibility score {report['score']}/100 ({status})")
        return self.build_success_result(
            report,
            f"Accessibility Score: {report['score']}/100 - {status}",
            execution_time_ms=int((time.time() - started) * 1000),
            suggested_next_skills=["metadata-formatter"],
            warnings=[issue for check in report["checks"] for issue in check["issues"]],
        )

    def validate_output(self, output: Any) -> list[str]:
        if not isinstance(output, dict):
            return ["Report must be an object"]
        score = output.get("score")
        if not isinstance(score, (int, float)) or not 0 <= score <= 100:
            return [f"Score out of range: {score!r}"]
        if not isinstance(output.get("checks"), list):
            return ["Report has no checks"]
        return []

    def validate_markup(self, source: str) -> dict[str, Any]:
        """Run every check against ``source`` and build the QA report."""
        checks = [
            self._check("Semantic HTML", self._semantic_issues(source)),
            self._check("Text Alternatives & ARIA Labels", self._label_issues(source)),
            self._check("Keyboard Navigation", self._keyboard_issues(source)),
            self._check("Focus Visibility", self._focus_issues(source)),
        ]
        score = round(sum(c["score"] for c in checks) / len(checks))
        return {
            "passed": score >= PASSING_SCORE,
            "score": score,
            "checks": checks,
            "summary": f"Accessibility validation complete. Score: {score}/100",
        }

    @staticmethod
    def _check(name: str, issues: list[tuple[str, str]]) -> dict[str, Any]:
        return {
            "name": name,
            "passed": not issues,
            "score": max(100 - ISSUE_PENALTY * len(issues), 0),
            "issues": [i for i, _ in issues],
            "recommendations": [r for _, r in issues],
        }

    @staticmethod
    def _find_markup(context: SkillContext) -> Optional[str]:
        for key in ("html", "code"):
            value = context.input_value(key)
            if isinstance(value, str) and value.strip():
                return value
        for skill_id, key in (("game-builder", "html"), ("react-component", "code")):
            output = context.previous_outputs.get(skill_id)
            if isinstance(output, dict) and isinstance(output.get(key), str):
                return output[key]
        return None

    @staticmethod
    def _semantic_issues(source: str) -> list[tuple[str, str]]:
        issues = []
        is_document = "<html" in source.lower()
        if is_document and not re.search(r"<html\b[^>]*\blang\s*=", source, re.IGNORECASE):
            issues.append(("Document language not declared", 'Add lang="en" to the <html> element'))
        if is_document and "<title" not in source.lower():
            issues.append(("Missing <title>", "Give the page a descriptive title"))
        if not _SEMANTIC_RE.search(source):
            issues.append(("No landmark or heading elements", "Use <main>, <header> and headings"))
        if _CLICKABLE_DIV_RE.search(source):
            issues.append(("Clickable <div>/<span> elements", "Use <button> for interactive controls"))
        return issues

    @staticmethod
    def _label_issues(source: str) -> list[tuple[str, str]]:
        issues = []
        if any(not _ALT_RE.search(tag) for tag in _IMG_RE.findall(source)):
            issues.append(("Images without alt text", "Add alt attributes to every <img>"))
        for attrs, body in _BUTTON_RE.findall(source):
            if not _TAG_RE.sub("", body).strip() and "aria-label" not in attrs.lower():
                issues.append(("Buttons without an accessible name", "Add text or aria-label to icon buttons"))
                break
        for attrs in _INPUT_RE.findall(source):
            if 'type="hidden"' in attrs.lower():
                continue
            if not _LABEL_ATTR_RE.search(attrs):
                issues.append(("Form inputs without labels", "Associate a <label> or aria-label with inputs"))
                break
        return issues

    @staticmethod
    def _keyboard_issues(source: str) -> list[tuple[str, str]]:
        issues = []
        if _POSITIVE_TABINDEX_RE.search(source):
            issues.append(("Positive tabindex values", "Use tabindex 0 or -1 and rely on DOM order"))
        if _CLICKABLE_DIV_RE.search(source) and not _KEY_HANDLER_RE.search(source):
            issues.append(("Mouse-only interactions", "Add keyboard handlers for every click action"))
        return issues

    @staticmethod
    def _focus_issues(source: str) -> list[tuple[str, str]]:
        if _OUTLINE_NONE_RE.search(source) and not _FOCUS_STYLE_RE.search(source):
            return [("Focus outline removed", "Provide a visible :focus-visible style")]
        return []
