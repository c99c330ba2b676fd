import sys
from pathlib import Path
from typing import Any, Callable, Optional
from unittest.mock import patch

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lessonforge.executor.orchestrator import WorkflowOrchestrator  # noqa: E402
from lessonforge.executor.retry import RetryPolicy  # noqa: E402
from lessonforge.llm.backends import LLMCallResult  # noqa: E402
from lessonforge.skills.base import BaseSkill  # noqa: E402
from lessonforge.skills.context import SkillContext  # noqa: E402
from lessonforge.skills.registry import SkillRegistry  # noqa: E402
from lessonforge.skills.schemas import ErrorCode, SkillMetadata, SkillResult  # noqa: E402


VALID_HTML = """<!DOCTYPE html>
<html lang="en">
<head><title>Fraction Pizza</title>
<style>button:focus-visible { outline: 3px solid #005fcc; }</style></head>
<body>
<main>
  <h1>Fraction Pizza</h1>
  <button id="start" aria-label="Start game">Start</button>
  <label for="answer">Answer</label>
  <input id="answer" type="text">
</main>
<script>document.addEventListener("keydown", () => {});</script>
</body>
</html>"""


class FakeBackend:
    """TextGenerator that returns canned responses keyed by skill id."""

    def __init__(self, responses: Optional[dict[str, str]] = None, default: str = "{}"):
        self.responses = dict(responses or {})
        self.default = default
        self.calls: list[dict[str, Any]] = []

    @property
    def model_id(self) -> str:
        return "fake-model"

    def execute_sync(self, system_prompt, user_message, *, max_tokens, label=""):
        self.calls.append(
            {"system": system_prompt, "user": user_message, "max_tokens": max_tokens, "label": label}
        )
        content = self.responses.get(label, self.default)
        return LLMCallResult(
            content=content,
            model_id=self.model_id,
            input_tokens=10,
            output_tokens=20,
            duration_ms=1,
        )


class StubSkill(BaseSkill):
    """Configurable skill for registry, retry and orchestration tests.

    ``failures`` leading calls return a failed result, ``exceptions`` leading
    calls raise, and ``on_execute`` runs before each call with the context.
    ``output`` may be a callable of the context.
    """

    def __init__(
        self,
        skill_id: str,
        triggers: Optional[list[str]] = None,
        *,
        confidence: Optional[float] = None,
        output: Any = None,
        failures: int = 0,
        exceptions: int = 0,
        problems: Optional[list[str]] = None,
        on_execute: Optional[Callable[[SkillContext], None]] = None,
        capabilities: Optional[list[str]] = None,
    ):
        self._metadata = SkillMetadata(
            id=skill_id,
            name=skill_id.replace("-", " ").title(),
            triggers=triggers or [],
            capabilities=capabilities or [],
        )
        self.confidence = confidence
        self.output = output
        self.failures = failures
        self.exceptions = exceptions
        self.problems = problems or []
        self.on_execute = on_execute
        self.calls = 0
        self.contexts: list[SkillContext] = []

    @property
    def metadata(self) -> SkillMetadata:
        return self._metadata

    def can_handle(self, user_request, context=None) -> float:
        if self.confidence is not None:
            return self.confidence
        return self.calculate_keyword_confidence(user_request)

    def execute(self, context: SkillContext) -> SkillResult:
        self.calls += 1
        self.contexts.append(context)
        if self.on_execute:
            self.on_execute(context)
        if self.calls <= self.exceptions:
            raise RuntimeError(f"{self.skill_id} exploded")
        if self.calls <= self.exceptions + self.failures:
            return self.build_error_result(f"{self.skill_id} failed", ErrorCode.EXECUTION_ERROR.value)
        output = self.output(context) if callable(self.output) else self.output
        if output is None:
            output = {"skill": self.skill_id, "inputs": dict(context.inputs)}
        return self.build_success_result(output, f"{self.skill_id} done")

    def validate_output(self, output):
        return list(self.problems)


@pytest.fixture(autouse=True)
def no_sleep():
    """Skip real backoff delays; tests can assert on the recorded sleeps."""
    with patch("lessonforge.executor.retry.time.sleep") as sleep:
        yield sleep


@pytest.fixture
def registry():
    return SkillRegistry()


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_retries=1)


@pytest.fixture
def orchestrator(registry, fast_policy):
    return WorkflowOrchestrator(registry, retry_policy=fast_policy)


@pytest.fixture
def fake_backend():
    return FakeBackend()
