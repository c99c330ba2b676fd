"""Retry/backoff execution wrapper shared by every skill invocation.

Both an exception and a result with ``success=False`` count as a failed
attempt. Failed attempts are followed by an exponential backoff of
``backoff_base * 2 ** attempt`` seconds (attempt starting at 1), except
after the final attempt. Once an attempt is accepted, the skill's own
``validate_output`` is applied once; validation errors are reported on the
result but never trigger another attempt.

``timeout_seconds`` is advisory: an attempt that overruns it is logged but
the call is not interrupted.
"""

import logging
import time
from typing import Any, Optional

from pydantic import BaseModel, Field

from lessonforge.skills.base import BaseSkill
from lessonforge.skills.context import SkillContext
from lessonforge.skills.schemas import ErrorCode, ResultMetadata, SkillError, SkillResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class RetryPolicy(BaseModel):
    """How many times, and how patiently, a skill is retried."""

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1, description="Total attempts")
    backoff_base: float = Field(
        default=1.0, ge=0, description="Seconds multiplied by 2**attempt between attempts"
    )
    timeout_seconds: Optional[float] = Field(
        default=None, description="Advisory per-attempt limit; overruns are only logged"
    )
    retry_on_failure_result: bool = Field(
        default=True,
        description="Retry a returned success=False result the same as an exception",
    )

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self.backoff_base * (2 ** attempt)


def execute_with_retry(
    skill: BaseSkill,
    context: SkillContext,
    max_retries: int = DEFAULT_MAX_RETRIES,
    *,
    policy: Optional[RetryPolicy] = None,
) -> SkillResult:
    """Run ``skill.execute(context)`` with retry, backoff and output validation.

    Args:
        skill: The skill to invoke
        context: Execution context for every attempt
        max_retries: Total attempts when no policy is given
        policy: Full retry policy; overrides ``max_retries``

    Returns:
        The accepted SkillResult (possibly flipped to failure by output
        validation), or a MAX_RETRIES_EXCEEDED failure after exhaustion.
        Never raises for skill failures.
    """
    if policy is None:
        policy = RetryPolicy(max_retries=max_retries)

    skill_id = skill.metadata.id
    started = time.time()
    last_error: Optional[str] = None
    last_code: Optional[str] = None
    last_details: Any = None

    for attempt in range(1, policy.max_retries + 1):
        attempt_started = time.time()
        try:
            result = skill.execute(context)
        except Exception as e:
            last_error = str(e) or type(e).__name__
            last_code = ErrorCode.EXECUTION_ERROR.value
            last_details = {"exception": type(e).__name__}
            logger.error(
                f"[{skill_id}] Attempt {attempt}/{policy.max_retries} raised: {last_error}"
            )
        else:
            _check_timeout(skill_id, attempt, attempt_started, policy)
            if result.success:
                if attempt > 1:
                    logger.info(f"[{skill_id}] Succeeded on attempt {attempt}")
                return _finalize(skill, result, started)

            last_error = result.error.message if result.error else (result.message or "Unknown error")
            last_code = result.error.code if result.error else ErrorCode.EXECUTION_ERROR.value
            last_details = result.error.details if result.error else None
            logger.warning(
                f"[{skill_id}] Attempt {attempt}/{policy.max_retries} failed: {last_error}"
            )
            if not policy.retry_on_failure_result:
                return _stamp_duration(result, started)

        if attempt < policy.max_retries:
            delay = policy.backoff_delay(attempt)
            logger.info(f"[{skill_id}] Retrying in {delay}s")
            time.sleep(delay)

    elapsed_ms = int((time.time() - started) * 1000)
    message = f"Skill {skill_id} failed after {policy.max_retries} attempts: {last_error}"
    logger.error(message)
    return SkillResult(
        success=False,
        output=None,
        message=message,
        metadata=ResultMetadata(skill_id=skill_id, execution_time_ms=elapsed_ms),
        error=SkillError(
            code=ErrorCode.MAX_RETRIES_EXCEEDED.value,
            message=message,
            details={
                "attempts": policy.max_retries,
                "last_error": last_error,
                "last_error_code": last_code,
                "last_error_details": last_details,
            },
        ),
        errors=[last_error] if last_error else [],
    )


def _check_timeout(skill_id: str, attempt: int, attempt_started: float, policy: RetryPolicy) -> None:
    if policy.timeout_seconds is None:
        return
    elapsed = time.time() - attempt_started
    if elapsed > policy.timeout_seconds:
        logger.warning(
            f"[{skill_id}] Attempt {attempt} took {elapsed:.1f}s, "
            f"over the {policy.timeout_seconds}s timeout"
        )


def _stamp_duration(result: SkillResult, started: float) -> SkillResult:
    elapsed_ms = int((time.time() - started) * 1000)
    metadata = result.metadata.model_copy(update={"execution_time_ms": elapsed_ms})
    return result.model_copy(update={"metadata": metadata})


def _finalize(skill: BaseSkill, result: SkillResult, started: float) -> SkillResult:
    """Apply post-hoc output validation and wall-clock duration."""
    result = _stamp_duration(result, started)

    validate = getattr(skill, "validate_output", None)
    if validate is None:
        return result

    try:
        problems = list(validate(result.output) or [])
    except Exception as e:
        logger.error(f"[{skill.metadata.id}] Output validation raised: {e}", exc_info=True)
        problems = [f"Output validation raised: {e}"]
    if not problems:
        return result

    logger.warning(f"[{skill.metadata.id}] Output validation failed: {problems}")
    return result.model_copy(
        update={
            "success": False,
            "errors": list(result.errors) + problems,
            "error": SkillError(
                code=ErrorCode.OUTPUT_VALIDATION_FAILED.value,
                message="Output failed validation",
                details=problems,
            ),
        }
    )
