"""Exception types raised by the orchestration core.

Each error carries a stable ``error_code`` so the API layer can map it to an
HTTP status without inspecting messages.
"""

from typing import Optional


class LessonForgeError(Exception):
    """Base class for lessonforge errors."""

    error_code: str = "server_error"

    def __init__(self, message: str, *, detail: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class WorkflowNotFoundError(LessonForgeError):
    """No workflow is registered under the given id."""

    error_code = "not_found"

    def __init__(self, workflow_id: str) -> None:
        super().__init__(
            f"Workflow {workflow_id} not found", detail={"workflow_id": workflow_id}
        )
        self.workflow_id = workflow_id


class WorkflowStateError(LessonForgeError):
    """The requested control operation is not valid in the current status."""

    error_code = "conflict"


class SkillNotFoundError(LessonForgeError):
    """No skill is registered under the given id."""

    error_code = "not_found"

    def __init__(self, skill_id: str) -> None:
        super().__init__(f"Skill not found: {skill_id}", detail={"skill_id": skill_id})
        self.skill_id = skill_id


class WorkflowTemplateNotFoundError(LessonForgeError):
    """No workflow template is registered under the given key."""

    error_code = "not_found"

    def __init__(self, template_key: str) -> None:
        super().__init__(
            f"Workflow template not found: {template_key}",
            detail={"template_key": template_key},
        )
        self.template_key = template_key


class LLMUnavailableError(LessonForgeError):
    """The generative text service is not configured or unreachable."""

    error_code = "service_unavailable"


__all__ = [
    "LessonForgeError",
    "WorkflowNotFoundError",
    "WorkflowStateError",
    "SkillNotFoundError",
    "WorkflowTemplateNotFoundError",
    "LLMUnavailableError",
]
