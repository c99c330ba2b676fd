"""Application runtime: the registry, orchestrator, factory and agent.

Built once at startup and stored on ``app.state.runtime``; routes receive
it through the ``get_runtime`` dependency so tests can inject their own.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from lessonforge.agent.builder import LearningBuilderAgent
from lessonforge.config import Settings, load_settings
from lessonforge.errors import LessonForgeError
from lessonforge.executor.orchestrator import WorkflowOrchestrator
from lessonforge.llm.backends import TextGenerator
from lessonforge.llm.factory import get_backend
from lessonforge.skills.library import build_default_registry
from lessonforge.skills.registry import SkillRegistry
from lessonforge.workflows.factory import WorkflowFactory
from lessonforge.workflows.registry import WorkflowTemplateRegistry, get_workflow_template_registry

logger = logging.getLogger(__name__)

# error_code -> HTTP status
ERROR_STATUS = {
    "not_found": 404,
    "conflict": 409,
    "service_unavailable": 503,
}


@dataclass
class Runtime:
    settings: Settings
    registry: SkillRegistry
    orchestrator: WorkflowOrchestrator
    factory: WorkflowFactory
    agent: LearningBuilderAgent
    backend: Optional[TextGenerator] = None


def build_runtime(
    settings: Optional[Settings] = None,
    backend: Optional[TextGenerator] = None,
    templates: Optional[WorkflowTemplateRegistry] = None,
) -> Runtime:
    """Wire up every component from settings.

    Without an explicit backend, an Anthropic backend is created only when
    an API key is configured; otherwise LLM skills fail with LLM_UNAVAILABLE.
    """
    settings = settings or load_settings()
    if backend is None and settings.anthropic_api_key:
        backend = get_backend(settings.model, api_key=settings.anthropic_api_key)
    if backend is None:
        logger.warning("No LLM backend configured; content-generation skills will be unavailable")

    registry = build_default_registry(backend, settings.detection_config(), settings.max_tokens)
    retry_policy = settings.retry_policy()
    orchestrator = WorkflowOrchestrator(registry, retry_policy=retry_policy)
    factory = WorkflowFactory(
        orchestrator,
        templates or get_workflow_template_registry(),
        max_workers=settings.batch_workers,
    )
    agent = LearningBuilderAgent(registry, retry_policy=retry_policy)
    return Runtime(
        settings=settings,
        registry=registry,
        orchestrator=orchestrator,
        factory=factory,
        agent=agent,
        backend=backend,
    )


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def http_error(error: LessonForgeError) -> HTTPException:
    """Map a lessonforge error to the matching HTTPException."""
    return HTTPException(status_code=ERROR_STATUS.get(error.error_code, 400), detail=error.message)
