"""Workflow templates and the factory that instantiates them."""

from lessonforge.workflows.factory import WorkflowFactory
from lessonforge.workflows.registry import WorkflowTemplateRegistry, get_workflow_template_registry
from lessonforge.workflows.schemas import (
    BatchGameIdea,
    GameFormat,
    WorkflowTemplate,
    WorkflowTemplateSummary,
)

__all__ = [
    "BatchGameIdea",
    "GameFormat",
    "WorkflowFactory",
    "WorkflowTemplate",
    "WorkflowTemplateRegistry",
    "WorkflowTemplateSummary",
    "get_workflow_template_registry",
]
