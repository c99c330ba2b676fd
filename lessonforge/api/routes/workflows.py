"""Workflow API routes.

Endpoints:
    GET    /v1/workflows/templates          List workflow templates
    POST   /v1/workflows                    Create from a template or custom steps
    GET    /v1/workflows                    List workflows (optional status filter)
    DELETE /v1/workflows/completed          Clear completed workflows
    GET    /v1/workflows/{id}               Workflow snapshot
    GET    /v1/workflows/{id}/progress      Progress for polling
    GET    /v1/workflows/{id}/events        Lifecycle event log
    POST   /v1/workflows/{id}/execute       Start execution in a background thread
    POST   /v1/workflows/{id}/pause         Pause before the next step
    POST   /v1/workflows/{id}/resume        Resume a paused workflow in the background
    POST   /v1/workflows/{id}/cancel        Cancel a workflow
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from lessonforge.api.dependencies import Runtime, get_runtime, http_error
from lessonforge.errors import LessonForgeError
from lessonforge.executor.schemas import (
    StepSpec,
    Workflow,
    WorkflowEvent,
    WorkflowProgress,
    WorkflowStatus,
)
from lessonforge.workflows.schemas import WorkflowTemplateSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["workflows"])


class CreateWorkflowRequest(BaseModel):
    """Either ``template_key`` (+ params) or ``steps`` must be given."""

    template_key: Optional[str] = None
    params: dict[str, Any] = Field(default_factory=dict)
    name: Optional[str] = None
    type: str = Field(default="custom", description="Workflow type for custom steps")
    steps: Optional[list[StepSpec]] = None
    execute: bool = Field(default=False, description="Start execution immediately")


def _not_found(workflow_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Workflow not found: {workflow_id}")


@router.get("/templates", response_model=list[WorkflowTemplateSummary])
async def list_templates(runtime: Runtime = Depends(get_runtime)) -> list[WorkflowTemplateSummary]:
    """List all workflow templates."""
    return runtime.factory.templates.list_all()


@router.post("", status_code=201)
async def create_workflow(body: CreateWorkflowRequest, runtime: Runtime = Depends(get_runtime)):
    """Create a workflow from a template or an explicit step list."""
    if bool(body.template_key) == bool(body.steps):
        raise HTTPException(
            status_code=400, detail="Provide exactly one of 'template_key' or 'steps'"
        )

    try:
        if body.template_key:
            workflow_id = runtime.factory.create_from_template(body.template_key, body.params, body.name)
        else:
            workflow_id = runtime.factory.create_custom_workflow(
                body.name or "Custom workflow", body.type, body.steps
            )
    except LessonForgeError as e:
        raise http_error(e)

    if body.execute:
        runtime.orchestrator.start_execution_thread(workflow_id)

    return {
        "workflow_id": workflow_id,
        "status": WorkflowStatus.RUNNING.value if body.execute else WorkflowStatus.PENDING.value,
        "message": f"Workflow created. Poll GET /v1/workflows/{workflow_id}/progress for progress.",
    }


@router.get("", response_model=list[Workflow])
async def list_workflows(
    status: Optional[WorkflowStatus] = Query(None, description="Filter by status"),
    runtime: Runtime = Depends(get_runtime),
) -> list[Workflow]:
    """List workflows with optional status filtering."""
    if status:
        return runtime.orchestrator.get_workflows_by_status(status)
    return runtime.orchestrator.get_all_workflows()


@router.delete("/completed")
async def clear_completed(runtime: Runtime = Depends(get_runtime)) -> dict[str, int]:
    """Remove all completed workflows."""
    return {"cleared": runtime.orchestrator.clear_completed_workflows()}


@router.get("/{workflow_id}", response_model=Workflow)
async def get_workflow(workflow_id: str, runtime: Runtime = Depends(get_runtime)) -> Workflow:
    workflow = runtime.orchestrator.get_workflow(workflow_id)
    if workflow is None:
        raise _not_found(workflow_id)
    return workflow


@router.get("/{workflow_id}/progress", response_model=WorkflowProgress)
async def get_progress(workflow_id: str, runtime: Runtime = Depends(get_runtime)) -> WorkflowProgress:
    """Primary polling endpoint."""
    progress = runtime.orchestrator.get_progress(workflow_id)
    if progress is None:
        raise _not_found(workflow_id)
    return progress


@router.get("/{workflow_id}/events", response_model=list[WorkflowEvent])
async def get_events(workflow_id: str, runtime: Runtime = Depends(get_runtime)) -> list[WorkflowEvent]:
    if runtime.orchestrator.get_workflow(workflow_id) is None:
        raise _not_found(workflow_id)
    return runtime.orchestrator.get_events(workflow_id)


@router.post("/{workflow_id}/execute", status_code=202)
async def execute_workflow(workflow_id: str, runtime: Runtime = Depends(get_runtime)):
    """Start executing a workflow in a background thread."""
    workflow = runtime.orchestrator.get_workflow(workflow_id)
    if workflow is None:
        raise _not_found(workflow_id)
    if workflow.is_terminal:
        raise HTTPException(
            status_code=409, detail=f"Workflow {workflow_id} is already {workflow.status.value}"
        )
    if workflow.status == WorkflowStatus.RUNNING:
        raise HTTPException(status_code=409, detail=f"Workflow {workflow_id} is already running")

    runtime.orchestrator.start_execution_thread(workflow_id)
    return {
        "workflow_id": workflow_id,
        "status": WorkflowStatus.RUNNING.value,
        "message": f"Execution started. Poll GET /v1/workflows/{workflow_id}/progress for progress.",
    }


@router.post("/{workflow_id}/pause")
async def pause_workflow(workflow_id: str, runtime: Runtime = Depends(get_runtime)):
    if not runtime.orchestrator.pause_workflow(workflow_id):
        workflow = runtime.orchestrator.get_workflow(workflow_id)
        if workflow is None:
            raise _not_found(workflow_id)
        raise HTTPException(
            status_code=409,
            detail=f"Only running workflows can be paused (status: {workflow.status.value})",
        )
    return {"workflow_id": workflow_id, "status": WorkflowStatus.PAUSED.value}


@router.post("/{workflow_id}/resume", status_code=202)
async def resume_workflow(workflow_id: str, runtime: Runtime = Depends(get_runtime)):
    try:
        runtime.orchestrator.start_resume_thread(workflow_id)
    except LessonForgeError as e:
        raise http_error(e)
    return {"workflow_id": workflow_id, "status": WorkflowStatus.RUNNING.value}


@router.post("/{workflow_id}/cancel")
async def cancel_workflow(workflow_id: str, runtime: Runtime = Depends(get_runtime)):
    if not runtime.orchestrator.cancel_workflow(workflow_id):
        workflow = runtime.orchestrator.get_workflow(workflow_id)
        if workflow is None:
            raise _not_found(workflow_id)
        raise HTTPException(
            status_code=409, detail=f"Workflow {workflow_id} is already {workflow.status.value}"
        )
    return {"workflow_id": workflow_id, "status": WorkflowStatus.FAILED.value, "message": "Workflow cancelled"}
