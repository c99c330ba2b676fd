"""Workflow orchestration: sequences skill invocations and tracks their state.

The orchestrator owns every workflow it creates. For each workflow it:

1. Runs steps strictly in ordinal order, one at a time
2. Resolves each step's input templates against the results accumulated so far
3. Invokes the target skill through the retry wrapper
4. Records step and workflow state transitions and emits lifecycle events
5. Honours pause and cancel requests between steps

The first failing step fails the whole workflow; later steps stay pending.
Workflows are kept in memory until cleared by the caller.
"""

import logging
import threading
import time
import uuid
from datetime import datetime
from typing import Any, Optional, Union

from lessonforge.errors import SkillNotFoundError, WorkflowNotFoundError, WorkflowStateError
from lessonforge.executor.events import EventBus, EventListener
from lessonforge.executor.retry import RetryPolicy, execute_with_retry
from lessonforge.executor.schemas import (
    EventType,
    StepSpec,
    StepStatus,
    Workflow,
    WorkflowError,
    WorkflowEvent,
    WorkflowProgress,
    WorkflowStatus,
    WorkflowStep,
)
from lessonforge.executor.templates import find_references, resolve_templates
from lessonforge.skills.context import SkillContext
from lessonforge.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Workflow cancelled by user"


class WorkflowOrchestrator:
    """Creates, executes and controls multi-step skill workflows."""

    def __init__(
        self,
        registry: SkillRegistry,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()
        self.events = event_bus or EventBus()
        self._workflows: dict[str, Workflow] = {}
        # Guards the workflow map and status transitions across threads
        self._lock = threading.RLock()
        # Workflow IDs currently executing (prevents double execution)
        self._active: set[str] = set()

    # --- Construction ---

    def create_workflow(
        self,
        type: str,
        name: str,
        steps: list[Union[StepSpec, dict]],
    ) -> str:
        """Create a workflow with all steps pending and return its id."""
        workflow_id = f"wf-{uuid.uuid4().hex[:12]}"

        workflow_steps = []
        for ordinal, spec in enumerate(steps, start=1):
            if not isinstance(spec, StepSpec):
                spec = StepSpec.model_validate(spec)
            bad_refs = sorted(r for r in find_references(spec.input) if r >= ordinal)
            if bad_refs:
                logger.warning(
                    f"Workflow {workflow_id} step {ordinal} ({spec.skill_id}) references "
                    f"steps {bad_refs}; those placeholders will not resolve"
                )
            workflow_steps.append(
                WorkflowStep(
                    ordinal=ordinal,
                    skill_id=spec.skill_id,
                    description=spec.description,
                    input=dict(spec.input),
                )
            )

        workflow = Workflow(id=workflow_id, name=name, type=type, steps=workflow_steps)
        with self._lock:
            self._workflows[workflow_id] = workflow

        logger.info(
            f"Created workflow {workflow_id} '{name}' ({type}) with {len(workflow_steps)} steps: "
            + " -> ".join(s.skill_id for s in workflow_steps)
        )
        self._emit(
            workflow_id,
            EventType.STARTED,
            f"Workflow '{name}' created with {len(workflow_steps)} steps",
            data={"total_steps": len(workflow_steps), "type": type},
        )
        return workflow_id

    # --- Execution ---

    def execute_workflow(self, workflow_id: str) -> Workflow:
        """Run the workflow's remaining steps in order on the calling thread.

        Returns a snapshot of the workflow when execution stops (completed,
        failed, or paused).

        Raises:
            WorkflowNotFoundError: Unknown workflow id
            WorkflowStateError: The workflow already completed or failed
        """
        with self._lock:
            workflow = self._require(workflow_id)
            if workflow_id in self._active:
                logger.warning(
                    f"Workflow {workflow_id} is already executing, ignoring duplicate execute"
                )
                return workflow.model_copy(deep=True)
            if workflow.is_terminal:
                raise WorkflowStateError(
                    f"Workflow {workflow_id} is already {workflow.status.value}",
                    detail={"workflow_id": workflow_id, "status": workflow.status.value},
                )
            self._active.add(workflow_id)
            workflow.status = WorkflowStatus.RUNNING
            if workflow.started_at is None:
                workflow.started_at = datetime.utcnow()

        logger.info(f"Executing workflow {workflow_id} ({workflow.total_steps} steps)")
        try:
            while True:
                self._run_steps(workflow)
                # Stop check and leaving the active set share one locked block
                with self._lock:
                    if workflow.status != WorkflowStatus.RUNNING:
                        self._active.discard(workflow_id)
                        break
                logger.info(f"Workflow {workflow_id} resumed while stopping, continuing")
        except BaseException:
            with self._lock:
                self._active.discard(workflow_id)
            raise

        return self.get_workflow(workflow_id) or workflow.model_copy(deep=True)

    def start_execution_thread(self, workflow_id: str) -> threading.Thread:
        """Spawn a background thread to execute the workflow.

        Returns the thread (for testing). Callers poll progress or subscribe
        to events rather than joining.
        """
        self._require(workflow_id)
        thread = threading.Thread(
            target=self._execute_in_background,
            args=(workflow_id,),
            name=f"workflow-{workflow_id}",
            daemon=True,
        )
        thread.start()
        logger.info(f"Started execution thread for workflow {workflow_id}")
        return thread

    def start_resume_thread(self, workflow_id: str) -> threading.Thread:
        """Validate that the workflow is paused, then resume it in the background.

        Raises:
            WorkflowNotFoundError: Unknown workflow id
            WorkflowStateError: The workflow is not paused
        """
        with self._lock:
            workflow = self._require(workflow_id)
            if workflow.status != WorkflowStatus.PAUSED:
                raise WorkflowStateError(
                    f"Workflow {workflow_id} is {workflow.status.value}, not paused",
                    detail={"workflow_id": workflow_id, "status": workflow.status.value},
                )
        thread = threading.Thread(
            target=self._execute_in_background,
            args=(workflow_id, self.resume_workflow),
            name=f"workflow-resume-{workflow_id}",
            daemon=True,
        )
        thread.start()
        logger.info(f"Started resume thread for workflow {workflow_id}")
        return thread

    def _execute_in_background(self, workflow_id: str, run=None) -> None:
        try:
            (run or self.execute_workflow)(workflow_id)
        except WorkflowStateError as e:
            logger.warning(f"Background execution of {workflow_id} skipped: {e}")
        except Exception as e:
            logger.error(f"Background execution of {workflow_id} failed: {e}", exc_info=True)

    def _run_steps(self, workflow: Workflow) -> None:
        for index, step in enumerate(workflow.steps):
            if step.status == StepStatus.COMPLETED:
                continue

            with self._lock:
                if workflow.status != WorkflowStatus.RUNNING:
                    logger.info(
                        f"Workflow {workflow.id} stopped before step {step.ordinal} "
                        f"(status: {workflow.status.value})"
                    )
                    return
                workflow.current_step = index
                step.status = StepStatus.RUNNING
                step.started_at = datetime.utcnow()

            logger.info(
                f"[{workflow.id}] Step {step.ordinal}/{workflow.total_steps}: "
                f"{step.skill_id} - {step.description}"
            )
            self._emit(
                workflow.id,
                EventType.STEP_STARTED,
                f"Step {step.ordinal} started: {step.description or step.skill_id}",
                step=step.ordinal,
            )

            if not self._run_step(workflow, step):
                return

        with self._lock:
            if workflow.status != WorkflowStatus.RUNNING:
                return
            workflow.status = WorkflowStatus.COMPLETED
            workflow.completed_at = datetime.utcnow()
            workflow.total_duration_ms = _duration_ms(workflow.started_at, workflow.completed_at)

        logger.info(f"Workflow {workflow.id} completed in {workflow.total_duration_ms}ms")
        self._emit(
            workflow.id,
            EventType.COMPLETED,
            f"Workflow '{workflow.name}' completed",
            data={"total_duration_ms": workflow.total_duration_ms},
        )

    def _run_step(self, workflow: Workflow, step: WorkflowStep) -> bool:
        """Execute one step. Returns True if it completed successfully."""
        started = time.time()
        recoverable = True
        try:
            resolved = resolve_templates(step.input, workflow.results, step.ordinal)
            step.resolved_input = resolved

            skill = self.registry.get_skill(step.skill_id)
            if skill is None:
                recoverable = False
                raise SkillNotFoundError(step.skill_id)

            context = self._build_context(workflow, step, resolved)
            result = execute_with_retry(skill, context, policy=self.retry_policy)
        except Exception as e:
            logger.error(f"[{workflow.id}] Step {step.ordinal} raised: {e}", exc_info=True)
            self._fail_step(workflow, step, str(e) or type(e).__name__, started, recoverable)
            return False

        if not result.success:
            message = "; ".join(result.errors) or result.message or "Step failed"
            self._fail_step(workflow, step, message, started, recoverable)
            return False

        with self._lock:
            step.status = StepStatus.COMPLETED
            step.output = result.output
            step.completed_at = datetime.utcnow()
            step.duration_ms = int((time.time() - started) * 1000)
            workflow.results[step.ordinal] = result.output

        logger.info(f"[{workflow.id}] Step {step.ordinal} completed in {step.duration_ms}ms")
        self._emit(
            workflow.id,
            EventType.STEP_COMPLETED,
            f"Step {step.ordinal} completed: {step.description or step.skill_id}",
            step=step.ordinal,
            data={"duration_ms": step.duration_ms, "message": result.message},
        )
        return True

    def _fail_step(
        self,
        workflow: Workflow,
        step: WorkflowStep,
        message: str,
        started: float,
        recoverable: bool,
    ) -> None:
        with self._lock:
            step.status = StepStatus.FAILED
            step.error = message
            step.completed_at = datetime.utcnow()
            step.duration_ms = int((time.time() - started) * 1000)
            # A cancel that landed while the step ran already failed the workflow
            already_failed = workflow.status == WorkflowStatus.FAILED
            if not already_failed:
                workflow.status = WorkflowStatus.FAILED
                workflow.completed_at = datetime.utcnow()
                workflow.total_duration_ms = _duration_ms(workflow.started_at, workflow.completed_at)
                workflow.errors.append(
                    WorkflowError(
                        step=step.ordinal,
                        skill_id=step.skill_id,
                        message=message,
                        recoverable=recoverable,
                    )
                )

        logger.error(f"[{workflow.id}] Step {step.ordinal} ({step.skill_id}) failed: {message}")
        self._emit(
            workflow.id,
            EventType.STEP_FAILED,
            f"Step {step.ordinal} failed: {message}",
            step=step.ordinal,
            data={"skill_id": step.skill_id, "error": message},
        )
        if not already_failed:
            self._emit(
                workflow.id,
                EventType.FAILED,
                f"Workflow '{workflow.name}' failed at step {step.ordinal}",
                step=step.ordinal,
                data={"error": message},
            )

    def _build_context(self, workflow: Workflow, step: WorkflowStep, resolved: dict[str, Any]) -> SkillContext:
        request = resolved.get("request")
        if not isinstance(request, str) or not request:
            request = step.description or step.skill_id

        previous_outputs = {
            s.skill_id: s.output
            for s in workflow.steps
            if s.ordinal < step.ordinal and s.status == StepStatus.COMPLETED
        }
        return SkillContext.build(
            request,
            previous_outputs=previous_outputs,
            inputs=resolved,
            conversation_id=workflow.id,
        )

    # --- Control ---

    def pause_workflow(self, workflow_id: str) -> bool:
        """Request a pause; takes effect before the next step starts."""
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None or workflow.status != WorkflowStatus.RUNNING:
                return False
            workflow.status = WorkflowStatus.PAUSED
        logger.info(f"Workflow {workflow_id} paused")
        return True

    def resume_workflow(self, workflow_id: str) -> Workflow:
        """Continue a paused workflow from its first non-completed step.

        Raises:
            WorkflowNotFoundError: Unknown workflow id
            WorkflowStateError: The workflow is not paused
        """
        with self._lock:
            workflow = self._require(workflow_id)
            if workflow.status != WorkflowStatus.PAUSED:
                raise WorkflowStateError(
                    f"Workflow {workflow_id} is {workflow.status.value}, not paused",
                    detail={"workflow_id": workflow_id, "status": workflow.status.value},
                )
            if workflow_id in self._active:
                # Still finishing the step it was paused during; keep going
                workflow.status = WorkflowStatus.RUNNING
                logger.info(f"Workflow {workflow_id} resumed before pause took effect")
                return workflow.model_copy(deep=True)

        logger.info(f"Resuming workflow {workflow_id}")
        return self.execute_workflow(workflow_id)

    def cancel_workflow(self, workflow_id: str) -> bool:
        """Force a non-terminal workflow to failed with a cancellation error."""
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None or workflow.is_terminal:
                return False
            workflow.status = WorkflowStatus.FAILED
            workflow.completed_at = datetime.utcnow()
            if workflow.started_at is not None:
                workflow.total_duration_ms = _duration_ms(workflow.started_at, workflow.completed_at)
            workflow.errors.append(
                WorkflowError(
                    step=workflow.current_step + 1 if workflow.steps else None,
                    message=CANCELLED_MESSAGE,
                    recoverable=False,
                )
            )

        logger.info(f"Workflow {workflow_id} cancelled")
        self._emit(workflow_id, EventType.FAILED, CANCELLED_MESSAGE, data={"cancelled": True})
        return True

    # --- Queries ---

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Snapshot of a workflow, or None if unknown."""
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            return workflow.model_copy(deep=True) if workflow else None

    def get_progress(self, workflow_id: str) -> Optional[WorkflowProgress]:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None:
                return None
            return _progress_of(workflow)

    def get_all_workflows(self) -> list[Workflow]:
        with self._lock:
            return [w.model_copy(deep=True) for w in self._workflows.values()]

    def get_workflows_by_status(self, status: Union[WorkflowStatus, str]) -> list[Workflow]:
        status = WorkflowStatus(status)
        with self._lock:
            return [w.model_copy(deep=True) for w in self._workflows.values() if w.status == status]

    def clear_completed_workflows(self) -> int:
        """Remove completed workflows and their listeners. Returns the count."""
        with self._lock:
            completed = [
                wid for wid, w in self._workflows.items() if w.status == WorkflowStatus.COMPLETED
            ]
            for wid in completed:
                del self._workflows[wid]
                self.events.drop(wid)
        if completed:
            logger.info(f"Cleared {len(completed)} completed workflows")
        return len(completed)

    # --- Events ---

    def add_event_listener(self, workflow_id: str, listener: EventListener) -> None:
        self.events.subscribe(workflow_id, listener)

    def remove_event_listener(self, workflow_id: str, listener: EventListener) -> bool:
        return self.events.unsubscribe(workflow_id, listener)

    def get_events(self, workflow_id: str) -> list[WorkflowEvent]:
        return self.events.events(workflow_id)

    def _emit(
        self,
        workflow_id: str,
        type: EventType,
        message: str,
        step: Optional[int] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        self.events.publish(
            WorkflowEvent(workflow_id=workflow_id, type=type, message=message, step=step, data=data)
        )

    def _require(self, workflow_id: str) -> Workflow:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow


def _duration_ms(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    if start is None or end is None:
        return None
    return int((end - start).total_seconds() * 1000)


def _progress_of(workflow: Workflow) -> WorkflowProgress:
    total = workflow.total_steps
    completed = workflow.completed_steps
    percent = (completed / total * 100) if total else (100.0 if workflow.status == WorkflowStatus.COMPLETED else 0.0)

    ordinal: Optional[int] = None
    if workflow.status == WorkflowStatus.PENDING:
        activity = "Idle"
    elif workflow.status == WorkflowStatus.COMPLETED:
        ordinal = total or None
        activity = "Completed"
    else:
        ordinal = workflow.current_step + 1 if total else None
        step = workflow.steps[workflow.current_step] if total else None
        label = (step.description or step.skill_id) if step else ""
        if workflow.status == WorkflowStatus.RUNNING:
            activity = label
        elif workflow.status == WorkflowStatus.PAUSED:
            activity = f"Paused at step {ordinal}: {label}"
        else:
            last_error = workflow.errors[-1].message if workflow.errors else "unknown error"
            activity = f"Failed: {last_error}"

    return WorkflowProgress(
        workflow_id=workflow.id,
        current_step_ordinal=ordinal,
        total_steps=total,
        completed_steps=completed,
        percent_complete=percent,
        status=workflow.status,
        current_activity=activity,
    )
