"""Workflow factory - pre-built workflow patterns for common content tasks.

Instantiates templates from the template registry into orchestrator
workflows, and runs batches of game workflows either one after another or
concurrently on a thread pool.
"""

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Optional, Union

from lessonforge.errors import LessonForgeError, WorkflowTemplateNotFoundError
from lessonforge.executor.orchestrator import WorkflowOrchestrator
from lessonforge.executor.schemas import StepSpec
from lessonforge.workflows.registry import WorkflowTemplateRegistry, get_workflow_template_registry
from lessonforge.workflows.schemas import BatchGameIdea, GameFormat, WorkflowTemplate

logger = logging.getLogger(__name__)

DEFAULT_BATCH_WORKERS = 4

PARAM_RE = re.compile(r"\{\{\s*params\.([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def fill_parameters(value: Any, params: dict[str, Any]) -> Any:
    """Substitute ``{{params.name}}`` placeholders throughout ``value``.

    A string that is exactly one placeholder takes the parameter's value
    as-is; embedded placeholders are spliced in as text. Step placeholders
    are left untouched.
    """
    if isinstance(value, str):
        whole = PARAM_RE.fullmatch(value)
        if whole:
            return params.get(whole.group(1))

        def _splice(match: re.Match) -> str:
            param = params.get(match.group(1))
            return param if isinstance(param, str) else json.dumps(param, default=str)

        return PARAM_RE.sub(_splice, value)
    if isinstance(value, dict):
        return {k: fill_parameters(v, params) for k, v in value.items()}
    if isinstance(value, list):
        return [fill_parameters(v, params) for v in value]
    return value


class WorkflowFactory:
    """Creates workflows from templates on a shared orchestrator."""

    def __init__(
        self,
        orchestrator: WorkflowOrchestrator,
        templates: Optional[WorkflowTemplateRegistry] = None,
        *,
        max_workers: int = DEFAULT_BATCH_WORKERS,
    ):
        self.orchestrator = orchestrator
        self.templates = templates or get_workflow_template_registry()
        self.max_workers = max_workers

    def create_from_template(
        self,
        template_key: str,
        params: Optional[dict[str, Any]] = None,
        name: Optional[str] = None,
    ) -> str:
        """Instantiate a template into a new workflow and return its id.

        Raises:
            WorkflowTemplateNotFoundError: Unknown template key
            LessonForgeError: A required parameter is missing
        """
        template = self.templates.get(template_key)
        if template is None:
            raise WorkflowTemplateNotFoundError(template_key)

        merged = {**template.defaults, **{k: v for k, v in (params or {}).items() if v is not None}}
        missing = [p for p in template.required_parameters if merged.get(p) in (None, "", [])]
        if missing:
            raise LessonForgeError(
                f"Template {template_key} requires parameters: {', '.join(missing)}",
                detail={"template_key": template_key, "missing": missing},
            )

        steps = [
            StepSpec(
                skill_id=step.skill_id,
                description=step.description,
                input=fill_parameters(step.input, merged),
            )
            for step in template.steps
        ]
        workflow_name = name or self._workflow_name(template, merged)
        logger.info(f"Creating workflow from template {template_key}: {workflow_name}")
        return self.orchestrator.create_workflow(template.workflow_type, workflow_name, steps)

    def create_html_game_workflow(
        self,
        game_idea: str,
        subject: Optional[str] = None,
        grade_level: Optional[list[str]] = None,
        skills: Optional[list[str]] = None,
    ) -> str:
        """Build Game -> Validate Accessibility -> Format Metadata."""
        return self.create_from_template(
            "html-game",
            {"request": game_idea, "subject": subject, "grade_level": grade_level, "skills": skills},
        )

    def create_react_game_workflow(
        self,
        game_idea: str,
        subject: Optional[str] = None,
        grade_level: Optional[list[str]] = None,
        skills: Optional[list[str]] = None,
    ) -> str:
        """Build Component -> Validate Accessibility -> Format Metadata."""
        return self.create_from_template(
            "react-game",
            {"request": game_idea, "subject": subject, "grade_level": grade_level, "skills": skills},
        )

    def create_validation_workflow(self, code: str, format: Union[GameFormat, str] = GameFormat.HTML) -> str:
        return self.create_from_template(
            "validation-only", {"code": code, "format": GameFormat(format).value}
        )

    def create_custom_workflow(
        self,
        name: str,
        type: str,
        steps: list[Union[StepSpec, dict]],
    ) -> str:
        return self.orchestrator.create_workflow(type, name, steps)

    def create_batch_sequential(self, game_ideas: list[Union[BatchGameIdea, dict]]) -> list[str]:
        """Create and execute one game workflow at a time, in order."""
        workflow_ids = []
        for idea in game_ideas:
            workflow_id = self._create_game_workflow(idea)
            workflow_ids.append(workflow_id)
            self.orchestrator.execute_workflow(workflow_id)
        logger.info(f"Sequential batch finished: {len(workflow_ids)} workflows")
        return workflow_ids

    def create_batch_parallel(self, game_ideas: list[Union[BatchGameIdea, dict]]) -> list[str]:
        """Create all game workflows, then execute them concurrently.

        Each workflow still runs its own steps sequentially. Returns the ids
        in the order of ``game_ideas`` once every workflow has stopped.
        """
        workflow_ids = [self._create_game_workflow(idea) for idea in game_ideas]
        if not workflow_ids:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(workflow_ids))) as executor:
            futures = {
                executor.submit(self.orchestrator.execute_workflow, wid): wid for wid in workflow_ids
            }
            for future in as_completed(futures):
                wid = futures[future]
                try:
                    workflow = future.result()
                    logger.info(f"Batch workflow {wid} finished: {workflow.status.value}")
                except Exception as e:
                    logger.error(f"Batch workflow {wid} raised: {e}", exc_info=True)

        logger.info(f"Parallel batch finished: {len(workflow_ids)} workflows")
        return workflow_ids

    def _create_game_workflow(self, idea: Union[BatchGameIdea, dict]) -> str:
        if not isinstance(idea, BatchGameIdea):
            idea = BatchGameIdea.model_validate(idea)
        create = (
            self.create_html_game_workflow
            if idea.type == GameFormat.HTML
            else self.create_react_game_workflow
        )
        return create(
            idea.description,
            subject=idea.subject,
            grade_level=idea.grade_level or None,
            skills=idea.skills or None,
        )

    @staticmethod
    def _workflow_name(template: WorkflowTemplate, params: dict[str, Any]) -> str:
        try:
            return template.name_template.format(name=template.name, **params)
        except (KeyError, ValueError, TypeError, IndexError):
            return template.name
