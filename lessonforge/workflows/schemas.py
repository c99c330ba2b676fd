"""Workflow template schemas.

A template is a reusable step list for a common content task (build an HTML
game, validate markup, design a curriculum package). Templates are
instantiated into concrete workflows by the factory:

- Template placeholders ``{{params.name}}`` are filled from caller parameters
  at creation time
- Step placeholders ``{{stepN.output.path}}`` are left for the orchestrator,
  which resolves them just before each step runs
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from lessonforge.executor.schemas import StepSpec


class GameFormat(str, Enum):
    HTML = "html"
    REACT = "react"


class WorkflowTemplate(BaseModel):
    """A named, parameterised list of workflow steps."""

    template_key: str = Field(..., description="Unique identifier", examples=["html-game"])
    name: str = Field(..., description="Human-readable name")
    description: str = Field(default="")
    workflow_type: str = Field(..., description="Type recorded on created workflows")
    version: int = Field(default=1)
    required_parameters: list[str] = Field(
        default_factory=list, description="Parameters the caller must supply"
    )
    defaults: dict[str, Any] = Field(
        default_factory=dict, description="Values for parameters the caller may omit"
    )
    name_template: str = Field(
        default="{name}",
        description="Python format string for workflow names; receives all parameters plus 'name'",
    )
    steps: list[StepSpec] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_defaults_not_required(self) -> "WorkflowTemplate":
        overlap = set(self.required_parameters) & set(self.defaults)
        if overlap:
            raise ValueError(f"Parameters both required and defaulted: {sorted(overlap)}")
        return self


class WorkflowTemplateSummary(BaseModel):
    """Lightweight template summary for listing."""

    template_key: str
    name: str
    description: str
    workflow_type: str
    step_count: int
    skills: list[str]
    required_parameters: list[str]


class BatchGameIdea(BaseModel):
    """One game in a batch request."""

    description: str = Field(..., min_length=1)
    type: GameFormat = GameFormat.HTML
    subject: Optional[str] = None
    grade_level: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
