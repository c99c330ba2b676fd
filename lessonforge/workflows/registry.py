"""Workflow template registry - loads template definitions from YAML.

Follows the same lazy-load registry pattern as the other registries:
definitions are read from definitions/*.yaml on first access.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml

from .schemas import WorkflowTemplate, WorkflowTemplateSummary

logger = logging.getLogger(__name__)


class WorkflowTemplateRegistry:
    """Registry for workflow templates.

    Loads template definitions from YAML files in the definitions directory.
    """

    def __init__(self, definitions_dir: Optional[Path] = None):
        self.definitions_dir = definitions_dir or (
            Path(__file__).parent / "definitions"
        )
        self._templates: dict[str, WorkflowTemplate] = {}
        self._loaded = False

    def load(self) -> None:
        """Load all template definitions from YAML files."""
        if self._loaded:
            return

        if not self.definitions_dir.exists():
            logger.warning(f"Workflow definitions directory not found: {self.definitions_dir}")
            self._loaded = True
            return

        for yaml_file in sorted(self.definitions_dir.glob("*.yaml")):
            try:
                with open(yaml_file, "r") as f:
                    data = yaml.safe_load(f)
                if data is None:
                    continue
                template = WorkflowTemplate.model_validate(data)
                self._templates[template.template_key] = template
                logger.debug(f"Loaded workflow template: {template.template_key}")
            except Exception as e:
                logger.error(f"Failed to load workflow template {yaml_file}: {e}")

        self._loaded = True
        logger.info(f"Loaded {len(self._templates)} workflow templates")

    def get(self, template_key: str) -> Optional[WorkflowTemplate]:
        """Get a template by key."""
        self.load()
        return self._templates.get(template_key)

    def list_all(self) -> list[WorkflowTemplateSummary]:
        """List all template summaries."""
        self.load()
        return [
            WorkflowTemplateSummary(
                template_key=t.template_key,
                name=t.name,
                description=t.description,
                workflow_type=t.workflow_type,
                step_count=len(t.steps),
                skills=[s.skill_id for s in t.steps],
                required_parameters=t.required_parameters,
            )
            for t in self._templates.values()
        ]

    def get_template_keys(self) -> list[str]:
        self.load()
        return list(self._templates.keys())

    def count(self) -> int:
        self.load()
        return len(self._templates)

    def reload(self) -> None:
        """Force reload all definitions."""
        self._loaded = False
        self._templates.clear()
        self.load()


# Global registry instance
_registry: Optional[WorkflowTemplateRegistry] = None


def get_workflow_template_registry() -> WorkflowTemplateRegistry:
    """Get the global workflow template registry instance."""
    global _registry
    if _registry is None:
        _registry = WorkflowTemplateRegistry()
    return _registry
