"""Tests for workflow templates, the template registry and WorkflowFactory."""

import pytest

from conftest import VALID_HTML, FakeBackend, StubSkill
from lessonforge.errors import LessonForgeError, WorkflowTemplateNotFoundError
from lessonforge.executor.schemas import WorkflowStatus
from lessonforge.skills.library import (
    AccessibilityValidatorSkill,
    GameBuilderSkill,
    MetadataFormatterSkill,
)
from lessonforge.workflows.factory import WorkflowFactory, fill_parameters
from lessonforge.workflows.registry import WorkflowTemplateRegistry
from lessonforge.workflows.schemas import BatchGameIdea, GameFormat, WorkflowTemplate


@pytest.fixture
def templates():
    return WorkflowTemplateRegistry()


@pytest.fixture
def factory(orchestrator, templates):
    return WorkflowFactory(orchestrator, templates, max_workers=2)


def _register_game_stubs(registry):
    registry.register_skill(StubSkill("game-builder", output={"game_id": "g-1", "html": "<html></html>"}))
    registry.register_skill(StubSkill("react-component", output={"component_name": "G", "code": "export"}))
    registry.register_skill(StubSkill("accessibility-validator", output={"score": 100}))
    registry.register_skill(StubSkill("metadata-formatter", output={"id": "g-1"}))


class TestTemplateRegistry:
    def test_builtin_templates_load(self, templates):
        assert sorted(templates.get_template_keys()) == [
            "curriculum-package",
            "html-game",
            "react-game",
            "validation-only",
        ]
        summary = {t.template_key: t for t in templates.list_all()}
        assert summary["html-game"].skills == [
            "game-builder",
            "accessibility-validator",
            "metadata-formatter",
        ]
        assert summary["html-game"].required_parameters == ["request"]

    def test_missing_directory_is_empty(self, tmp_path):
        registry = WorkflowTemplateRegistry(tmp_path / "nope")
        assert registry.count() == 0
        assert registry.get("html-game") is None

    def test_invalid_files_are_skipped_and_reload_picks_up_changes(self, tmp_path):
        (tmp_path / "good.yaml").write_text(
            "template_key: one\nname: One\nworkflow_type: custom\nsteps:\n  - skill_id: a\n"
        )
        (tmp_path / "bad.yaml").write_text("template_key: broken\nname: Broken\n")
        registry = WorkflowTemplateRegistry(tmp_path)
        assert registry.get_template_keys() == ["one"]

        (tmp_path / "two.yaml").write_text(
            "template_key: two\nname: Two\nworkflow_type: custom\nsteps:\n  - skill_id: b\n"
        )
        assert registry.count() == 1
        registry.reload()
        assert registry.count() == 2

    def test_required_and_default_overlap_rejected(self):
        with pytest.raises(ValueError):
            WorkflowTemplate(
                template_key="x",
                name="x",
                workflow_type="custom",
                required_parameters=["request"],
                defaults={"request": "hi"},
                steps=[{"skill_id": "a"}],
            )


class TestFillParameters:
    def test_whole_placeholder_keeps_type(self):
        assert fill_parameters("{{params.grade_level}}", {"grade_level": ["3", "4"]}) == ["3", "4"]

    def test_embedded_placeholders(self):
        params = {"subject": "math", "grades": ["3"]}
        assert fill_parameters("Games for {{params.subject}}", params) == "Games for math"
        assert fill_parameters("Grades {{params.grades}}", params) == 'Grades ["3"]'

    def test_step_placeholders_left_alone(self):
        value = {"html": "{{step1.output.html}}", "subject": "{{params.subject}}"}
        assert fill_parameters(value, {"subject": "math"}) == {
            "html": "{{step1.output.html}}",
            "subject": "math",
        }


class TestCreateFromTemplate:
    def test_html_game_workflow_shape(self, factory, orchestrator):
        workflow_id = factory.create_html_game_workflow("Fraction pizza game", subject="science")
        workflow = orchestrator.get_workflow(workflow_id)

        assert workflow.type == "html-game"
        assert workflow.name == "Create HTML Game: Fraction pizza game"
        assert [s.skill_id for s in workflow.steps] == [
            "game-builder",
            "accessibility-validator",
            "metadata-formatter",
        ]
        concept = workflow.steps[0].input["concept"]
        assert concept["subject"] == "science"
        assert concept["grade_level"] == ["3"]
        assert concept["description"] == "Fraction pizza game"
        assert workflow.steps[1].input["html"] == "{{step1.output.html}}"

    def test_react_game_workflow(self, factory, orchestrator):
        workflow_id = factory.create_react_game_workflow("Planet sorter", grade_level=["5"])
        workflow = orchestrator.get_workflow(workflow_id)

        assert workflow.type == "react-game"
        assert workflow.steps[0].skill_id == "react-component"
        assert workflow.steps[0].input["concept"]["grade_level"] == ["5"]
        assert workflow.steps[1].input["code"] == "{{step1.output.code}}"

    def test_validation_workflow(self, factory, orchestrator):
        workflow_id = factory.create_validation_workflow("<div></div>", GameFormat.REACT)
        workflow = orchestrator.get_workflow(workflow_id)

        assert workflow.name == "Validate react content"
        assert workflow.steps[0].input["code"] == "<div></div>"
        assert workflow.steps[0].input["format"] == "react"

    def test_name_override(self, factory, orchestrator):
        workflow_id = factory.create_from_template("html-game", {"request": "x"}, name="Custom name")
        assert orchestrator.get_workflow(workflow_id).name == "Custom name"

    def test_unknown_template(self, factory):
        with pytest.raises(WorkflowTemplateNotFoundError):
            factory.create_from_template("nope")

    def test_missing_required_parameter(self, factory):
        with pytest.raises(LessonForgeError) as exc:
            factory.create_from_template("curriculum-package", {"request": "fractions unit"})
        assert exc.value.detail["missing"] == ["subject"]

    def test_custom_workflow(self, factory, orchestrator):
        workflow_id = factory.create_custom_workflow("Mine", "custom", [{"skill_id": "a"}])
        assert orchestrator.get_workflow(workflow_id).type == "custom"


class TestTemplateExecution:
    def test_html_game_end_to_end_with_real_skills(self, registry, orchestrator, factory):
        backend = FakeBackend({"game-builder": VALID_HTML})
        registry.register_skill(GameBuilderSkill(backend))
        registry.register_skill(AccessibilityValidatorSkill())
        registry.register_skill(MetadataFormatterSkill())

        workflow_id = factory.create_html_game_workflow("Fraction pizza game")
        workflow = orchestrator.execute_workflow(workflow_id)

        assert workflow.status == WorkflowStatus.COMPLETED
        assert workflow.results[1]["html"] == VALID_HTML
        assert workflow.results[2]["score"] == 100
        entry = workflow.results[3]
        assert entry["id"] == workflow.results[1]["game_id"]
        assert entry["category"] == "math"
        assert entry["format"] == "html"
        assert entry["file_path"] == f"/games/{entry['id']}.html"
        assert backend.calls[0]["label"] == "game-builder"

    def test_curriculum_package_threads_nested_outputs(self, registry, orchestrator, factory):
        curriculum = {"chapters": [{"learning_objectives": ["add fractions"]}]}
        registry.register_skill(StubSkill("curriculum-design", output={"curriculum": curriculum}))
        assessment = StubSkill("assessment-generation", output={"quiz_questions": []})
        ideation = StubSkill("game-ideation", output={"concepts": []})
        registry.register_skill(assessment)
        registry.register_skill(ideation)

        workflow_id = factory.create_from_template(
            "curriculum-package", {"request": "fractions unit", "subject": "math"}
        )
        workflow = orchestrator.execute_workflow(workflow_id)

        assert workflow.status == WorkflowStatus.COMPLETED
        assert assessment.contexts[0].inputs["curriculum"] == curriculum
        assert assessment.contexts[0].user_request == "Create assessments for fractions unit"
        assert ideation.contexts[0].inputs["learning_objectives"] == ["add fractions"]
        assert ideation.contexts[0].inputs["grade_level"] == ["5"]


class TestBatches:
    def test_sequential_batch(self, registry, orchestrator, factory):
        _register_game_stubs(registry)
        ids = factory.create_batch_sequential(
            [{"description": "Fractions"}, BatchGameIdea(description="Planets", type=GameFormat.REACT)]
        )

        assert len(ids) == 2
        workflows = [orchestrator.get_workflow(i) for i in ids]
        assert [w.type for w in workflows] == ["html-game", "react-game"]
        assert all(w.status == WorkflowStatus.COMPLETED for w in workflows)

    def test_parallel_batch_returns_ids_in_input_order(self, registry, orchestrator, factory):
        _register_game_stubs(registry)
        ideas = [{"description": f"Game {i}", "type": "html" if i % 2 else "react"} for i in range(4)]

        ids = factory.create_batch_parallel(ideas)

        assert [orchestrator.get_workflow(i).steps[0].input["request"] for i in ids] == [
            "Game 0",
            "Game 1",
            "Game 2",
            "Game 3",
        ]
        assert all(orchestrator.get_workflow(i).status == WorkflowStatus.COMPLETED for i in ids)

    def test_parallel_batch_with_failures_still_returns(self, registry, orchestrator, factory):
        _register_game_stubs(registry)
        registry.register_skill(StubSkill("game-builder", failures=100))

        ids = factory.create_batch_parallel([{"description": "A"}, {"description": "B"}])
        assert all(orchestrator.get_workflow(i).status == WorkflowStatus.FAILED for i in ids)

    def test_empty_batches(self, factory):
        assert factory.create_batch_parallel([]) == []
        assert factory.create_batch_sequential([]) == []
