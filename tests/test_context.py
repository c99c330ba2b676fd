"""Tests for the immutable SkillContext."""

import pytest
from pydantic import ValidationError

from lessonforge.skills.context import MAX_HISTORY_MESSAGES, SkillContext
from lessonforge.skills.schemas import MessageRole, UserPreferences


class TestSkillContext:
    """Each with_* call returns a new context and leaves the original alone."""

    def test_context_is_frozen(self):
        context = SkillContext.build("make a quiz")
        with pytest.raises(ValidationError):
            context.user_request = "something else"

    def test_with_message_caps_history(self):
        context = SkillContext.build("make a quiz")
        for i in range(MAX_HISTORY_MESSAGES + 5):
            context = context.with_message(MessageRole.USER, f"message {i}")

        assert len(context.conversation_history) == MAX_HISTORY_MESSAGES
        assert context.conversation_history[0].content == "message 5"
        assert context.conversation_history[-1].content == f"message {MAX_HISTORY_MESSAGES + 4}"

    def test_with_skill_output_layers_outputs(self):
        base = SkillContext.build("make a game", previous_outputs={"game-ideation": {"ideas": []}})
        chained = base.with_skill_output("game-builder", {"html": "<html></html>"})

        assert set(chained.previous_outputs) == {"game-ideation", "game-builder"}
        assert set(base.previous_outputs) == {"game-ideation"}

    def test_with_preferences_replaces_preferences(self):
        base = SkillContext.build("make a game")
        prefs = UserPreferences(grade_level="5", subjects=["math"])
        updated = base.with_preferences(prefs)

        assert updated.user_preferences.grade_level == "5"
        assert updated.user_preferences.subjects == ["math"]
        assert base.user_preferences == UserPreferences()

    def test_with_inputs_copies_the_mapping(self):
        inputs = {"html": "<html></html>"}
        base = SkillContext.build("validate this")
        updated = base.with_inputs(inputs)
        inputs["html"] = "changed"

        assert updated.input_value("html") == "<html></html>"
        assert base.inputs == {}

    def test_input_value_defaults_when_unset(self):
        context = SkillContext.build("x", inputs={"present": 1, "empty": None})
        assert context.input_value("present") == 1
        assert context.input_value("empty", "fallback") == "fallback"
        assert context.input_value("missing", 7) == 7
