"""Tests for LearningBuilderAgent routing, chaining and conversation memory."""

from unittest.mock import patch

import pytest

from conftest import StubSkill
from lessonforge.agent.builder import (
    CHAIN_CONFIDENCE,
    DEFAULT_CONVERSATION_ID,
    HELP_MESSAGE,
    MAX_STORED_OUTPUTS,
    LearningBuilderAgent,
)
from lessonforge.executor.retry import RetryPolicy
from lessonforge.skills.context import MAX_HISTORY_MESSAGES
from lessonforge.skills.schemas import MessageRole


@pytest.fixture
def agent(registry):
    return LearningBuilderAgent(registry, retry_policy=RetryPolicy(max_retries=1))


class TestRouting:
    def test_no_match_returns_help(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"]))
        result = agent.execute("something unrelated")

        assert result.response == HELP_MESSAGE
        assert result.skills_used == []

    def test_single_detection_runs_that_skill(self, agent, registry):
        skill = StubSkill("a", ["alpha"], output={"ok": True})
        registry.register_skill(skill)

        result = agent.execute("do alpha", conversation_id="c1")

        assert result.skills_used == ["a"]
        assert result.skill_chain == ["a"]
        assert result.output == {"ok": True}
        assert result.confidence == 75.0
        assert result.response == "a done"
        assert result.conversation_id == "c1"

    def test_dominant_skill_runs_alone(self, agent, registry):
        top = StubSkill("top", confidence=95)
        other = StubSkill("other", confidence=85)
        registry.register_skill(top)
        registry.register_skill(other)

        result = agent.execute("anything")

        assert result.skills_used == ["top"]
        assert other.calls == 0

    def test_close_matches_run_as_chain(self, agent, registry):
        first = StubSkill("first", confidence=85, output={"step": 1})
        second = StubSkill("second", confidence=75, output={"step": 2})
        registry.register_skill(first)
        registry.register_skill(second)

        result = agent.execute("anything", conversation_id="c1")

        assert result.skills_used == ["first", "second"]
        assert result.skill_chain == ["first", "second"]
        assert result.confidence == CHAIN_CONFIDENCE
        assert result.output == {"step": 2}
        assert second.contexts[0].previous_outputs == {"first": {"step": 1}}

    def test_chain_stops_at_first_failure(self, agent, registry):
        registry.register_skill(StubSkill("first", confidence=85, output={"step": 1}))
        registry.register_skill(StubSkill("second", confidence=80, failures=100))
        third = StubSkill("third", confidence=75)
        registry.register_skill(third)

        result = agent.execute("anything")

        assert result.skills_used == ["first"]
        assert result.output == {"step": 1}
        assert third.calls == 0

    def test_chain_failing_immediately_is_an_error(self, agent, registry):
        registry.register_skill(StubSkill("first", confidence=85, failures=100))
        registry.register_skill(StubSkill("second", confidence=75))

        result = agent.execute("anything")

        assert result.response.startswith("An error occurred: ")
        assert result.skills_used == []

    def test_unexpected_errors_are_reported(self, agent, registry):
        with patch.object(registry, "detect_skills", side_effect=RuntimeError("index corrupted")):
            result = agent.execute("anything")

        assert result.response == "An error occurred: Execution failed: index corrupted"
        assert result.warnings == ["Execution failed: index corrupted"]

    def test_failed_single_skill_reports_errors(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"], failures=100))
        result = agent.execute("alpha")

        assert result.skills_used == ["a"]
        assert result.output is None
        assert "a failed" in result.warnings


class TestConversationMemory:
    def test_history_records_exchange(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"]))
        agent.execute("alpha please", conversation_id="c1")

        history = agent.get_conversation_history("c1")
        assert [m.role for m in history] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert history[0].content == "alpha please"
        assert history[1].skill_used == "a"

    def test_default_conversation_id(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"]))
        result = agent.execute("alpha")

        assert result.conversation_id is None
        assert len(agent.get_conversation_history(DEFAULT_CONVERSATION_ID)) == 2

    def test_history_is_capped(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"]))
        for i in range(MAX_HISTORY_MESSAGES):
            agent.execute(f"alpha {i}", conversation_id="c1")

        history = agent.get_conversation_history("c1")
        assert len(history) == MAX_HISTORY_MESSAGES
        assert history[-2].content == f"alpha {MAX_HISTORY_MESSAGES - 1}"

    def test_outputs_feed_follow_up_requests(self, agent, registry):
        registry.register_skill(StubSkill("ideas", ["ideas"], output={"concepts": ["x"]}))
        builder = StubSkill("build", ["build"])
        registry.register_skill(builder)

        agent.execute("ideas", conversation_id="c1")
        agent.execute("build", conversation_id="c1")

        context = builder.contexts[0]
        assert context.previous_outputs == {"ideas": {"concepts": ["x"]}}
        assert len(context.conversation_history) == 2

    def test_stored_outputs_are_capped_oldest_first(self, agent, registry):
        words = ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot"]
        for word in words:
            registry.register_skill(StubSkill(word, [word]))
        for word in words:
            agent.execute(word, conversation_id="c1")

        assert list(agent.get_skill_outputs("c1")) == words[-MAX_STORED_OUTPUTS:]

    def test_failed_outputs_are_not_stored(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"], failures=100))
        agent.execute("alpha", conversation_id="c1")
        assert agent.get_skill_outputs("c1") == {}

    def test_conversations_are_isolated(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"]))
        agent.execute("alpha", conversation_id="c1")
        assert agent.get_conversation_history("c2") == []
        assert agent.get_skill_outputs("c2") == {}

    def test_clear_conversation(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"]))
        agent.execute("alpha", conversation_id="c1")

        assert agent.clear_conversation("c1") is True
        assert agent.get_conversation_history("c1") == []
        assert agent.clear_conversation("c1") is False

    def test_available_skills(self, agent, registry):
        registry.register_skill(StubSkill("a", ["alpha"]))
        assert [m.id for m in agent.get_available_skills()] == ["a"]
