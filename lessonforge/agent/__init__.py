"""Conversational entry point that routes requests to skills."""

from lessonforge.agent.builder import LearningBuilderAgent

__all__ = ["LearningBuilderAgent"]
