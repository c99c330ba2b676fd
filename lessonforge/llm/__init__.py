"""Shared LLM access for content-generation skills."""

from lessonforge.llm.backends import AnthropicBackend, LLMCallResult, TextGenerator
from lessonforge.llm.client import (
    get_anthropic_client,
    parse_llm_json_response,
    strip_code_fences,
)
from lessonforge.llm.factory import get_backend

__all__ = [
    "AnthropicBackend",
    "LLMCallResult",
    "TextGenerator",
    "get_anthropic_client",
    "parse_llm_json_response",
    "strip_code_fences",
    "get_backend",
]
