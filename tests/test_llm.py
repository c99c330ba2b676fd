"""Tests for the LLM client helpers and the Anthropic backend."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from lessonforge.errors import LLMUnavailableError
from lessonforge.llm.backends import AnthropicBackend, TextGenerator
from lessonforge.llm.client import get_anthropic_client, parse_llm_json_response, strip_code_fences
from lessonforge.llm.factory import get_backend


class TestResponseParsing:
    def test_strip_code_fences(self):
        assert strip_code_fences("```json\n{\"a\": 1}\n```") == '{"a": 1}'
        assert strip_code_fences("```\n<html></html>\n```") == "<html></html>"
        assert strip_code_fences("  plain  ") == "plain"

    def test_parse_json(self):
        assert parse_llm_json_response('```json\n[{"title": "x"}]\n```') == [{"title": "x"}]

    def test_parse_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_llm_json_response("not json")


class TestBackendFactory:
    def test_claude_models_use_anthropic(self):
        backend = get_backend("claude-sonnet-4-5-20250929", api_key="k")
        assert isinstance(backend, AnthropicBackend)
        assert isinstance(backend, TextGenerator)
        assert backend.model_id == "claude-sonnet-4-5-20250929"

    def test_unknown_model(self):
        with pytest.raises(ValueError):
            get_backend("gpt-4")


class TestAnthropicBackend:
    def test_no_key_means_no_client(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        assert get_anthropic_client() is None

        with pytest.raises(LLMUnavailableError):
            AnthropicBackend().execute_sync("system", "hi", max_tokens=10)

    def test_execute_sync_normalizes_response(self):
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Hello "),
                SimpleNamespace(type="tool_use"),
                SimpleNamespace(type="text", text="world"),
            ],
            usage=SimpleNamespace(input_tokens=12, output_tokens=3),
        )
        client = MagicMock()
        client.messages.create.return_value = response

        with patch("lessonforge.llm.backends.get_anthropic_client", return_value=client):
            result = AnthropicBackend("claude-test", api_key="k").execute_sync(
                "system", "hi", max_tokens=50, label="game-builder"
            )

        assert result.content == "Hello world"
        assert result.input_tokens == 12
        assert result.output_tokens == 3
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 50
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    def test_response_without_text_raises(self):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(
            content=[], usage=SimpleNamespace(input_tokens=1, output_tokens=0)
        )
        with patch("lessonforge.llm.backends.get_anthropic_client", return_value=client):
            with pytest.raises(ValueError):
                AnthropicBackend(api_key="k").execute_sync("s", "u", max_tokens=5)
