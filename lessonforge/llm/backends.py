"""LLM backend abstraction for content-generation skills.

Skills depend on the ``TextGenerator`` protocol, not on a vendor SDK, so the
backend can be swapped (or faked in tests) without touching skill code.

The backend handles provider-specific concerns:
- Client creation and timeout configuration
- Response parsing and token counting

Retry with exponential backoff is NOT done here; it is the job of the
execution wrapper that runs every skill.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from lessonforge.errors import LLMUnavailableError
from lessonforge.llm.client import get_anthropic_client

logger = logging.getLogger(__name__)


@dataclass
class LLMCallResult:
    """Normalized response from any LLM backend."""

    content: str
    model_id: str
    input_tokens: int
    output_tokens: int
    duration_ms: int


@runtime_checkable
class TextGenerator(Protocol):
    """Protocol for LLM backend implementations."""

    @property
    def model_id(self) -> str: ...

    def execute_sync(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        label: str = "",
    ) -> LLMCallResult: ...


class AnthropicBackend:
    """Anthropic Claude backend (synchronous messages API)."""

    def __init__(
        self,
        model_id: str = "claude-sonnet-4-5-20250929",
        *,
        api_key: Optional[str] = None,
        temperature: float = 1.0,
    ):
        self._model_id = model_id
        self._api_key = api_key
        self._temperature = temperature

    @property
    def model_id(self) -> str:
        return self._model_id

    def execute_sync(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        label: str = "",
    ) -> LLMCallResult:
        """Execute a single non-streaming Anthropic call.

        Raises:
            LLMUnavailableError: If no API key is configured
        """
        import httpx

        client = get_anthropic_client(
            self._api_key,
            timeout=httpx.Timeout(connect=30.0, read=600.0, write=60.0, pool=30.0),
        )
        if client is None:
            raise LLMUnavailableError(
                "LLM service unavailable. Set ANTHROPIC_API_KEY environment variable."
            )

        start_time = time.time()
        logger.info(
            f"[{label}] Anthropic call: model={self._model_id}, max_tokens={max_tokens}"
        )

        response = client.messages.create(
            model=self._model_id,
            max_tokens=max_tokens,
            temperature=self._temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )

        text_parts = [
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ]
        if not text_parts:
            raise ValueError("Unexpected response type from Claude: no text content")

        duration_ms = int((time.time() - start_time) * 1000)
        result = LLMCallResult(
            content="".join(text_parts),
            model_id=self._model_id,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=duration_ms,
        )
        logger.info(
            f"[{label}] Anthropic call done: {result.input_tokens:,} in, "
            f"{result.output_tokens:,} out, {duration_ms:,}ms"
        )
        return result
