"""Shared Anthropic client helpers.

Used by the Anthropic backend and by skills that parse structured
(JSON) responses from the generative text service.
"""

import json
import logging
import os
from typing import Any, Optional

logger = logging.getLogger(__name__)


def get_anthropic_client(api_key: Optional[str] = None, timeout: Any = None):
    """Get an Anthropic client if an API key is available.

    Returns None if no key is configured, so callers can degrade to an
    explicit "LLM unavailable" failure instead of crashing.
    """
    api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        return None

    from anthropic import Anthropic

    if timeout is not None:
        return Anthropic(api_key=api_key, timeout=timeout)
    return Anthropic(api_key=api_key)


def strip_code_fences(raw_text: str) -> str:
    """Remove a surrounding markdown code fence (```lang ... ```), if any."""
    content = raw_text.strip()

    # Strip leading markdown fence (```json, ```html or ```)
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]

    # Strip trailing fence
    if content.endswith("```"):
        content = content.rsplit("```", 1)[0]

    return content.strip()


def parse_llm_json_response(raw_text: str) -> Any:
    """Parse JSON from an LLM response, handling markdown code fences.

    LLMs sometimes wrap JSON in ```json ... ``` fences despite being
    told not to. This function strips those fences before parsing.

    Raises:
        json.JSONDecodeError: If the text cannot be parsed as JSON
    """
    return json.loads(strip_code_fences(raw_text))
