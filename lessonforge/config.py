"""Runtime configuration read from environment variables.

All settings have defaults matching the reference behaviour, so an empty
environment yields a working (LLM-less) configuration.
"""

import logging
import os
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "LESSONFORGE_"

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


class Settings(BaseModel):
    """Process-wide settings for the orchestration core and API."""

    log_level: str = Field(default="INFO")
    auto_select_threshold: float = Field(default=80.0, ge=0, le=100)
    suggestion_threshold: float = Field(default=50.0, ge=0, le=100)
    max_retries: int = Field(default=3, ge=1)
    backoff_base_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Multiplier for the 2**attempt backoff between retries",
    )
    step_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Advisory per-attempt timeout; overruns are logged, not cancelled",
    )
    model: str = Field(default=DEFAULT_MODEL)
    max_tokens: Optional[int] = Field(
        default=None, ge=1, description="Overrides every LLM skill's own response budget"
    )
    batch_workers: int = Field(default=4, ge=1)
    anthropic_api_key: Optional[str] = Field(default=None, repr=False)

    def detection_config(self):
        """Build the registry detection config from these settings."""
        from lessonforge.skills.schemas import DetectionConfig

        return DetectionConfig(
            auto_select_threshold=self.auto_select_threshold,
            suggestion_threshold=self.suggestion_threshold,
        )

    def retry_policy(self):
        """Build the execution wrapper policy from these settings."""
        from lessonforge.executor.retry import RetryPolicy

        return RetryPolicy(
            max_retries=self.max_retries,
            backoff_base=self.backoff_base_seconds,
            timeout_seconds=self.step_timeout_seconds,
        )


def _env(name: str) -> Optional[str]:
    value = os.environ.get(f"{ENV_PREFIX}{name}")
    if value is None or value.strip() == "":
        return None
    return value.strip()


def load_settings() -> Settings:
    """Load settings from ``LESSONFORGE_*`` environment variables.

    Unset variables fall back to model defaults. Invalid values raise a
    pydantic ``ValidationError`` so misconfiguration fails at startup.
    """
    overrides: dict = {}
    for field_name in (
        "log_level",
        "auto_select_threshold",
        "suggestion_threshold",
        "max_retries",
        "backoff_base_seconds",
        "step_timeout_seconds",
        "model",
        "max_tokens",
        "batch_workers",
    ):
        value = _env(field_name.upper())
        if value is not None:
            overrides[field_name] = value

    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if api_key:
        overrides["anthropic_api_key"] = api_key

    settings = Settings.model_validate(overrides)
    logger.debug(f"Loaded settings: {settings!r}")
    return settings
