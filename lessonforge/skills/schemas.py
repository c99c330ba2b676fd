"""Skill schemas: metadata, results, detection, and conversation types.

A skill is a self-contained unit of work with a confidence function and an
execute function. These models describe what a skill advertises, what it
receives, and what it returns.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SkillMetadata(BaseModel):
    """Immutable description of a skill's identity and triggers."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable identifier (kebab-case)", examples=["game-ideation"])
    name: str = Field(..., description="Human-readable name")
    description: str = Field(default="", description="What the skill does")
    triggers: list[str] = Field(
        default_factory=list,
        description="Keywords/phrases that indicate this skill should handle a request",
    )
    capabilities: list[str] = Field(default_factory=list)
    examples: list[str] = Field(
        default_factory=list, description="Example requests this skill handles"
    )
    version: str = Field(default="1.0.0")


class ErrorCode(str, Enum):
    """Stable error codes carried by failed skill results."""

    EXECUTION_ERROR = "EXECUTION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    OUTPUT_VALIDATION_FAILED = "OUTPUT_VALIDATION_FAILED"
    MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"
    SKILL_NOT_FOUND = "SKILL_NOT_FOUND"
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"


class SkillError(BaseModel):
    """Typed error attached to a failed result."""

    code: str
    message: str
    details: Optional[Any] = None


class ResultMetadata(BaseModel):
    """Structured metadata about one skill execution."""

    skill_id: str
    execution_time_ms: Optional[int] = Field(
        default=None,
        description="Wall-clock duration; overwritten by the execution wrapper",
    )
    confidence: float = 0
    suggested_next_skills: list[str] = Field(default_factory=list)
    suggested_next_steps: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SkillResult(BaseModel):
    """Result returned by a skill after execution."""

    success: bool
    output: Any = None
    message: str = ""
    metadata: ResultMetadata
    error: Optional[SkillError] = None
    errors: list[str] = Field(
        default_factory=list,
        description="Error strings, including post-hoc output validation errors",
    )


class DetectionResult(BaseModel):
    """One ranked candidate from skill detection."""

    skill_id: str
    confidence: float
    reason: str
    matched_triggers: list[str] = Field(default_factory=list)


class DetectionConfig(BaseModel):
    """Thresholds for skill detection and auto-selection."""

    auto_select_threshold: float = Field(
        default=80, description="Minimum confidence to auto-select a skill"
    )
    suggestion_threshold: float = Field(
        default=50, description="Minimum confidence to list a skill as a candidate"
    )
    use_conversation_context: bool = True
    max_chain_length: int = Field(default=3, ge=1)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ConversationMessage(BaseModel):
    """A message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    skill_used: Optional[str] = None


class UploadedFile(BaseModel):
    """Reference to a user-uploaded file."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    content: str = ""
    mime_type: str = "text/plain"
    size: int = 0


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class UserPreferences(BaseModel):
    """User preference flags for skill execution."""

    model_config = ConfigDict(frozen=True)

    grade_level: Optional[str] = None
    subjects: list[str] = Field(default_factory=list)
    preferred_difficulty: Optional[Difficulty] = None
    accessibility_requirements: list[str] = Field(default_factory=list)


class AgentResult(BaseModel):
    """Top-level response from the learning builder agent."""

    response: str
    skills_used: list[str] = Field(default_factory=list)
    confidence: float = 0
    output: Any = None
    total_execution_time_ms: int = 0
    skill_chain: list[str] = Field(default_factory=list)
    suggested_next_steps: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    conversation_id: Optional[str] = None
