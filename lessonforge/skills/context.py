"""Execution context handed to a skill for one invocation.

A context is built fresh per top-level request and is never mutated. Each
``with_*`` method returns a new context layering one more change on top,
which is how chained skills see their predecessors' outputs.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lessonforge.skills.schemas import (
    ConversationMessage,
    MessageRole,
    UploadedFile,
    UserPreferences,
)

MAX_HISTORY_MESSAGES = 20


class SkillContext(BaseModel):
    """Inputs visible to a skill during one invocation."""

    model_config = ConfigDict(frozen=True)

    user_request: str
    conversation_history: tuple[ConversationMessage, ...] = Field(default_factory=tuple)
    previous_outputs: dict[str, Any] = Field(
        default_factory=dict,
        description="Prior skill id -> that skill's output, for chaining",
    )
    inputs: dict[str, Any] = Field(
        default_factory=dict,
        description="Structured input for this invocation (resolved workflow step input)",
    )
    uploaded_files: tuple[UploadedFile, ...] = Field(default_factory=tuple)
    user_preferences: UserPreferences = Field(default_factory=UserPreferences)
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def build(
        cls,
        user_request: str,
        *,
        conversation_history: Optional[list[ConversationMessage]] = None,
        previous_outputs: Optional[dict[str, Any]] = None,
        inputs: Optional[dict[str, Any]] = None,
        uploaded_files: Optional[list[UploadedFile]] = None,
        user_preferences: Optional[UserPreferences] = None,
        conversation_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> "SkillContext":
        history = list(conversation_history or [])[-MAX_HISTORY_MESSAGES:]
        return cls(
            user_request=user_request,
            conversation_history=tuple(history),
            previous_outputs=dict(previous_outputs or {}),
            inputs=dict(inputs or {}),
            uploaded_files=tuple(uploaded_files or []),
            user_preferences=user_preferences or UserPreferences(),
            conversation_id=conversation_id,
            user_id=user_id,
        )

    def with_message(
        self, role: MessageRole, content: str, skill_used: Optional[str] = None
    ) -> "SkillContext":
        """Return a new context with one more history message (capped)."""
        message = ConversationMessage(role=role, content=content, skill_used=skill_used)
        history = (self.conversation_history + (message,))[-MAX_HISTORY_MESSAGES:]
        return self.model_copy(update={"conversation_history": history})

    def with_skill_output(self, skill_id: str, output: Any) -> "SkillContext":
        """Return a new context whose previous outputs include ``skill_id``."""
        outputs = dict(self.previous_outputs)
        outputs[skill_id] = output
        return self.model_copy(update={"previous_outputs": outputs})

    def with_preferences(self, preferences: UserPreferences) -> "SkillContext":
        return self.model_copy(update={"user_preferences": preferences})

    def with_inputs(self, inputs: dict[str, Any]) -> "SkillContext":
        return self.model_copy(update={"inputs": dict(inputs)})

    def input_value(self, key: str, default: Any = None) -> Any:
        """Look up a structured input, falling back to ``default`` when unset."""
        value = self.inputs.get(key)
        return default if value is None else value
