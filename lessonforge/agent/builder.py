"""Learning builder agent - routes free-text requests to skills.

The agent keeps a short memory per conversation (recent messages and the
latest outputs of each skill) so follow-up requests such as "now build it"
can pick up where the previous skill left off.

Routing:
1. Rank skills against the request
2. If several match and the best is not dominant, run a short chain of the
   top-ranked skills, feeding each output into the next context
3. Otherwise run the top skill alone
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Optional

from lessonforge.executor.retry import RetryPolicy, execute_with_retry
from lessonforge.skills.context import MAX_HISTORY_MESSAGES, SkillContext
from lessonforge.skills.registry import SkillRegistry
from lessonforge.skills.schemas import (
    AgentResult,
    ConversationMessage,
    DetectionConfig,
    MessageRole,
    SkillMetadata,
    SkillResult,
    UserPreferences,
)

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_ID = "default"
MAX_STORED_OUTPUTS = 5
# Top confidence at or above this runs a single skill even when others match
DOMINANT_CONFIDENCE = 90
CHAIN_CONFIDENCE = 85

HELP_MESSAGE = """I'm not sure how to help with that request. I can help you with:
- Creating game ideas (e.g., "brainstorm math game ideas")
- Building HTML games (e.g., "build a multiplication game")
- Creating React games (e.g., "create a React game for fractions")
- Validating accessibility (e.g., "check accessibility")
- Formatting metadata (e.g., "add to catalog")
- Designing curricula and assessments (e.g., "design curriculum for 5th grade science")

What would you like to do?"""


class LearningBuilderAgent:
    """Detects and runs the right skills for a learning-content request."""

    def __init__(
        self,
        registry: SkillRegistry,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        config: Optional[DetectionConfig] = None,
    ):
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()
        self.config = config or registry.config
        self._history: dict[str, list[ConversationMessage]] = {}
        self._outputs: dict[str, OrderedDict[str, Any]] = {}
        self._lock = threading.Lock()

    def execute(
        self,
        user_request: str,
        conversation_id: Optional[str] = None,
        user_id: Optional[str] = None,
        user_preferences: Optional[UserPreferences] = None,
    ) -> AgentResult:
        """Handle one request. Never raises for skill failures."""
        started = time.time()
        conv_id = conversation_id or DEFAULT_CONVERSATION_ID

        with self._lock:
            history = list(self._history.get(conv_id, []))
            previous_outputs = dict(self._outputs.get(conv_id, {}))

        context = SkillContext.build(
            user_request,
            conversation_history=history if self.config.use_conversation_context else [],
            previous_outputs=previous_outputs,
            user_preferences=user_preferences,
            conversation_id=conversation_id,
            user_id=user_id,
        )

        try:
            detections = self.registry.detect_skills(user_request, context, self.config)
            if not detections:
                logger.info(f"[{conv_id}] No skill matched request")
                return AgentResult(
                    response=HELP_MESSAGE,
                    total_execution_time_ms=_elapsed_ms(started),
                    conversation_id=conversation_id,
                )

            top = detections[0]
            if len(detections) > 1 and top.confidence < DOMINANT_CONFIDENCE:
                chain = self.registry.get_skill_chain(
                    user_request, context, max_skills=self.config.max_chain_length
                )
                if len(chain) > 1:
                    return self._execute_chain(chain, context, conv_id, started)

            return self._execute_single(top.skill_id, top.confidence, context, conv_id, started)
        except Exception as e:
            logger.error(f"[{conv_id}] Agent execution error: {e}", exc_info=True)
            return self._error_result(f"Execution failed: {e}", started, conversation_id)

    def _execute_single(
        self,
        skill_id: str,
        confidence: float,
        context: SkillContext,
        conv_id: str,
        started: float,
    ) -> AgentResult:
        skill = self.registry.get_skill(skill_id)
        if skill is None:
            return self._error_result("Skill not found", started, context.conversation_id)

        logger.info(f"[{conv_id}] Executing skill: {skill_id} ({confidence:.1f}%)")
        result = execute_with_retry(skill, context, policy=self.retry_policy)
        if result.success:
            self._store_output(conv_id, skill_id, result.output)
        self._record_exchange(conv_id, context.user_request, result.message, skill_id)

        return AgentResult(
            response=result.message,
            skills_used=[skill_id],
            confidence=confidence,
            output=result.output,
            total_execution_time_ms=_elapsed_ms(started),
            skill_chain=[skill_id],
            suggested_next_steps=result.metadata.suggested_next_steps,
            warnings=_warnings_of(result),
            conversation_id=context.conversation_id,
        )

    def _execute_chain(
        self,
        skill_ids: list[str],
        context: SkillContext,
        conv_id: str,
        started: float,
    ) -> AgentResult:
        logger.info(f"[{conv_id}] Executing skill chain: {' -> '.join(skill_ids)}")
        executed: list[str] = []
        final: Optional[SkillResult] = None
        current = context

        for skill_id in skill_ids:
            skill = self.registry.get_skill(skill_id)
            if skill is None:
                logger.warning(f"[{conv_id}] Skill {skill_id} not found, skipping")
                continue

            result = execute_with_retry(skill, current, policy=self.retry_policy)
            if not result.success:
                logger.warning(f"[{conv_id}] Skill {skill_id} failed, stopping chain")
                if final is None:
                    final = result
                break

            executed.append(skill_id)
            final = result
            self._store_output(conv_id, skill_id, result.output)
            current = current.with_skill_output(skill_id, result.output)

        if final is None or not executed:
            message = final.message if final else "Skill chain failed"
            return self._error_result(message, started, context.conversation_id)

        self._record_exchange(conv_id, context.user_request, final.message, executed[-1])
        return AgentResult(
            response=final.message,
            skills_used=executed,
            confidence=CHAIN_CONFIDENCE,
            output=final.output,
            total_execution_time_ms=_elapsed_ms(started),
            skill_chain=executed,
            suggested_next_steps=final.metadata.suggested_next_steps,
            warnings=_warnings_of(final),
            conversation_id=context.conversation_id,
        )

    # --- Conversation memory ---

    def _record_exchange(self, conv_id: str, request: str, response: str, skill_id: str) -> None:
        with self._lock:
            history = self._history.setdefault(conv_id, [])
            history.append(ConversationMessage(role=MessageRole.USER, content=request))
            history.append(
                ConversationMessage(role=MessageRole.ASSISTANT, content=response, skill_used=skill_id)
            )
            if len(history) > MAX_HISTORY_MESSAGES:
                del history[: len(history) - MAX_HISTORY_MESSAGES]

    def _store_output(self, conv_id: str, skill_id: str, output: Any) -> None:
        with self._lock:
            outputs = self._outputs.setdefault(conv_id, OrderedDict())
            outputs.pop(skill_id, None)
            outputs[skill_id] = output
            # Oldest skill output goes first
            while len(outputs) > MAX_STORED_OUTPUTS:
                outputs.popitem(last=False)

    def get_available_skills(self) -> list[SkillMetadata]:
        return self.registry.list_metadata()

    def get_conversation_history(self, conversation_id: str) -> list[ConversationMessage]:
        with self._lock:
            return list(self._history.get(conversation_id, []))

    def get_skill_outputs(self, conversation_id: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._outputs.get(conversation_id, {}))

    def clear_conversation(self, conversation_id: str) -> bool:
        """Forget a conversation's history and outputs. Returns False if unknown."""
        with self._lock:
            known = conversation_id in self._history or conversation_id in self._outputs
            self._history.pop(conversation_id, None)
            self._outputs.pop(conversation_id, None)
        return known

    @staticmethod
    def _error_result(message: str, started: float, conversation_id: Optional[str]) -> AgentResult:
        return AgentResult(
            response=f"An error occurred: {message}",
            total_execution_time_ms=_elapsed_ms(started),
            warnings=[message],
            conversation_id=conversation_id,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.time() - started) * 1000)


def _warnings_of(result: SkillResult) -> list[str]:
    warnings = list(result.metadata.warnings)
    if not result.success:
        warnings.extend(e for e in result.errors if e not in warnings)
    return warnings
