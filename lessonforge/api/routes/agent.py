"""Learning builder agent routes.

Endpoints:
    POST   /v1/agent/chat                       Route a request to skills
    GET    /v1/agent/conversations/{id}         Conversation history
    DELETE /v1/agent/conversations/{id}         Forget a conversation
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from lessonforge.api.dependencies import Runtime, get_runtime
from lessonforge.skills.schemas import AgentResult, ConversationMessage, UserPreferences

router = APIRouter(prefix="/agent", tags=["agent"])


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None
    preferences: Optional[UserPreferences] = None


class ConversationResponse(BaseModel):
    conversation_id: str
    messages: list[ConversationMessage]
    skill_outputs: list[str] = Field(description="Skills whose latest output is remembered")


@router.post("/chat", response_model=AgentResult)
def chat(body: ChatRequest, runtime: Runtime = Depends(get_runtime)) -> AgentResult:
    """Run the agent on one message.

    Declared sync so the blocking LLM calls run in FastAPI's threadpool.
    """
    return runtime.agent.execute(
        body.message,
        conversation_id=body.conversation_id,
        user_id=body.user_id,
        user_preferences=body.preferences,
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(conversation_id: str, runtime: Runtime = Depends(get_runtime)):
    return ConversationResponse(
        conversation_id=conversation_id,
        messages=runtime.agent.get_conversation_history(conversation_id),
        skill_outputs=list(runtime.agent.get_skill_outputs(conversation_id)),
    )


@router.delete("/conversations/{conversation_id}")
async def clear_conversation(conversation_id: str, runtime: Runtime = Depends(get_runtime)):
    if not runtime.agent.clear_conversation(conversation_id):
        raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")
    return {"conversation_id": conversation_id, "cleared": True}
