"""Intent analysis routes for operators.

Runs the same classifier the webhook pipeline uses, without side effects.
"""

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel, Field

from leadwire.api.auth import CurrentUser, CurrentUserDep
from leadwire.services.wiring import get_pipeline

router = APIRouter(prefix="/intents", tags=["intents"])


class AnalyzeRequest(BaseModel):
    text: str
    customer_name: str | None = None
    context_messages: list[str] = Field(default_factory=list)
    use_cache: bool = True


class ConversationMessage(BaseModel):
    direction: Literal["incoming", "outgoing"] = "incoming"
    text: str | None = None


class AnalyzeConversationRequest(BaseModel):
    messages: list[ConversationMessage]


@router.post("/analyze")
def analyze(body: AnalyzeRequest, user: CurrentUser = CurrentUserDep) -> dict:
    """Classify one message."""
    result = get_pipeline().classifier.classify(
        body.text,
        context_messages=body.context_messages,
        customer_name=body.customer_name,
        use_cache=body.use_cache,
    )
    return {"success": True, "data": result.to_dict()}


@router.post("/analyze-conversation")
def analyze_conversation(body: AnalyzeConversationRequest, user: CurrentUser = CurrentUserDep) -> dict:
    """Classify a conversation from its recent incoming messages."""
    messages = [m.model_dump() for m in body.messages]
    result = get_pipeline().classifier.classify_conversation(messages)
    return {"success": True, "data": result.to_dict()}
