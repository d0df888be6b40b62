from typing import Optional

from flask import current_app, request
from pydantic import AliasChoices, BaseModel, Field

from roleplay_backend.services.errors import UnauthorizedError
from roleplay_backend.services.orchestrator import ConversationOrchestrator


class TurnRequest(BaseModel):
    conversation_id: str = Field(validation_alias=AliasChoices("conversation_id", "conversationId"))
    text: str = Field(min_length=1, validation_alias=AliasChoices("text", "content", "message"))


class ConversationRef(BaseModel):
    conversation_id: str = Field(validation_alias=AliasChoices("conversation_id", "conversationId"))


class StartRequest(BaseModel):
    scenario_id: str = Field(validation_alias=AliasChoices("scenario_id", "scenarioId"))
    user_id: Optional[str] = Field(None, validation_alias=AliasChoices("user_id", "userId"))


def get_orchestrator() -> ConversationOrchestrator:
    return current_app.extensions["orchestrator"]


def request_json() -> dict:
    return request.get_json(silent=True) or {}


def current_user_id(required: bool = True) -> Optional[str]:
    """Auth lives elsewhere; the gateway forwards the user id in X-User-Id."""
    user_id = request.headers.get("X-User-Id") or request.args.get("user_id")
    if required and not user_id:
        raise UnauthorizedError()
    return user_id
