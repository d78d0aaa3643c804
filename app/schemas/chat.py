from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Optional


class ChatMessage(BaseModel):
    role: str  # user / assistant
    content: str
    timestamp: Optional[str] = None


class ChatCreate(BaseModel):
    swiper_id: str
    swiped_id: str
    new_session: bool = False


class SwipedUserSummary(BaseModel):
    id: str
    name: Optional[str]
    image: Optional[str]
    bio: Optional[str]

    model_config = {"from_attributes": True}


class ChatResponse(BaseModel):
    id: UUID
    swiper_id: str
    swiped_id: str
    session_number: int
    messages: list[ChatMessage]
    message_count: int
    state: str
    ai_decision: Optional[str]
    ai_reasoning: Optional[str]
    ai_rubric: Optional[dict[str, float]]
    created_at: datetime
    swiped_user: Optional[SwipedUserSummary] = None

    model_config = {"from_attributes": True}


class SendMessageRequest(BaseModel):
    sender_id: str
    content: str = Field(min_length=1, max_length=2000)


class SendMessageResponse(BaseModel):
    role: str
    content: str
    message_count: int
    state: str
    is_evaluation: bool
    decision: Optional[str] = None
    match_id: Optional[UUID] = None
