from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional


class MatchUserSummary(BaseModel):
    id: str
    name: Optional[str]
    image: Optional[str]
    bio: Optional[str]
    age: int
    gender: str
    linkedin_url: Optional[str] = None  # only once both sides approve


class MatchListItem(BaseModel):
    match_id: UUID
    chat_id: Optional[UUID]
    created_at: datetime
    my_approval: bool
    their_approval: bool
    both_approved: bool
    other_user: MatchUserSummary


class MatchApproveRequest(BaseModel):
    user_id: str


class MatchResponse(BaseModel):
    id: UUID
    user1_id: str
    user2_id: str
    user1_approved: bool
    user2_approved: bool
    both_approved: bool
    created_at: datetime

    model_config = {"from_attributes": True}
