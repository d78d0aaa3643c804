from pydantic import BaseModel
from uuid import UUID
from typing import Literal, Optional


class SwipeCreate(BaseModel):
    swiper_id: str
    swiped_id: str
    direction: Literal["left", "right"]


class SwipeResponse(BaseModel):
    swipe_id: UUID
    direction: str
    first_swipe: bool
    elo_change: int
    chat_id: Optional[UUID] = None
