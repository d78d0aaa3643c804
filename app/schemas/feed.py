from pydantic import BaseModel
from typing import Any, Optional


class ScoreBreakdown(BaseModel):
    vector: float
    elo: float
    popularity: float
    recency: float
    random: float
    base: float
    total: float


class FeedCandidate(BaseModel):
    id: str
    name: Optional[str]
    image: Optional[str]
    bio: Optional[str]
    age: int
    gender: str
    is_persona: bool
    experience: Optional[list[dict[str, Any]]]
    education: Optional[list[dict[str, Any]]]
    score: ScoreBreakdown


class LeaderboardEntry(BaseModel):
    id: str
    name: Optional[str]
    image: Optional[str]
    bio: Optional[str]
    age: int
    gender: str
    elo_score: float
    experience: Optional[dict[str, Any]] = None  # most recent role
