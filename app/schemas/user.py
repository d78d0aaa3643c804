from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Literal, Optional

Gender = Literal["male", "female", "other"]
DatingPreference = Literal["men", "women", "both"]


class UserCreate(BaseModel):
    id: str = Field(min_length=1, max_length=128)
    linkedin_url: Optional[str] = None


class OnboardingRequest(BaseModel):
    age: int = Field(ge=18, le=100)
    gender: Gender
    dating_preference: DatingPreference
    linkedin_url: Optional[str] = None


class UserUpdate(BaseModel):
    linkedin_url: Optional[str] = None
    age: Optional[int] = Field(None, ge=18, le=100)
    gender: Optional[Gender] = None
    dating_preference: Optional[DatingPreference] = None


class PersonaPromptUpdate(BaseModel):
    ai_persona_prompt: Optional[str] = Field(None, max_length=4000)


class EnrichRequest(BaseModel):
    linkedin_url: str


class EnrichResponse(BaseModel):
    name: Optional[str]
    image: Optional[str]
    bio: Optional[str]
    about: Optional[str]
    experience_count: int
    education_count: int


class UserResponse(BaseModel):
    id: str
    role: int
    linkedin_url: Optional[str]
    age: int
    gender: str
    dating_preference: str
    onboarding_completed: bool
    name: Optional[str]
    image: Optional[str]
    bio: Optional[str]
    about: Optional[str]
    experience: Optional[list[dict[str, Any]]]
    education: Optional[list[dict[str, Any]]]
    ai_persona_prompt: Optional[str]
    elo_score: float
    profile_score: Optional[float]
    total_right_swipes: int
    total_left_swipes: int
    match_count: int
    conversations_completed: int
    ai_approvals_received: int
    ai_rejections_received: int
    avg_rubric_scores: Optional[dict[str, float]]
    created_at: datetime

    model_config = {"from_attributes": True}


class PersonaUpdate(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    about: Optional[str] = None
    image: Optional[str] = None
    age: Optional[int] = Field(None, ge=18, le=100)
    gender: Optional[Gender] = None
    dating_preference: Optional[DatingPreference] = None
    ai_persona_prompt: Optional[str] = Field(None, max_length=4000)


class PersonaImportRequest(BaseModel):
    linkedin_url: str


class PersonaImportResponse(BaseModel):
    persona_id: str
    demographics: dict[str, Any]
    name: Optional[str]
    experience_count: int
    education_count: int
