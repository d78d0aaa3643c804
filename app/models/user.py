"""
RizzedIn — User model (real members, imported personas and admins).
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.types import JSONType, utcnow

RUBRIC_DIMENSIONS: tuple[str, ...] = (
    "engagement",
    "depth",
    "authenticity",
    "respectfulness",
    "compatibility",
    "overall",
)

RUBRIC_SEED_SCORE = 5.0

ROLE_PERSONA = 0
ROLE_MEMBER = 1
ROLE_ADMIN = 2


def default_rubric_scores() -> dict[str, float]:
    return {dim: RUBRIC_SEED_SCORE for dim in RUBRIC_DIMENSIONS}


class User(Base):
    __tablename__ = "users"

    # Stable identifier issued by the auth provider (or ``persona_*`` for imports)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    role: Mapped[int] = mapped_column(
        Integer, default=ROLE_MEMBER, nullable=False,
        comment="0 = persona, 1 = member, 2+ = admin",
    )

    # ── Onboarding ─────────────────────────────────────────────────
    linkedin_url: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    age: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    gender: Mapped[str] = mapped_column(
        String, default="", nullable=False, comment="male / female / other"
    )
    dating_preference: Mapped[str] = mapped_column(
        String, default="", nullable=False, comment="men / women / both"
    )
    onboarding_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # ── Enrichment (LinkedIn) ──────────────────────────────────────
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    image: Mapped[str | None] = mapped_column(String, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    about: Mapped[str | None] = mapped_column(Text, nullable=True)
    experience: Mapped[list | None] = mapped_column(
        JSONType, nullable=True,
        comment="[{title, company, duration, location, description, ...}]",
    )
    education: Mapped[list | None] = mapped_column(
        JSONType, nullable=True, comment="[{school, degree, fieldOfStudy, ...}]"
    )
    ai_persona_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ── Ranking signals ────────────────────────────────────────────
    profile_vector: Mapped[list | None] = mapped_column(
        JSONType, nullable=True, comment="11-dimensional feature vector"
    )
    elo_score: Mapped[float] = mapped_column(
        Float, default=1000.0, index=True, nullable=False
    )
    profile_score: Mapped[float | None] = mapped_column(
        Float, nullable=True, comment="Composite score in [800, 1800]"
    )
    total_right_swipes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_left_swipes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    match_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # ── Conversation quality ───────────────────────────────────────
    conversations_completed: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    ai_approvals_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ai_rejections_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    avg_rubric_scores: Mapped[dict | None] = mapped_column(
        JSONType, default=default_rubric_scores, nullable=True
    )
    last_conversation_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    @property
    def is_persona(self) -> bool:
        return self.role == ROLE_PERSONA

    @property
    def is_admin(self) -> bool:
        return (self.role or 0) >= ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User {self.id!r} role={self.role} elo={self.elo_score}>"
