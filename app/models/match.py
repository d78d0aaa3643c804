"""
RizzedIn — Swipe and Match models.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.types import utcnow


def ordered_pair(user_a_id: str, user_b_id: str) -> tuple[str, str]:
    """Canonical (low, high) ordering used for the unordered-pair key."""
    return (user_a_id, user_b_id) if user_a_id <= user_b_id else (user_b_id, user_a_id)


class Swipe(Base):
    __tablename__ = "swipes"
    __table_args__ = (
        UniqueConstraint("swiper_id", "swiped_id", name="uq_swipe_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    swiper_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    swiped_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    direction: Mapped[str] = mapped_column(
        String, nullable=False, comment="left / right"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Swipe {self.swiper_id} -> {self.swiped_id} dir={self.direction!r}>"


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("pair_low_id", "pair_high_id", name="uq_match_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # user1 is the swiper who chatted, user2 owns the persona
    user1_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user2_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    pair_low_id: Mapped[str] = mapped_column(String(128), nullable=False)
    pair_high_id: Mapped[str] = mapped_column(String(128), nullable=False)
    chat_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("chats.id", ondelete="SET NULL"), nullable=True
    )

    user1_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user2_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    both_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    user1: Mapped["User"] = relationship(
        "User", foreign_keys=[user1_id], lazy="selectin"
    )
    user2: Mapped["User"] = relationship(
        "User", foreign_keys=[user2_id], lazy="selectin"
    )

    def other_user_id(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id

    def __repr__(self) -> str:
        return (
            f"<Match {self.user1_id} <-> {self.user2_id} "
            f"both_approved={self.both_approved}>"
        )
