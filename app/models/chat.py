"""
RizzedIn — AI persona chat model.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.types import JSONType, utcnow


class ChatState(str, enum.Enum):
    EMPTY = "empty"
    ACTIVE = "active"
    EVALUATING = "evaluating"
    TERMINAL = "terminal"


class Chat(Base):
    __tablename__ = "chats"
    __table_args__ = (
        UniqueConstraint(
            "swiper_id", "swiped_id", "session_number", name="uq_chat_session"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    swiper_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    swiped_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    session_number: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False,
        comment="0 for the first chat of a pair; repeat/admin sessions count up",
    )

    messages: Mapped[list] = mapped_column(
        JSONType, default=list, nullable=False,
        comment="[{role: user|assistant, content, timestamp}]",
    )
    message_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, comment="User messages only"
    )
    state: Mapped[str] = mapped_column(
        String, default=ChatState.EMPTY.value, nullable=False
    )

    ai_decision: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="approved / rejected"
    )
    ai_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_rubric: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    evaluated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    swiped_user: Mapped["User"] = relationship(
        "User", foreign_keys=[swiped_id], lazy="selectin"
    )

    @property
    def chat_state(self) -> ChatState:
        return ChatState(self.state or ChatState.EMPTY.value)

    def __repr__(self) -> str:
        return (
            f"<Chat {self.swiper_id} -> {self.swiped_id} "
            f"#{self.session_number} state={self.state!r} count={self.message_count}>"
        )
