"""Initial schema — users, swipes, chats, matches.

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column(
            "role",
            sa.Integer,
            server_default="1",
            nullable=False,
            comment="0 = persona, 1 = member, 2+ = admin",
        ),
        sa.Column("linkedin_url", sa.String, nullable=True),
        sa.Column("age", sa.Integer, server_default="0", nullable=False),
        sa.Column("gender", sa.String, server_default="", nullable=False),
        sa.Column("dating_preference", sa.String, server_default="", nullable=False),
        sa.Column(
            "onboarding_completed",
            sa.Boolean,
            server_default="false",
            nullable=False,
        ),
        sa.Column("name", sa.String, nullable=True),
        sa.Column("image", sa.String, nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("about", sa.Text, nullable=True),
        sa.Column("experience", postgresql.JSONB, nullable=True),
        sa.Column("education", postgresql.JSONB, nullable=True),
        sa.Column("ai_persona_prompt", sa.Text, nullable=True),
        sa.Column(
            "profile_vector",
            postgresql.JSONB,
            nullable=True,
            comment="11-dimensional feature vector",
        ),
        sa.Column("elo_score", sa.Float, server_default="1000", nullable=False),
        sa.Column(
            "profile_score",
            sa.Float,
            nullable=True,
            comment="Composite score in [800, 1800]",
        ),
        sa.Column("total_right_swipes", sa.Integer, server_default="0", nullable=False),
        sa.Column("total_left_swipes", sa.Integer, server_default="0", nullable=False),
        sa.Column("match_count", sa.Integer, server_default="0", nullable=False),
        sa.Column(
            "conversations_completed", sa.Integer, server_default="0", nullable=False
        ),
        sa.Column(
            "ai_approvals_received", sa.Integer, server_default="0", nullable=False
        ),
        sa.Column(
            "ai_rejections_received", sa.Integer, server_default="0", nullable=False
        ),
        sa.Column("avg_rubric_scores", postgresql.JSONB, nullable=True),
        sa.Column("last_conversation_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_linkedin_url", "users", ["linkedin_url"])
    op.create_index("ix_users_elo_score", "users", ["elo_score"])

    # ── 2. swipes ───────────────────────────────────────────────────
    op.create_table(
        "swipes",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "swiper_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "swiped_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("direction", sa.String, nullable=False, comment="left / right"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("swiper_id", "swiped_id", name="uq_swipe_pair"),
    )
    op.create_index("ix_swipes_swiper_id", "swipes", ["swiper_id"])
    op.create_index("ix_swipes_swiped_id", "swipes", ["swiped_id"])

    # ── 3. chats ────────────────────────────────────────────────────
    op.create_table(
        "chats",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "swiper_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "swiped_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("session_number", sa.Integer, server_default="0", nullable=False),
        sa.Column(
            "messages",
            postgresql.JSONB,
            server_default="[]",
            nullable=False,
            comment="[{role: user|assistant, content, timestamp}]",
        ),
        sa.Column(
            "message_count",
            sa.Integer,
            server_default="0",
            nullable=False,
            comment="User messages only",
        ),
        sa.Column("state", sa.String, server_default="empty", nullable=False),
        sa.Column("ai_decision", sa.String, nullable=True),
        sa.Column("ai_reasoning", sa.Text, nullable=True),
        sa.Column("ai_rubric", postgresql.JSONB, nullable=True),
        sa.Column("evaluated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "swiper_id", "swiped_id", "session_number", name="uq_chat_session"
        ),
    )
    op.create_index("ix_chats_swiper_id", "chats", ["swiper_id"])
    op.create_index("ix_chats_swiped_id", "chats", ["swiped_id"])

    # ── 4. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "user1_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user2_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("pair_low_id", sa.String(128), nullable=False),
        sa.Column("pair_high_id", sa.String(128), nullable=False),
        sa.Column(
            "chat_id",
            sa.Uuid,
            sa.ForeignKey("chats.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("user1_approved", sa.Boolean, server_default="false", nullable=False),
        sa.Column("user2_approved", sa.Boolean, server_default="false", nullable=False),
        sa.Column("both_approved", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("pair_low_id", "pair_high_id", name="uq_match_pair"),
    )
    op.create_index("ix_matches_user1_id", "matches", ["user1_id"])
    op.create_index("ix_matches_user2_id", "matches", ["user2_id"])


def downgrade() -> None:
    op.drop_index("ix_matches_user2_id", table_name="matches")
    op.drop_index("ix_matches_user1_id", table_name="matches")
    op.drop_table("matches")

    op.drop_index("ix_chats_swiped_id", table_name="chats")
    op.drop_index("ix_chats_swiper_id", table_name="chats")
    op.drop_table("chats")

    op.drop_index("ix_swipes_swiped_id", table_name="swipes")
    op.drop_index("ix_swipes_swiper_id", table_name="swipes")
    op.drop_table("swipes")

    op.drop_index("ix_users_elo_score", table_name="users")
    op.drop_index("ix_users_linkedin_url", table_name="users")
    op.drop_table("users")
