"""
RizzedIn — Match lifecycle.

A match is created at most once per unordered pair of members, when an AI
conversation between them ends in approval.  Afterwards each side approves
independently; ``both_approved`` is recomputed on every write and gates the
LinkedIn reveal.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.match import Match, ordered_pair
from app.models.user import User
from app.services.exceptions import NotFoundError, UnauthorizedError

logger = structlog.get_logger("rizzedin.match_service")


class MatchService:
    """Create, approve and list matches."""

    async def create_match(
        self,
        user1_id: str,
        user2_id: str,
        db_session: AsyncSession,
        chat_id: uuid.UUID | None = None,
    ) -> tuple[Match, bool]:
        """Return the pair's match, creating it if needed.

        ``user1_id`` is the member who chatted, ``user2_id`` owns the persona.
        The second element of the result is True only when a new row was
        inserted; ``match_count`` is incremented for both members in that
        case alone.
        """
        log = logger.bind(user1_id=user1_id, user2_id=user2_id)
        low, high = ordered_pair(user1_id, user2_id)

        existing = await self._find_pair(low, high, db_session)
        if existing is not None:
            log.info("match_already_exists", match_id=str(existing.id))
            return existing, False

        match = Match(
            user1_id=user1_id,
            user2_id=user2_id,
            pair_low_id=low,
            pair_high_id=high,
            chat_id=chat_id,
            user1_approved=False,
            user2_approved=False,
            both_approved=False,
        )
        try:
            async with db_session.begin_nested():
                db_session.add(match)
        except IntegrityError:
            # Lost a concurrent insert for the same pair
            existing = await self._find_pair(low, high, db_session)
            log.info("match_insert_raced", match_id=str(existing.id))
            return existing, False

        # Incremented in SQL: callers may hold copies loaded before a long model call
        member_ids = {user1_id, user2_id}
        await db_session.execute(
            update(User)
            .where(User.id.in_(member_ids))
            .values(match_count=User.match_count + 1)
            .execution_options(synchronize_session=False)
        )
        for user in list(db_session.identity_map.values()):
            if isinstance(user, User) and user.id in member_ids:
                await db_session.refresh(user, attribute_names=["match_count"])

        await db_session.flush()
        log.info("match_created", match_id=str(match.id))
        return match, True

    async def approve_match(
        self,
        match_id: uuid.UUID,
        user_id: str,
        db_session: AsyncSession,
    ) -> Match:
        """Mark the caller's side approved.  Repeating the call is a no-op.

        Raises
        ------
        NotFoundError
            If the match does not exist.
        UnauthorizedError
            If *user_id* is neither side of the match.
        """
        stmt = select(Match).where(Match.id == match_id).with_for_update()
        match = (await db_session.execute(stmt)).scalar_one_or_none()
        if match is None:
            raise NotFoundError("Match", match_id)

        if user_id == match.user1_id:
            match.user1_approved = True
        elif user_id == match.user2_id:
            match.user2_approved = True
        else:
            logger.warning(
                "approve_match_unauthorized", match_id=str(match_id), user_id=user_id
            )
            raise UnauthorizedError("Not authorized to approve this match")

        match.both_approved = bool(match.user1_approved and match.user2_approved)
        await db_session.flush()

        logger.info(
            "match_approved",
            match_id=str(match_id),
            user_id=user_id,
            both_approved=match.both_approved,
        )
        return match

    async def get_user_matches(
        self,
        user_id: str,
        db_session: AsyncSession,
    ) -> list[dict]:
        """Matches involving *user_id*, newest first, with the other side's
        public summary.  The LinkedIn URL is included only once both sides
        have approved.
        """
        stmt = (
            select(Match)
            .where(or_(Match.user1_id == user_id, Match.user2_id == user_id))
            .order_by(Match.created_at.desc())
            .execution_options(populate_existing=True)
        )
        matches = (await db_session.execute(stmt)).scalars().all()

        items: list[dict] = []
        for match in matches:
            other = match.user2 if match.user1_id == user_id else match.user1
            if other is None:
                continue
            is_user1 = match.user1_id == user_id
            items.append(
                {
                    "match_id": match.id,
                    "chat_id": match.chat_id,
                    "created_at": match.created_at,
                    "my_approval": match.user1_approved if is_user1 else match.user2_approved,
                    "their_approval": match.user2_approved if is_user1 else match.user1_approved,
                    "both_approved": match.both_approved,
                    "other_user": _user_summary(other, reveal=match.both_approved),
                }
            )
        return items

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _find_pair(
        low: str, high: str, db_session: AsyncSession
    ) -> Match | None:
        stmt = select(Match).where(
            Match.pair_low_id == low, Match.pair_high_id == high
        )
        return (await db_session.execute(stmt)).scalar_one_or_none()


def _user_summary(user: User, reveal: bool) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "image": user.image,
        "bio": user.bio,
        "age": user.age,
        "gender": user.gender,
        "linkedin_url": user.linkedin_url if reveal else None,
    }
