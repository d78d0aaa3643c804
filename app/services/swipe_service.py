"""
RizzedIn — Swipe recording.

One live swipe per (swiper, swiped) pair.  The first swipe on a pair moves
the swiped member's counters and legacy swipe rating; a repeat swipe only
overwrites the direction and timestamp.  Right swipes open the AI persona
chat instead of matching directly.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.match import Swipe
from app.models.types import utcnow
from app.models.user import User
from app.services.chat_service import ChatService
from app.services.elo_service import EloService
from app.services.exceptions import InvalidStateError, NotFoundError
from app.utils.locks import KeyedLock, get_keyed_lock

logger = structlog.get_logger("rizzedin.swipe_service")

DIRECTIONS = frozenset({"left", "right"})


class SwipeService:
    def __init__(
        self,
        elo_service: EloService | None = None,
        chat_service: ChatService | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._elo = elo_service or EloService()
        self._locks = locks or get_keyed_lock()
        self._chats = chat_service or ChatService(
            elo_service=self._elo, locks=self._locks
        )

    async def record_swipe(
        self,
        swiper_id: str,
        swiped_id: str,
        direction: str,
        db_session: AsyncSession,
    ) -> dict:
        """Store the swipe and return ``swipe_id``, ``first_swipe``,
        ``elo_change`` and, for right swipes, the ``chat_id`` to open.

        Raises
        ------
        ValueError
            Unknown direction.
        InvalidStateError
            A member swiping on themselves.
        NotFoundError
            Either member does not exist.
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown swipe direction {direction!r}")
        if swiper_id == swiped_id:
            raise InvalidStateError("Cannot swipe on yourself")

        log = logger.bind(swiper_id=swiper_id, swiped_id=swiped_id, direction=direction)

        async with self._locks.hold(f"user:{swiped_id}"):
            swiper = await db_session.get(User, swiper_id)
            if swiper is None:
                raise NotFoundError("User", swiper_id)
            swiped = await db_session.get(
                User, swiped_id, with_for_update=True, populate_existing=True
            )
            if swiped is None:
                raise NotFoundError("User", swiped_id)

            swipe, first_swipe = await self._upsert(
                swiper_id, swiped_id, direction, db_session
            )

            elo_change = 0
            if first_swipe:
                elo_change = self._elo.apply_swipe(swiped, swiper, direction)
            await db_session.flush()

        chat_id: uuid.UUID | None = None
        if direction == "right":
            chat = await self._chats.get_or_create_chat(swiper_id, swiped_id, db_session)
            chat_id = chat.id

        log.info("swipe_recorded", first_swipe=first_swipe, elo_change=elo_change)
        return {
            "swipe_id": swipe.id,
            "direction": direction,
            "first_swipe": first_swipe,
            "elo_change": elo_change,
            "chat_id": chat_id,
        }

    async def get_swiped_ids(self, swiper_id: str, db_session: AsyncSession) -> list[str]:
        result = await db_session.execute(
            select(Swipe.swiped_id).where(Swipe.swiper_id == swiper_id)
        )
        return list(result.scalars().all())

    # ── Helpers ─────────────────────────────────────────────────────

    async def _upsert(
        self,
        swiper_id: str,
        swiped_id: str,
        direction: str,
        db_session: AsyncSession,
    ) -> tuple[Swipe, bool]:
        existing = await self._find(swiper_id, swiped_id, db_session)
        if existing is None:
            swipe = Swipe(swiper_id=swiper_id, swiped_id=swiped_id, direction=direction)
            try:
                async with db_session.begin_nested():
                    db_session.add(swipe)
                return swipe, True
            except IntegrityError:
                existing = await self._find(swiper_id, swiped_id, db_session)

        existing.direction = direction
        existing.updated_at = utcnow()
        return existing, False

    @staticmethod
    async def _find(
        swiper_id: str, swiped_id: str, db_session: AsyncSession
    ) -> Swipe | None:
        stmt = select(Swipe).where(
            Swipe.swiper_id == swiper_id, Swipe.swiped_id == swiped_id
        )
        return (await db_session.execute(stmt)).scalar_one_or_none()
