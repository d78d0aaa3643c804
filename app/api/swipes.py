"""
RizzedIn — Swipes API
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import to_http_exception
from app.database import get_db
from app.schemas.swipe import SwipeCreate, SwipeResponse
from app.services.exceptions import RizzedInError
from app.services.swipe_service import SwipeService

logger = structlog.get_logger("rizzedin.api.swipes")

router = APIRouter()

_swipe_service = SwipeService()


@router.post(
    "/",
    response_model=SwipeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a swipe",
)
async def record_swipe(
    payload: SwipeCreate,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Right swipes return the ``chat_id`` of the persona conversation."""
    try:
        return await _swipe_service.record_swipe(
            payload.swiper_id, payload.swiped_id, payload.direction, db
        )
    except (RizzedInError, ValueError) as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/{swiper_id}",
    response_model=list[str],
    summary="Ids already swiped by a member",
)
async def get_swiped_ids(
    swiper_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[str]:
    return await _swipe_service.get_swiped_ids(swiper_id, db)
