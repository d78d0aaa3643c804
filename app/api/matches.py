"""
RizzedIn — Matches API
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import to_http_exception
from app.database import get_db
from app.models.match import Match
from app.schemas.match import MatchApproveRequest, MatchListItem, MatchResponse
from app.services.exceptions import RizzedInError
from app.services.match_service import MatchService

logger = structlog.get_logger("rizzedin.api.matches")

router = APIRouter()

_match_service = MatchService()


@router.get(
    "/user/{user_id}",
    response_model=list[MatchListItem],
    summary="List all matches for a user",
)
async def get_user_matches(
    user_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    """LinkedIn URLs are only present for mutually approved matches."""
    return await _match_service.get_user_matches(user_id, db)


@router.post(
    "/{match_id}/approve",
    response_model=MatchResponse,
    summary="Approve a match from one side",
)
async def approve_match(
    match_id: uuid.UUID,
    payload: MatchApproveRequest,
    db: AsyncSession = Depends(get_db),
) -> Match:
    try:
        return await _match_service.approve_match(match_id, payload.user_id, db)
    except RizzedInError as exc:
        raise to_http_exception(exc) from exc
