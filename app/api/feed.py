"""
RizzedIn — Discovery feed and leaderboard API
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.feed import FeedCandidate, LeaderboardEntry
from app.services.ranking_service import RankingService

logger = structlog.get_logger("rizzedin.api.feed")

router = APIRouter()

_ranking_service = RankingService()


@router.get(
    "/leaderboard",
    response_model=list[LeaderboardEntry],
    summary="Top members by ELO",
)
async def get_leaderboard(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> list[LeaderboardEntry]:
    users = await _ranking_service.get_leaderboard(db, limit=limit)
    return [
        LeaderboardEntry(
            id=user.id,
            name=user.name,
            image=user.image,
            bio=user.bio,
            age=user.age,
            gender=user.gender,
            elo_score=user.elo_score,
            experience=(user.experience or [None])[0],
        )
        for user in users
    ]


@router.get(
    "/{user_id}",
    response_model=list[FeedCandidate],
    summary="Ranked candidates for a member",
)
async def get_feed(
    user_id: str,
    limit: int = Query(20, ge=1, le=100, description="Max candidates to return"),
    db: AsyncSession = Depends(get_db),
) -> list[FeedCandidate]:
    """Return candidates ordered by blended score.  Empty until the member
    has completed onboarding."""
    ranked = await _ranking_service.get_recommendations(user_id, db, limit=limit)
    return [
        FeedCandidate(
            id=candidate.id,
            name=candidate.name,
            image=candidate.image,
            bio=candidate.bio,
            age=candidate.age,
            gender=candidate.gender,
            is_persona=candidate.is_persona,
            experience=candidate.experience,
            education=candidate.education,
            score=breakdown,
        )
        for candidate, breakdown in ranked
    ]
