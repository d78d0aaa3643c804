"""
RizzedIn — Feed similarity and ranking engine.

Orders candidate profiles for a requesting member.  A candidate is eligible
only if it is not the requester, has not been swiped by the requester, has
completed onboarding (and has a name), and passes the mutual dating-
preference filter.

Score per candidate:

  0.4 * cosine(requester.vector, candidate.vector)     (0 if either missing)
+ 0.2 * (1 - min(1, |elo_requester - elo_candidate| / 1000))
+ 0.2 * right / (right + left)                          (0 with no swipes)
+ 0.1 * max(0, 1 - days_since_joined / 30)
+ 0.1 * U(0, 1)

The random term is intentional feed diversity: candidates whose base
scores differ by less than 0.1 may swap places between calls.
"""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

import numpy as np
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.match import Swipe
from app.models.types import as_utc
from app.models.user import User

logger = structlog.get_logger("rizzedin.ranking_service")

# dating_preference -> genders it accepts
_PREFERENCE_GENDERS: dict[str, frozenset[str]] = {
    "men": frozenset({"male"}),
    "women": frozenset({"female"}),
}

_ELO_SPAN = 1000.0
_RECENCY_WINDOW_DAYS = 30.0


def cosine_similarity(vec_a: Sequence[float] | None, vec_b: Sequence[float] | None) -> float:
    """Cosine similarity; 0 for missing, mismatched or zero-magnitude vectors."""
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0
    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)
    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


def matches_preference(preference: str | None, gender: str | None) -> bool:
    """True if someone with *preference* is interested in *gender*."""
    if preference == "both":
        return True
    accepted = _PREFERENCE_GENDERS.get(preference or "")
    return accepted is not None and gender in accepted


def is_mutual_interest(requester: Any, candidate: Any) -> bool:
    return matches_preference(
        requester.dating_preference, candidate.gender
    ) and matches_preference(candidate.dating_preference, requester.gender)


class RankingService:
    """Score and order candidate profiles for the discovery feed."""

    def __init__(self, rng: random.Random | None = None) -> None:
        settings = get_settings()
        self.weights: dict[str, float] = settings.ranking_weights
        self.default_elo: float = settings.ELO_DEFAULT
        self.default_limit: int = settings.FEED_DEFAULT_LIMIT
        self.leaderboard_limit: int = settings.LEADERBOARD_DEFAULT_LIMIT
        self._rng = rng or random.Random()

    # ── Scoring ─────────────────────────────────────────────────────

    def score_candidate(
        self,
        requester: Any,
        candidate: Any,
        now: datetime | None = None,
    ) -> dict[str, float]:
        """Return the weighted components and totals for one candidate.

        ``base`` excludes the random term; ``total`` includes it.
        """
        now = now or datetime.now(timezone.utc)

        vector = cosine_similarity(requester.profile_vector, candidate.profile_vector)

        requester_elo = self._elo(requester)
        candidate_elo = self._elo(candidate)
        elo = max(0.0, 1.0 - abs(requester_elo - candidate_elo) / _ELO_SPAN)

        right = candidate.total_right_swipes or 0
        left = candidate.total_left_swipes or 0
        popularity = right / (right + left) if (right + left) > 0 else 0.0

        recency = 0.0
        joined = as_utc(candidate.created_at)
        if joined is not None:
            days = (now - joined).total_seconds() / 86400.0
            recency = min(1.0, max(0.0, 1.0 - days / _RECENCY_WINDOW_DAYS))

        jitter = self._rng.random()

        base = (
            self.weights["vector"] * vector
            + self.weights["elo"] * elo
            + self.weights["popularity"] * popularity
            + self.weights["recency"] * recency
        )
        return {
            "vector": vector,
            "elo": elo,
            "popularity": popularity,
            "recency": recency,
            "random": jitter,
            "base": base,
            "total": base + self.weights["random"] * jitter,
        }

    def is_eligible(
        self,
        requester: Any,
        candidate: Any,
        swiped_ids: set[str],
    ) -> bool:
        if candidate.id == requester.id or candidate.id in swiped_ids:
            return False
        if not candidate.onboarding_completed or not candidate.name:
            return False
        return is_mutual_interest(requester, candidate)

    def rank_candidates(
        self,
        requester: Any,
        candidates: Iterable[Any],
        swiped_ids: Iterable[str] = (),
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[tuple[Any, dict[str, float]]]:
        """Filter, score and sort *candidates*; highest total first."""
        now = now or datetime.now(timezone.utc)
        swiped = set(swiped_ids)
        limit = self.default_limit if limit is None else limit

        scored = [
            (candidate, self.score_candidate(requester, candidate, now))
            for candidate in candidates
            if self.is_eligible(requester, candidate, swiped)
        ]
        scored.sort(key=lambda item: item[1]["total"], reverse=True)
        return scored[:limit]

    # ── Persistence-backed queries ──────────────────────────────────

    async def get_recommendations(
        self,
        user_id: str,
        db_session: AsyncSession,
        limit: int | None = None,
    ) -> list[tuple[User, dict[str, float]]]:
        log = logger.bind(user_id=user_id)

        requester = await db_session.get(User, user_id)
        if requester is None or not requester.onboarding_completed:
            log.info("recommendations_skipped", reason="requester_not_onboarded")
            return []

        swiped_result = await db_session.execute(
            select(Swipe.swiped_id).where(Swipe.swiper_id == user_id)
        )
        swiped_ids = set(swiped_result.scalars().all())

        pool_result = await db_session.execute(
            select(User).where(
                User.id != user_id,
                User.onboarding_completed.is_(True),
            )
        )
        pool = pool_result.scalars().all()

        ranked = self.rank_candidates(requester, pool, swiped_ids, limit)
        log.info(
            "recommendations_ranked",
            pool_size=len(pool),
            swiped=len(swiped_ids),
            returned=len(ranked),
        )
        return ranked

    async def get_leaderboard(
        self,
        db_session: AsyncSession,
        limit: int | None = None,
    ) -> list[User]:
        stmt = (
            select(User)
            .where(User.onboarding_completed.is_(True), User.name.is_not(None))
            .order_by(User.elo_score.desc())
            .limit(self.leaderboard_limit if limit is None else limit)
        )
        result = await db_session.execute(stmt)
        return list(result.scalars().all())

    # ── Helpers ─────────────────────────────────────────────────────

    def _elo(self, user: Any) -> float:
        return float(user.elo_score) if user.elo_score is not None else self.default_elo
