"""
RizzedIn — ELO rating and composite profile-score engine.

Two independent rating update paths:

  Swipe (legacy, low weight)
      The swiped member plays the swiper.  Right swipe = win with K=32,
      left swipe = loss with K=16.  Rating floored at 100.

  Conversation (primary, high weight)
      After an AI evaluation, rubric.overall in [1, 10] is normalised to
      [0, 1] via (overall - 1) / 9 and used as the swiper's actual score
      against the persona's rating with K=48.  No floor is applied.

The composite profile score blends conversation quality, swipe appeal,
match rate and recency:

  0.70 * weighted_rubric * min(conversations / 5, 1)
+ 0.20 * wilson_lower_bound(right, right + left)
+ 0.05 * min(matches / conversations, 1)
+ 0.05 * max(0, 1 - days_since_last_conversation / 60)

scaled linearly onto [800, 1800].
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

import structlog

from app.config import get_settings
from app.models.types import as_utc
from app.models.user import RUBRIC_DIMENSIONS, RUBRIC_SEED_SCORE

logger = structlog.get_logger("rizzedin.elo_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

RUBRIC_WEIGHTS: dict[str, float] = {
    "overall": 0.35,
    "engagement": 0.25,
    "depth": 0.20,
    "authenticity": 0.10,
    "respectfulness": 0.10,
}

PROFILE_SCORE_MIN = 800.0
PROFILE_SCORE_MAX = 1800.0
CONFIDENCE_CONVERSATIONS = 5
RECENCY_WINDOW_DAYS = 60.0
WILSON_Z = 1.96


def expected_score(rating: float, opponent_rating: float) -> float:
    """Standard logistic ELO expectation for *rating* against *opponent_rating*."""
    return 1.0 / (1.0 + math.pow(10.0, (opponent_rating - rating) / 400.0))


def calculate_elo_change(
    rating: float,
    opponent_rating: float,
    actual_score: float,
    k_factor: float = 32,
) -> int:
    """Rating delta rounded half-up to a whole point."""
    delta = k_factor * (actual_score - expected_score(rating, opponent_rating))
    return int(math.floor(delta + 0.5))


def update_running_average(old_average: float, new_value: float, n: int) -> float:
    """Incremental mean where *n* is the sample count after adding *new_value*."""
    if n <= 0:
        raise ValueError(f"n must be positive, got {n}")
    return (old_average * (n - 1) + new_value) / n


def wilson_lower_bound(positive: int, total: int, z: float = WILSON_Z) -> float:
    """Lower bound of the Wilson score interval for a binomial proportion."""
    if total <= 0:
        return 0.0
    p_hat = positive / total
    z2 = z * z
    centre = p_hat + z2 / (2 * total)
    margin = z * math.sqrt((p_hat * (1 - p_hat) + z2 / (4 * total)) / total)
    return max(0.0, (centre - margin) / (1 + z2 / total))


class EloService:
    """Applies swipe and conversation outcomes to member ratings.

    All methods mutate the ORM instances they receive and leave flushing to
    the caller, so they can run inside whatever transaction holds the rows.
    """

    def __init__(self) -> None:
        settings = get_settings()
        self.default_rating: float = settings.ELO_DEFAULT
        self.floor: float = settings.ELO_FLOOR
        self.k_right: int = settings.ELO_K_SWIPE_RIGHT
        self.k_left: int = settings.ELO_K_SWIPE_LEFT
        self.k_conversation: int = settings.ELO_K_CONVERSATION

    # ── Swipe path ──────────────────────────────────────────────────

    def apply_swipe(self, swiped: Any, swiper: Any, direction: str) -> int:
        """Update the swiped member's counters and rating; return the delta."""
        swiped_rating = self._rating(swiped)
        swiper_rating = self._rating(swiper)

        if direction == "right":
            change = calculate_elo_change(swiped_rating, swiper_rating, 1, self.k_right)
            swiped.total_right_swipes = (swiped.total_right_swipes or 0) + 1
        elif direction == "left":
            change = calculate_elo_change(swiped_rating, swiper_rating, 0, self.k_left)
            swiped.total_left_swipes = (swiped.total_left_swipes or 0) + 1
        else:
            raise ValueError(f"Unknown swipe direction {direction!r}")

        swiped.elo_score = max(self.floor, swiped_rating + change)

        logger.info(
            "swipe_elo_applied",
            swiped_id=getattr(swiped, "id", None),
            direction=direction,
            change=change,
            new_rating=swiped.elo_score,
        )
        return change

    # ── Conversation path ───────────────────────────────────────────

    def apply_conversation_result(
        self,
        swiper: Any,
        persona: Any,
        rubric: dict[str, float],
        decision: str,
        now: datetime | None = None,
    ) -> dict:
        """Fold an evaluated conversation into the swiper's statistics.

        Returns a summary dict with the rating change and new profile score.
        """
        now = now or datetime.now(timezone.utc)

        overall = float(rubric.get("overall", RUBRIC_SEED_SCORE))
        normalised = (overall - 1.0) / 9.0
        swiper_rating = self._rating(swiper)
        change = calculate_elo_change(
            swiper_rating, self._rating(persona), normalised, self.k_conversation
        )
        # No floor on this path; see DESIGN.md open questions
        swiper.elo_score = swiper_rating + change

        n = (swiper.conversations_completed or 0) + 1
        swiper.conversations_completed = n
        if decision == "approved":
            swiper.ai_approvals_received = (swiper.ai_approvals_received or 0) + 1
        else:
            swiper.ai_rejections_received = (swiper.ai_rejections_received or 0) + 1

        previous = dict(swiper.avg_rubric_scores or {})
        swiper.avg_rubric_scores = {
            dim: round(
                update_running_average(
                    float(previous.get(dim, RUBRIC_SEED_SCORE)),
                    float(rubric.get(dim, RUBRIC_SEED_SCORE)),
                    n,
                ),
                4,
            )
            for dim in RUBRIC_DIMENSIONS
        }
        swiper.last_conversation_at = now
        swiper.profile_score = self.calculate_profile_score(swiper, now)

        logger.info(
            "conversation_elo_applied",
            swiper_id=getattr(swiper, "id", None),
            persona_id=getattr(persona, "id", None),
            overall=overall,
            change=change,
            new_rating=swiper.elo_score,
            profile_score=swiper.profile_score,
        )

        return {
            "elo_change": change,
            "elo_score": swiper.elo_score,
            "conversations_completed": n,
            "profile_score": swiper.profile_score,
        }

    # ── Composite profile score ─────────────────────────────────────

    def calculate_profile_score(self, user: Any, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        components = self.profile_score_components(user, now)
        blended = (
            0.70 * components["conversation_quality"]
            + 0.20 * components["swipe_appeal"]
            + 0.05 * components["match_rate"]
            + 0.05 * components["recency"]
        )
        score = PROFILE_SCORE_MIN + blended * (PROFILE_SCORE_MAX - PROFILE_SCORE_MIN)
        return round(max(PROFILE_SCORE_MIN, min(PROFILE_SCORE_MAX, score)), 2)

    def profile_score_components(self, user: Any, now: datetime) -> dict[str, float]:
        conversations = user.conversations_completed or 0
        scores = user.avg_rubric_scores or {}

        weighted = sum(
            weight * float(scores.get(dim, RUBRIC_SEED_SCORE))
            for dim, weight in RUBRIC_WEIGHTS.items()
        )
        rubric_norm = (weighted - 1.0) / 9.0
        confidence = min(conversations / CONFIDENCE_CONVERSATIONS, 1.0)

        right = user.total_right_swipes or 0
        left = user.total_left_swipes or 0

        match_rate = (
            min((user.match_count or 0) / conversations, 1.0) if conversations else 0.0
        )

        recency = 0.0
        last = as_utc(user.last_conversation_at)
        if last is not None:
            days = (now - last).total_seconds() / 86400.0
            recency = max(0.0, 1.0 - days / RECENCY_WINDOW_DAYS)

        return {
            "conversation_quality": rubric_norm * confidence,
            "swipe_appeal": wilson_lower_bound(right, right + left),
            "match_rate": match_rate,
            "recency": min(recency, 1.0),
        }

    # ── Helpers ─────────────────────────────────────────────────────

    def _rating(self, user: Any) -> float:
        rating = getattr(user, "elo_score", None)
        return float(rating) if rating is not None else self.default_rating
