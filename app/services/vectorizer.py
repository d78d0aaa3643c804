"""
RizzedIn — Profile vectorizer.

Turns a member's demographic, experience and education attributes into the
fixed-length feature vector used by the feed's cosine-similarity term.

Vector layout (11 dimensions, each roughly in [0, 1]):

  0      age            (age - 18) / 82
  1-3    gender         one-hot male / female / other
  4      bio length     min(len / 200, 1)
  5      about length   min(len / 500, 1)
  6      experience     min(count / 5, 1)
  7      avg tenure     min(avg_months / 60, 1)
  8      education      min(count / 3, 1)
  9      has degree     0 / 1
  10     has field      0 / 1
"""

from __future__ import annotations

import re
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

_YEARS_RE = re.compile(r"(\d+)\s*yr")
_MONTHS_RE = re.compile(r"(\d+)\s*mo")


class ProfileVectorizer:
    """Deterministic, side-effect free profile feature extraction."""

    VECTOR_DIM: int = 11

    GENDERS: tuple[str, ...] = ("male", "female", "other")

    MIN_AGE: int = 18
    AGE_SPAN: float = 82.0
    BIO_CAP: float = 200.0
    ABOUT_CAP: float = 500.0
    EXPERIENCE_CAP: float = 5.0
    TENURE_CAP_MONTHS: float = 60.0
    EDUCATION_CAP: float = 3.0

    # ── Public API ──────────────────────────────────────────────────

    def vectorize(
        self,
        *,
        age: int,
        gender: str,
        bio: str | None = None,
        about: str | None = None,
        experience: list[dict[str, Any]] | None = None,
        education: list[dict[str, Any]] | None = None,
    ) -> list[float]:
        experience = experience or []
        education = education or []

        vector: list[float] = [(age - self.MIN_AGE) / self.AGE_SPAN]
        vector.extend(1.0 if gender == g else 0.0 for g in self.GENDERS)

        vector.append(min(len(bio) / self.BIO_CAP, 1.0) if bio else 0.0)
        vector.append(min(len(about) / self.ABOUT_CAP, 1.0) if about else 0.0)

        vector.append(min(len(experience) / self.EXPERIENCE_CAP, 1.0))
        vector.append(
            min(self.average_tenure_months(experience) / self.TENURE_CAP_MONTHS, 1.0)
        )

        vector.append(min(len(education) / self.EDUCATION_CAP, 1.0))
        vector.append(1.0 if any(edu.get("degree") for edu in education) else 0.0)
        vector.append(
            1.0 if any(edu.get("fieldOfStudy") for edu in education) else 0.0
        )

        return vector

    def vectorize_user(self, user: Any) -> list[float]:
        """Vectorize an ORM ``User`` (or anything exposing the same attributes)."""
        vector = self.vectorize(
            age=user.age or 0,
            gender=user.gender or "",
            bio=user.bio,
            about=user.about,
            experience=user.experience,
            education=user.education,
        )
        logger.debug("profile_vectorized", user_id=getattr(user, "id", None))
        return vector

    def refresh_user_vector(self, user: Any) -> list[float]:
        """Recompute and store the vector on *user*; returns the new vector."""
        user.profile_vector = self.vectorize_user(user)
        return user.profile_vector

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    def parse_duration_months(duration: str | None) -> int:
        """Parse free-text tenure such as ``"2 yrs 3 mos"`` into months.

        Unrecognised text yields 0.
        """
        if not duration:
            return 0
        years = _YEARS_RE.search(duration)
        months = _MONTHS_RE.search(duration)
        return (int(years.group(1)) * 12 if years else 0) + (
            int(months.group(1)) if months else 0
        )

    def average_tenure_months(self, experience: list[dict[str, Any]]) -> float:
        # Entries that parse to zero months are excluded from the average
        durations = [
            d
            for d in (self.parse_duration_months(exp.get("duration")) for exp in experience)
            if d > 0
        ]
        if not durations:
            return 0.0
        return sum(durations) / len(durations)
