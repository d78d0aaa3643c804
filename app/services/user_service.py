"""
RizzedIn — Member and persona profile management.

Members are created empty at first sign-in, onboarded with demographics,
then enriched from their LinkedIn profile.  The profile vector is
recomputed whenever an input to it changes.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import ROLE_MEMBER, ROLE_PERSONA, User
from app.services.exceptions import NotFoundError, UnauthorizedError
from app.services.vectorizer import ProfileVectorizer

logger = structlog.get_logger("rizzedin.user_service")

GENDERS = frozenset({"male", "female", "other"})
DATING_PREFERENCES = frozenset({"men", "women", "both"})
MIN_AGE = 18

# Fields a member (or an admin editing a persona) may patch directly
_EDITABLE_FIELDS = frozenset(
    {"linkedin_url", "age", "gender", "dating_preference", "name", "bio", "about",
     "image", "ai_persona_prompt"}
)
_VECTOR_FIELDS = frozenset({"age", "gender", "bio", "about", "experience", "education"})


def validate_demographics(
    age: int | None = None,
    gender: str | None = None,
    dating_preference: str | None = None,
) -> None:
    """Raise ``ValueError`` for out-of-range demographic values."""
    if age is not None and age < MIN_AGE:
        raise ValueError(f"age must be at least {MIN_AGE}, got {age}")
    if gender is not None and gender not in GENDERS:
        raise ValueError(f"gender must be one of {sorted(GENDERS)}, got {gender!r}")
    if dating_preference is not None and dating_preference not in DATING_PREFERENCES:
        raise ValueError(
            f"dating_preference must be one of {sorted(DATING_PREFERENCES)}, "
            f"got {dating_preference!r}"
        )


def has_demographics(user: User) -> bool:
    return (user.age or 0) >= MIN_AGE and user.gender in GENDERS


class UserService:
    def __init__(self, vectorizer: ProfileVectorizer | None = None) -> None:
        self._vectorizer = vectorizer or ProfileVectorizer()

    # ── Members ─────────────────────────────────────────────────────

    async def create_user(
        self,
        user_id: str,
        db_session: AsyncSession,
        linkedin_url: str | None = None,
        role: int = ROLE_MEMBER,
    ) -> tuple[User, bool]:
        """Create an empty profile; an existing id is returned unchanged."""
        existing = await db_session.get(User, user_id)
        if existing is not None:
            return existing, False

        user = User(id=user_id, role=role, linkedin_url=linkedin_url)
        db_session.add(user)
        await db_session.flush()
        logger.info("user_created", user_id=user_id, role=role)
        return user, True

    async def get_user(self, user_id: str, db_session: AsyncSession) -> User:
        user = await db_session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def complete_onboarding(
        self,
        user_id: str,
        age: int,
        gender: str,
        dating_preference: str,
        db_session: AsyncSession,
        linkedin_url: str | None = None,
    ) -> User:
        validate_demographics(age, gender, dating_preference)
        user = await self.get_user(user_id, db_session)

        user.linkedin_url = linkedin_url or user.linkedin_url
        user.age = age
        user.gender = gender
        user.dating_preference = dating_preference
        user.onboarding_completed = True
        self._vectorizer.refresh_user_vector(user)

        await db_session.flush()
        logger.info("onboarding_completed", user_id=user_id)
        return user

    async def update_user(
        self,
        user_id: str,
        updates: dict[str, Any],
        db_session: AsyncSession,
    ) -> User:
        """Patch the given fields; ``None`` values are ignored."""
        user = await self.get_user(user_id, db_session)
        self._apply_updates(user, updates)
        await db_session.flush()
        return user

    async def update_persona_prompt(
        self, user_id: str, prompt: str | None, db_session: AsyncSession
    ) -> User:
        user = await self.get_user(user_id, db_session)
        user.ai_persona_prompt = prompt or None
        await db_session.flush()
        logger.info("persona_prompt_updated", user_id=user_id, cleared=not prompt)
        return user

    def apply_enrichment(
        self,
        user: User,
        *,
        name: str | None = None,
        image: str | None = None,
        bio: str | None = None,
        about: str | None = None,
        experience: list[dict] | None = None,
        education: list[dict] | None = None,
    ) -> User:
        """Store scraped profile data.

        The vector is refreshed and the user marked onboarded only once age
        and gender are known; otherwise ``complete_onboarding`` does both.
        """
        user.name = name or user.name
        user.image = image or user.image
        user.bio = bio or user.bio
        user.about = about or user.about
        user.experience = experience if experience is not None else user.experience
        user.education = education if education is not None else user.education
        if has_demographics(user):
            user.onboarding_completed = True
            self._vectorizer.refresh_user_vector(user)

        logger.info(
            "enrichment_applied",
            user_id=user.id,
            experience_count=len(user.experience or []),
            education_count=len(user.education or []),
        )
        return user

    # ── Admin persona management ────────────────────────────────────

    async def list_personas(self, admin_id: str, db_session: AsyncSession) -> list[User]:
        await self.require_admin(admin_id, db_session)
        stmt = (
            select(User)
            .where(User.role == ROLE_PERSONA)
            .order_by(User.created_at.desc())
        )
        return list((await db_session.execute(stmt)).scalars().all())

    async def update_persona(
        self,
        admin_id: str,
        persona_id: str,
        updates: dict[str, Any],
        db_session: AsyncSession,
    ) -> User:
        await self.require_admin(admin_id, db_session)
        persona = await self._get_persona(persona_id, db_session)
        self._apply_updates(persona, updates)
        await db_session.flush()
        logger.info("persona_updated", admin_id=admin_id, persona_id=persona_id)
        return persona

    async def delete_persona(
        self, admin_id: str, persona_id: str, db_session: AsyncSession
    ) -> None:
        await self.require_admin(admin_id, db_session)
        persona = await self._get_persona(persona_id, db_session)
        await db_session.delete(persona)
        await db_session.flush()
        logger.info("persona_deleted", admin_id=admin_id, persona_id=persona_id)

    # ── Helpers ─────────────────────────────────────────────────────

    def _apply_updates(self, user: User, updates: dict[str, Any]) -> None:
        changes = {
            key: value
            for key, value in updates.items()
            if key in _EDITABLE_FIELDS and value is not None
        }
        validate_demographics(
            changes.get("age"), changes.get("gender"), changes.get("dating_preference")
        )
        for key, value in changes.items():
            setattr(user, key, value)

        if _VECTOR_FIELDS & changes.keys() and user.onboarding_completed:
            self._vectorizer.refresh_user_vector(user)

    async def require_admin(self, admin_id: str, db_session: AsyncSession) -> User:
        admin = await db_session.get(User, admin_id)
        if admin is None or not admin.is_admin:
            logger.warning("admin_required", user_id=admin_id)
            raise UnauthorizedError("Admin role required")
        return admin

    @staticmethod
    async def _get_persona(persona_id: str, db_session: AsyncSession) -> User:
        persona = await db_session.get(User, persona_id)
        if persona is None or not persona.is_persona:
            raise NotFoundError("Persona", persona_id)
        return persona
