"""
RizzedIn — Bulk persona import.

Turns a LinkedIn URL into a role-0 practice persona: the profile is
fetched, demographics are inferred by the model (with fixed defaults when
inference fails), and the enrichment fields are parsed and stored.
"""

from __future__ import annotations

import re
import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.user import ROLE_PERSONA, User
from app.services.enrichment_service import EnrichmentService
from app.services.evaluation_parser import extract_json_object
from app.services.exceptions import (
    ConflictError,
    UpstreamParseError,
    UpstreamUnavailableError,
)
from app.services.gemini_service import GeminiService
from app.services.user_service import (
    DATING_PREFERENCES,
    GENDERS,
    MIN_AGE,
    UserService,
)

logger = structlog.get_logger("rizzedin.persona_import")

DEFAULT_DEMOGRAPHICS: dict[str, Any] = {
    "age": 28,
    "gender": "other",
    "dating_preference": "both",
}

_USERNAME_RE = re.compile(r"linkedin\.com/in/([^/?#]+)")

_DEMOGRAPHICS_PROMPT = """Analyze this LinkedIn profile and extract demographic information. Be intelligent and make educated inferences based on the profile content.

Profile Name: {name}
Profile Content: {text}

Based on the profile information (graduation years, work history, name, etc.), provide:
1. Estimated age (as a number between 20-65)
2. Gender (male, female, or other) - infer from name and context
3. Dating preference (men, women, or both) - default to "both" if uncertain

Return ONLY a JSON object with this exact format:
{{"age": 30, "gender": "male", "datingPreference": "both"}}"""

# Characters of profile text sent for inference
_PROFILE_TEXT_LIMIT = 6000


def persona_id_for(linkedin_url: str) -> str:
    match = _USERNAME_RE.search(linkedin_url)
    slug = match.group(1).lower() if match else uuid.uuid4().hex[:8]
    return f"persona_{slug}"


def coerce_demographics(raw: dict[str, Any]) -> dict[str, Any]:
    """Keep valid model-supplied values, default the rest."""
    result = dict(DEFAULT_DEMOGRAPHICS)

    try:
        age = int(raw.get("age"))
    except (TypeError, ValueError):
        age = None
    if age is not None and age >= MIN_AGE:
        result["age"] = age

    gender = str(raw.get("gender") or "").lower()
    if gender in GENDERS:
        result["gender"] = gender

    preference = str(raw.get("datingPreference") or raw.get("dating_preference") or "").lower()
    if preference in DATING_PREFERENCES:
        result["dating_preference"] = preference

    return result


class PersonaImportService:
    def __init__(
        self,
        gemini_service: GeminiService | None = None,
        enrichment_service: EnrichmentService | None = None,
        user_service: UserService | None = None,
    ) -> None:
        self._temperature = get_settings().DEMOGRAPHICS_TEMPERATURE
        self._gemini = gemini_service
        self._users = user_service or UserService()
        self._enrichment = enrichment_service or EnrichmentService(
            user_service=self._users
        )

    @property
    def gemini(self) -> GeminiService:
        if self._gemini is None:
            self._gemini = GeminiService()
        return self._gemini

    async def import_persona(
        self, linkedin_url: str, db_session: AsyncSession
    ) -> dict[str, Any]:
        """Create and enrich a persona for *linkedin_url*.

        Raises
        ------
        ConflictError
            A user with this LinkedIn URL already exists.
        UpstreamUnavailableError
            The profile could not be fetched.
        """
        log = logger.bind(linkedin_url=linkedin_url)

        duplicate = await db_session.execute(
            select(User.id).where(User.linkedin_url == linkedin_url).limit(1)
        )
        if duplicate.scalar_one_or_none() is not None:
            log.info("persona_import_duplicate")
            raise ConflictError("User with this LinkedIn URL already exists")

        profile = await self._enrichment.fetch_profile(linkedin_url)
        demographics = await self.infer_demographics(
            profile["text"], profile.get("name") or "Unknown"
        )

        persona_id = persona_id_for(linkedin_url)
        if await db_session.get(User, persona_id) is not None:
            persona_id = f"{persona_id}_{uuid.uuid4().hex[:6]}"

        persona, _ = await self._users.create_user(
            persona_id, db_session, linkedin_url=linkedin_url, role=ROLE_PERSONA
        )
        persona.age = demographics["age"]
        persona.gender = demographics["gender"]
        persona.dating_preference = demographics["dating_preference"]
        persona.elo_score = 1000.0

        summary = await self._enrichment.enrich_user(
            persona_id, linkedin_url, db_session, profile=profile
        )

        log.info("persona_imported", persona_id=persona_id, **demographics)
        return {"persona_id": persona_id, "demographics": demographics, **summary}

    async def infer_demographics(self, profile_text: str, name: str) -> dict[str, Any]:
        prompt = _DEMOGRAPHICS_PROMPT.format(
            name=name, text=profile_text[:_PROFILE_TEXT_LIMIT]
        )
        try:
            response = await self.gemini.generate(
                prompt,
                temperature=self._temperature,
                json_mode=True,
                max_output_tokens=100,
            )
            return coerce_demographics(extract_json_object(response))
        except (UpstreamUnavailableError, UpstreamParseError) as exc:
            logger.warning("demographics_inference_failed", error=str(exc))
            return dict(DEFAULT_DEMOGRAPHICS)
