"""
RizzedIn — Users API

Endpoints for sign-in provisioning, onboarding, profile edits, persona
instructions and LinkedIn enrichment.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import to_http_exception
from app.database import get_db
from app.models.user import User
from app.schemas.user import (
    EnrichRequest,
    EnrichResponse,
    OnboardingRequest,
    PersonaPromptUpdate,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from app.services.enrichment_service import EnrichmentService
from app.services.exceptions import RizzedInError
from app.services.user_service import UserService

logger = structlog.get_logger("rizzedin.api.users")

router = APIRouter()

# ── Service singletons ────────────────────────────────────────────────────────

_user_service = UserService()
_enrichment_service: EnrichmentService | None = None


def _get_enrichment_service() -> EnrichmentService:
    global _enrichment_service
    if _enrichment_service is None:
        _enrichment_service = EnrichmentService(user_service=_user_service)
    return _enrichment_service


# ──────────────────────────────────────────────────────────────────────────────
# POST /: Provision a user at first sign-in
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user (idempotent on id)",
)
async def create_user(
    payload: UserCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Create an empty profile; an existing id is returned with 200."""
    user, created = await _user_service.create_user(
        payload.id, db, linkedin_url=payload.linkedin_url
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return user


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id}: Get user by ID
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/{user_id}", response_model=UserResponse, summary="Get user by ID")
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)) -> User:
    try:
        return await _user_service.get_user(user_id, db)
    except RizzedInError as exc:
        raise to_http_exception(exc) from exc


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/onboarding: Complete onboarding
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/onboarding",
    response_model=UserResponse,
    summary="Complete onboarding with demographics",
)
async def complete_onboarding(
    user_id: str,
    payload: OnboardingRequest,
    db: AsyncSession = Depends(get_db),
) -> User:
    try:
        return await _user_service.complete_onboarding(
            user_id,
            payload.age,
            payload.gender,
            payload.dating_preference,
            db,
            linkedin_url=payload.linkedin_url,
        )
    except (RizzedInError, ValueError) as exc:
        raise to_http_exception(exc) from exc


# ──────────────────────────────────────────────────────────────────────────────
# PATCH /{user_id}: Update user
# ──────────────────────────────────────────────────────────────────────────────

@router.patch("/{user_id}", response_model=UserResponse, summary="Update user details")
async def update_user(
    user_id: str,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
) -> User:
    try:
        return await _user_service.update_user(
            user_id, payload.model_dump(exclude_unset=True), db
        )
    except (RizzedInError, ValueError) as exc:
        raise to_http_exception(exc) from exc


# ──────────────────────────────────────────────────────────────────────────────
# PUT /{user_id}/persona-prompt: Custom persona instructions
# ──────────────────────────────────────────────────────────────────────────────

@router.put(
    "/{user_id}/persona-prompt",
    response_model=UserResponse,
    summary="Set or clear the AI persona instructions",
)
async def update_persona_prompt(
    user_id: str,
    payload: PersonaPromptUpdate,
    db: AsyncSession = Depends(get_db),
) -> User:
    try:
        return await _user_service.update_persona_prompt(
            user_id, payload.ai_persona_prompt, db
        )
    except RizzedInError as exc:
        raise to_http_exception(exc) from exc


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/enrich: Scrape and store LinkedIn data
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/enrich",
    response_model=EnrichResponse,
    summary="Enrich the profile from LinkedIn",
)
async def enrich_user(
    user_id: str,
    payload: EnrichRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    log = logger.bind(user_id=user_id)
    log.info("enrich_user_start")
    try:
        summary = await _get_enrichment_service().enrich_user(
            user_id, payload.linkedin_url, db
        )
    except RizzedInError as exc:
        log.warning("enrich_user_failed", error=str(exc))
        raise to_http_exception(exc) from exc

    log.info("enrich_user_complete", **summary)
    return summary
