"""
RizzedIn — Admin persona management API

Listing, editing, deleting and importing role-0 personas.  The caller's id
is passed as ``admin_id`` and must belong to an admin (role >= 2).
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import to_http_exception
from app.database import get_db
from app.models.user import User
from app.schemas.user import (
    PersonaImportRequest,
    PersonaImportResponse,
    PersonaUpdate,
    UserResponse,
)
from app.services.exceptions import RizzedInError
from app.services.persona_import_service import PersonaImportService
from app.services.user_service import UserService

logger = structlog.get_logger("rizzedin.api.admin.personas")

router = APIRouter()

_user_service = UserService()
_import_service: PersonaImportService | None = None


def _get_import_service() -> PersonaImportService:
    global _import_service
    if _import_service is None:
        _import_service = PersonaImportService(user_service=_user_service)
    return _import_service


@router.get("/", response_model=list[UserResponse], summary="List personas")
async def list_personas(
    admin_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
) -> list[User]:
    try:
        return await _user_service.list_personas(admin_id, db)
    except RizzedInError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/import",
    response_model=PersonaImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import a persona from a LinkedIn URL",
)
async def import_persona(
    payload: PersonaImportRequest,
    admin_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        await _user_service.require_admin(admin_id, db)
        return await _get_import_service().import_persona(payload.linkedin_url, db)
    except RizzedInError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{persona_id}", response_model=UserResponse, summary="Edit a persona")
async def update_persona(
    persona_id: str,
    payload: PersonaUpdate,
    admin_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
) -> User:
    try:
        return await _user_service.update_persona(
            admin_id, persona_id, payload.model_dump(exclude_unset=True), db
        )
    except (RizzedInError, ValueError) as exc:
        raise to_http_exception(exc) from exc


@router.delete(
    "/{persona_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a persona",
)
async def delete_persona(
    persona_id: str,
    admin_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await _user_service.delete_persona(admin_id, persona_id, db)
    except RizzedInError as exc:
        raise to_http_exception(exc) from exc
