"""
RizzedIn — AI persona chat API

Opening a chat, reading it back, listing a member's chats and sending
messages.  The tenth message returns the evaluation outcome instead of a
persona reply.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import to_http_exception
from app.database import get_db
from app.models.chat import Chat
from app.schemas.chat import (
    ChatCreate,
    ChatResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from app.services.chat_service import ChatService
from app.services.exceptions import RizzedInError

logger = structlog.get_logger("rizzedin.api.chats")

router = APIRouter()

_chat_service = ChatService()


@router.post("/", response_model=ChatResponse, summary="Get or create a chat")
async def get_or_create_chat(
    payload: ChatCreate,
    db: AsyncSession = Depends(get_db),
) -> Chat:
    try:
        return await _chat_service.get_or_create_chat(
            payload.swiper_id,
            payload.swiped_id,
            db,
            new_session=payload.new_session,
        )
    except RizzedInError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/user/{swiper_id}",
    response_model=list[ChatResponse],
    summary="Chats started by a member, newest first",
)
async def list_user_chats(
    swiper_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[Chat]:
    return await _chat_service.list_user_chats(swiper_id, db)


@router.get("/{chat_id}", response_model=ChatResponse, summary="Get a chat")
async def get_chat(chat_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> Chat:
    try:
        return await _chat_service.get_chat(chat_id, db)
    except RizzedInError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/{chat_id}/messages",
    response_model=SendMessageResponse,
    summary="Send a message to the persona",
)
async def send_message(
    chat_id: uuid.UUID,
    payload: SendMessageRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Returns 409 once the chat has reached its message cap and 502 when
    the persona reply could not be generated (the sent message is kept)."""
    log = logger.bind(chat_id=str(chat_id), sender_id=payload.sender_id)
    try:
        result = await _chat_service.send_message(
            chat_id, payload.sender_id, payload.content, db
        )
    except RizzedInError as exc:
        log.info("send_message_failed", error_type=type(exc).__name__)
        raise to_http_exception(exc) from exc
    return result
