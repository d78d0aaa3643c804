"""Tests for swipe recording."""
import pytest
from sqlalchemy import select

from app.models.chat import Chat
from app.services.chat_service import ChatService
from app.services.exceptions import InvalidStateError, NotFoundError
from app.services.swipe_service import SwipeService


@pytest.fixture
def swipe_service(fake_gemini, locks):
    return SwipeService(chat_service=ChatService(gemini_service=fake_gemini, locks=locks), locks=locks)


class TestRecordSwipe:
    @pytest.mark.asyncio
    async def test_right_swipe_opens_chat(self, swipe_service, db_session, member, persona):
        result = await swipe_service.record_swipe("alice", "persona_bob", "right", db_session)

        assert result["first_swipe"] is True
        assert result["elo_change"] == 16
        assert result["chat_id"] is not None
        assert persona.elo_score == 1016
        assert persona.total_right_swipes == 1
        assert member.elo_score == 1000.0

        chat = await db_session.get(Chat, result["chat_id"])
        assert chat.swiper_id == "alice"
        assert chat.swiped_id == "persona_bob"

    @pytest.mark.asyncio
    async def test_left_swipe_opens_nothing(self, swipe_service, db_session, member, persona):
        result = await swipe_service.record_swipe("alice", "persona_bob", "left", db_session)

        assert result["chat_id"] is None
        assert result["elo_change"] == -8
        assert persona.total_left_swipes == 1
        assert (await db_session.execute(select(Chat))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_repeat_swipe_overwrites_direction_only(self, swipe_service, db_session, member, persona):
        first = await swipe_service.record_swipe("alice", "persona_bob", "left", db_session)
        second = await swipe_service.record_swipe("alice", "persona_bob", "right", db_session)

        assert second["first_swipe"] is False
        assert second["elo_change"] == 0
        assert second["swipe_id"] == first["swipe_id"]
        assert persona.total_left_swipes == 1
        assert persona.total_right_swipes == 0
        assert persona.elo_score == 992
        assert await swipe_service.get_swiped_ids("alice", db_session) == ["persona_bob"]

    @pytest.mark.asyncio
    async def test_repeat_right_swipe_reuses_chat(self, swipe_service, db_session, member, persona):
        first = await swipe_service.record_swipe("alice", "persona_bob", "right", db_session)
        second = await swipe_service.record_swipe("alice", "persona_bob", "right", db_session)
        assert first["chat_id"] == second["chat_id"]

    @pytest.mark.asyncio
    async def test_self_swipe(self, swipe_service, db_session, member):
        with pytest.raises(InvalidStateError):
            await swipe_service.record_swipe("alice", "alice", "right", db_session)

    @pytest.mark.asyncio
    async def test_bad_direction(self, swipe_service, db_session, member, persona):
        with pytest.raises(ValueError):
            await swipe_service.record_swipe("alice", "persona_bob", "up", db_session)

    @pytest.mark.asyncio
    async def test_unknown_user(self, swipe_service, db_session, member):
        with pytest.raises(NotFoundError):
            await swipe_service.record_swipe("alice", "ghost", "right", db_session)
