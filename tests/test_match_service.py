"""Tests for match creation, approval and listing."""
import uuid

import pytest
import pytest_asyncio

from app.models.user import User
from app.services.exceptions import NotFoundError, UnauthorizedError
from app.services.match_service import MatchService


@pytest.fixture
def match_service():
    return MatchService()


@pytest_asyncio.fixture
async def match(match_service, db_session, member, persona):
    created, _ = await match_service.create_match("alice", "persona_bob", db_session)
    await db_session.commit()
    return created


class TestCreateMatch:
    @pytest.mark.asyncio
    async def test_creates_once_per_pair(self, match_service, db_session, member, persona):
        first, created = await match_service.create_match("alice", "persona_bob", db_session)
        # Reverse order is the same unordered pair
        second, created_again = await match_service.create_match("persona_bob", "alice", db_session)

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert member.match_count == 1
        assert persona.match_count == 1

    @pytest.mark.asyncio
    async def test_counts_survive_stale_copies(
        self, match_service, session_factory, db_session, member, persona, user_factory
    ):
        db_session.add(user_factory("carol"))
        await db_session.commit()

        async with session_factory() as first, session_factory() as second:
            # The first session loads the persona before the second one matches it
            stale = await first.get(User, "persona_bob")
            assert stale.match_count == 0

            await match_service.create_match("carol", "persona_bob", second)
            await second.commit()

            await match_service.create_match("alice", "persona_bob", first)
            await first.commit()
            assert stale.match_count == 2

        async with session_factory() as fresh:
            bob = await fresh.get(User, "persona_bob")
            alice = await fresh.get(User, "alice")
            carol = await fresh.get(User, "carol")
        assert bob.match_count == 2
        assert (alice.match_count, carol.match_count) == (1, 1)

    @pytest.mark.asyncio
    async def test_new_match_is_unapproved(self, match):
        assert match.user1_id == "alice"
        assert match.user2_id == "persona_bob"
        assert not match.user1_approved
        assert not match.user2_approved
        assert not match.both_approved


class TestApproveMatch:
    @pytest.mark.asyncio
    async def test_one_side_is_not_enough(self, match_service, db_session, match):
        approved = await match_service.approve_match(match.id, "alice", db_session)
        assert approved.user1_approved
        assert not approved.both_approved

    @pytest.mark.parametrize("order", [("alice", "persona_bob"), ("persona_bob", "alice")])
    @pytest.mark.asyncio
    async def test_both_sides_in_either_order(self, match_service, db_session, match, order):
        for user_id in order:
            result = await match_service.approve_match(match.id, user_id, db_session)
        assert result.both_approved

    @pytest.mark.asyncio
    async def test_repeat_approval_is_idempotent(self, match_service, db_session, match):
        await match_service.approve_match(match.id, "alice", db_session)
        again = await match_service.approve_match(match.id, "alice", db_session)
        assert again.user1_approved
        assert not again.user2_approved
        assert not again.both_approved

    @pytest.mark.asyncio
    async def test_outsider_cannot_approve(self, match_service, db_session, match):
        with pytest.raises(UnauthorizedError):
            await match_service.approve_match(match.id, "mallory", db_session)
        assert not match.user1_approved and not match.user2_approved

    @pytest.mark.asyncio
    async def test_unknown_match(self, match_service, db_session):
        with pytest.raises(NotFoundError):
            await match_service.approve_match(uuid.uuid4(), "alice", db_session)


class TestUserMatches:
    @pytest.mark.asyncio
    async def test_linkedin_hidden_until_both_approve(self, match_service, db_session, match):
        [item] = await match_service.get_user_matches("alice", db_session)
        assert item["other_user"]["id"] == "persona_bob"
        assert item["other_user"]["linkedin_url"] is None

        await match_service.approve_match(match.id, "alice", db_session)
        await match_service.approve_match(match.id, "persona_bob", db_session)

        [item] = await match_service.get_user_matches("alice", db_session)
        assert item["both_approved"]
        assert item["other_user"]["linkedin_url"] == "https://www.linkedin.com/in/persona_bob"

    @pytest.mark.asyncio
    async def test_approvals_are_seen_from_each_side(self, match_service, db_session, match):
        await match_service.approve_match(match.id, "persona_bob", db_session)

        [mine] = await match_service.get_user_matches("alice", db_session)
        [theirs] = await match_service.get_user_matches("persona_bob", db_session)
        assert (mine["my_approval"], mine["their_approval"]) == (False, True)
        assert (theirs["my_approval"], theirs["their_approval"]) == (True, False)
        assert theirs["other_user"]["id"] == "alice"

    @pytest.mark.asyncio
    async def test_no_matches(self, match_service, db_session, member):
        assert await match_service.get_user_matches("alice", db_session) == []
