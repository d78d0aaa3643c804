"""Unit tests for feed ranking."""
import random
from datetime import datetime, timedelta, timezone

import pytest

from app.models.match import Swipe
from app.services.ranking_service import (
    RankingService,
    cosine_similarity,
    is_mutual_interest,
    matches_preference,
)

NOW = datetime(2026, 5, 1, tzinfo=timezone.utc)


@pytest.fixture
def ranking():
    return RankingService(rng=random.Random(7))


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    @pytest.mark.parametrize("a,b", [(None, [1.0]), ([], [1.0]), ([0, 0], [1, 1]), ([1], [1, 2])])
    def test_degenerate_inputs_are_zero(self, a, b):
        assert cosine_similarity(a, b) == 0.0


class TestPreferenceFilter:
    def test_preference_mapping(self):
        assert matches_preference("men", "male")
        assert not matches_preference("men", "female")
        assert matches_preference("women", "female")
        assert matches_preference("both", "other")
        assert not matches_preference("", "male")

    def test_mutual_interest_requires_both_sides(self, user_factory):
        alice = user_factory("alice", gender="female", dating_preference="men")
        bob = user_factory("bob", gender="male", dating_preference="women")
        carl = user_factory("carl", gender="male", dating_preference="men")
        assert is_mutual_interest(alice, bob)
        assert not is_mutual_interest(alice, carl)


class TestScoreCandidate:
    def test_popularity_is_right_swipe_share(self, ranking, user_factory):
        requester = user_factory("alice")
        candidate = user_factory("bob", total_right_swipes=3, total_left_swipes=1)
        scores = ranking.score_candidate(requester, candidate, NOW)
        assert scores["popularity"] == pytest.approx(0.75)

    def test_no_swipes_means_zero_popularity(self, ranking, user_factory):
        scores = ranking.score_candidate(user_factory("alice"), user_factory("bob"), NOW)
        assert scores["popularity"] == 0.0

    def test_identical_profiles(self, ranking, user_factory):
        vector = [0.5] * 11
        a = user_factory("alice", profile_vector=vector, created_at=NOW)
        b = user_factory("bob", profile_vector=vector, created_at=NOW)
        scores = ranking.score_candidate(a, b, NOW)
        assert scores["vector"] == pytest.approx(1.0)
        assert scores["elo"] == 1.0
        assert scores["recency"] == 1.0
        assert scores["base"] == pytest.approx(0.4 + 0.2 + 0.1)

    def test_elo_term_floors_at_zero(self, ranking, user_factory):
        a = user_factory("alice", elo_score=2500.0)
        b = user_factory("bob", elo_score=1000.0)
        assert ranking.score_candidate(a, b, NOW)["elo"] == 0.0

    def test_recency_window(self, ranking, user_factory):
        old = user_factory("bob", created_at=NOW - timedelta(days=45))
        half = user_factory("carl", created_at=NOW - timedelta(days=15))
        assert ranking.score_candidate(user_factory("alice"), old, NOW)["recency"] == 0.0
        assert ranking.score_candidate(user_factory("alice"), half, NOW)["recency"] == pytest.approx(0.5)

    def test_total_includes_bounded_jitter(self, ranking, user_factory):
        scores = ranking.score_candidate(user_factory("alice"), user_factory("bob"), NOW)
        assert 0.0 <= scores["total"] - scores["base"] <= 0.1


class TestRankCandidates:
    def test_clear_base_gap_always_orders(self, user_factory):
        requester = user_factory("alice", profile_vector=[1.0] * 11)
        strong = user_factory("bob", profile_vector=[1.0] * 11, total_right_swipes=5)
        weak = user_factory("carl", profile_vector=[0.0] * 11, total_left_swipes=5)
        for seed in range(25):
            service = RankingService(rng=random.Random(seed))
            ranked = service.rank_candidates(requester, [weak, strong], now=NOW)
            assert [c.id for c, _ in ranked] == ["bob", "carl"]

    def test_filters_self_swiped_and_unfinished(self, ranking, user_factory):
        requester = user_factory("alice")
        pool = [
            requester,
            user_factory("bob"),
            user_factory("carl"),
            user_factory("dana", onboarding_completed=False),
            user_factory("eve", name=None),
        ]
        ranked = ranking.rank_candidates(requester, pool, swiped_ids={"carl"}, now=NOW)
        assert [c.id for c, _ in ranked] == ["bob"]

    def test_respects_limit(self, ranking, user_factory):
        requester = user_factory("alice")
        pool = [user_factory(f"user_{i}") for i in range(5)]
        assert len(ranking.rank_candidates(requester, pool, limit=2, now=NOW)) == 2

    def test_mutual_filter_applies(self, ranking, user_factory):
        requester = user_factory("alice", gender="female", dating_preference="women")
        pool = [user_factory("bob", gender="male"), user_factory("dana", gender="female")]
        ranked = ranking.rank_candidates(requester, pool, now=NOW)
        assert [c.id for c, _ in ranked] == ["dana"]


class TestPersistenceQueries:
    @pytest.mark.asyncio
    async def test_recommendations_exclude_swiped(self, db_session, user_factory):
        db_session.add_all([user_factory("alice"), user_factory("bob"), user_factory("carl")])
        await db_session.flush()
        db_session.add(Swipe(swiper_id="alice", swiped_id="carl", direction="left"))
        await db_session.commit()

        ranked = await RankingService().get_recommendations("alice", db_session)
        assert [c.id for c, _ in ranked] == ["bob"]

    @pytest.mark.asyncio
    async def test_recommendations_empty_for_unknown_user(self, db_session):
        assert await RankingService().get_recommendations("ghost", db_session) == []

    @pytest.mark.asyncio
    async def test_leaderboard_orders_by_rating(self, db_session, user_factory):
        db_session.add_all([
            user_factory("alice", elo_score=900.0),
            user_factory("bob", elo_score=1200.0),
            user_factory("carl", elo_score=1100.0),
            user_factory("dana", elo_score=5000.0, onboarding_completed=False),
        ])
        await db_session.commit()

        board = await RankingService().get_leaderboard(db_session, limit=2)
        assert [u.id for u in board] == ["bob", "carl"]
