"""Shared pytest fixtures for RizzedIn tests."""
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.database import Base
from app.models.user import ROLE_MEMBER, ROLE_PERSONA, User, default_rubric_scores
from app.utils.locks import KeyedLock


def make_user(user_id, **overrides):
    """Build a fully-populated, onboarded ``User`` without touching a session."""
    fields = {
        "id": user_id,
        "role": ROLE_MEMBER,
        "linkedin_url": f"https://www.linkedin.com/in/{user_id}",
        "age": 30,
        "gender": "male",
        "dating_preference": "both",
        "onboarding_completed": True,
        "name": user_id.replace("_", " ").title(),
        "bio": "Engineer who likes climbing",
        "about": None,
        "experience": [],
        "education": [],
        "profile_vector": None,
        "elo_score": 1000.0,
        "profile_score": None,
        "total_right_swipes": 0,
        "total_left_swipes": 0,
        "match_count": 0,
        "conversations_completed": 0,
        "ai_approvals_received": 0,
        "ai_rejections_received": 0,
        "avg_rubric_scores": default_rubric_scores(),
        "last_conversation_at": None,
        "created_at": datetime.now(timezone.utc),
    }
    fields.update(overrides)
    return User(**fields)


def evaluation_json(decision="approved", overall=8, compatibility=7, **rubric):
    scores = {
        "engagement": 8,
        "depth": 7,
        "authenticity": 8,
        "respectfulness": 9,
        "compatibility": compatibility,
        "overall": overall,
    }
    scores.update(rubric)
    return json.dumps(
        {"decision": decision, "reasoning": "Great chemistry.", "rubric": scores}
    )


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Independent sessions on the test database, for interleaving tests."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def member(db_session):
    user = make_user("alice", gender="female")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def persona(db_session):
    user = make_user(
        "persona_bob",
        role=ROLE_PERSONA,
        experience=[{"title": "Founder", "company": "Acme", "duration": "3 yrs"}],
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def fake_gemini():
    """Gemini double: plain replies for persona turns, an approved evaluation in JSON mode."""
    gemini = MagicMock()

    async def generate(prompt, temperature, system_instruction=None, history=None,
                       json_mode=False, max_output_tokens=1024):
        if json_mode:
            return evaluation_json()
        return "  Nice to meet you!  "

    gemini.generate = AsyncMock(side_effect=generate)
    return gemini


@pytest.fixture
def user_factory():
    return make_user


@pytest.fixture
def evaluation_payload():
    return evaluation_json
