"""Shared pytest fixtures for DuoMatch tests.

Service tests run against a throwaway SQLite file (via aiosqlite) so that the
conditional inserts and compare-and-set updates go through a real SQL engine,
including from concurrent sessions.
"""
import uuid
from datetime import date

import pytest
import pytest_asyncio

import duomatch.models  # noqa: F401  (registers every table on Base.metadata)
from duomatch.api.deps import build_services
from duomatch.database import Base, build_engine, build_session_factory
from duomatch.models.user import User
from duomatch.services.events import EventBus


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'duomatch.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def recorded_events():
    return []


@pytest.fixture
def event_bus(recorded_events):
    bus = EventBus()

    async def _record(event):
        recorded_events.append(event)

    bus.subscribe(_record)
    return bus


@pytest.fixture
def services(session_factory, event_bus):
    return build_services(session_factory, event_bus)


@pytest.fixture
def make_user(session_factory):
    """Insert a user with a realistic profile and return its id."""

    async def _make(first_name="Alex", **fields):
        user_id = uuid.uuid4()
        async with session_factory.begin() as session:
            session.add(
                User(
                    id=user_id,
                    email=f"{first_name.lower()}-{user_id.hex[:8]}@example.edu",
                    first_name=first_name,
                    birthday=fields.pop("birthday", date(2002, 5, 17)),
                    bio=fields.pop("bio", f"{first_name} likes long walks."),
                    university=fields.pop("university", "State University"),
                    photos=fields.pop("photos", [f"https://cdn.example.com/{user_id}/0.jpg"]),
                    interests=fields.pop(
                        "interests", [{"name": "Hiking", "emoji": "🥾"}]
                    ),
                    prompts=fields.pop(
                        "prompts", [{"prompt": "Perfect Sunday", "answer": "Brunch"}]
                    ),
                    **fields,
                )
            )
        return user_id

    return _make


@pytest.fixture
def make_duo(services, make_user):
    """Create two users, pair them through an accepted invite, return the duo."""

    async def _make(name_a="Alex", name_b="Blake"):
        user_a = await make_user(name_a)
        user_b = await make_user(name_b)
        invite = await services.pairing.send_invite(user_a, user_b)
        return await services.pairing.accept_invite(invite.id, actor=user_b)

    return _make
