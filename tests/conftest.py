"""
Pytest configuration and fixtures
테스트 설정 및 픽스처
"""

import random
import pytest
from typing import Dict
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from photovote.core.config import settings
from photovote.core.database import Base, get_db, get_session_runner
from photovote.models.room import Room
from photovote.models.family import Family
from photovote.schemas.family import FAMILY_LABELS, FamilyLabel
from photovote.services.room import RoomService
from photovote.services.roulette import roulette_registry
from photovote.websocket.change_feed import ChangeFeed, get_change_feed
from photovote.main import app

import photovote.models  # noqa: F401  (register tables)


# Test database URL (in-memory SQLite for fast testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 테스트에서는 대기 시간 없이
settings.VOTE_RELOAD_RETRY_DELAY = 0.0
settings.CHANGE_REFETCH_DELAY = 0.0
settings.INITIAL_LOAD_DELAY = 0.0


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def feed():
    """Process-local change feed with a short poll interval"""
    return ChangeFeed(channel="test:changes", poll_interval=0.05)


@pytest.fixture
def rng():
    return random.Random(20240615)


@pytest.fixture(autouse=True)
def clear_roulette_registry():
    roulette_registry.clear()
    yield
    roulette_registry.clear()


@pytest.fixture
def override_dependencies(db_session, session_factory, feed):
    """Route the app's database session and change feed to the test ones"""
    async def _override_get_db():
        yield db_session

    async def _override_session_runner():
        async def _run(operation, *args, **kwargs):
            async with session_factory() as session:
                return await operation(session, *args, **kwargs)
        return _run

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_change_feed] = lambda: feed
    app.dependency_overrides[get_session_runner] = _override_session_runner
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override_dependencies):
    from httpx import AsyncClient, ASGITransport

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def room_factory(db_session, feed, rng):
    """Create a room with ``photo_count`` photos"""
    async def _create(photo_count: int = 0) -> Room:
        service = RoomService(db_session, feed, rng=rng)
        created = await service.create_room()
        room = await service.require_room(created.room.code)
        for index in range(photo_count):
            await service.add_photo(room, f"https://photos.example.com/wedding/{index}.jpg")
        return room

    return _create


@pytest.fixture
def family_factory(db_session, feed):
    """Claim every label (or the given ones) from distinct devices"""
    async def _claim(room: Room, labels=None) -> Dict[FamilyLabel, Family]:
        service = RoomService(db_session, feed)
        families = {}
        for index, label in enumerate(labels or FAMILY_LABELS):
            await service.claim_family(room, label, client_id=f"device-{index}")
            families[label] = await service.get_family_by_label(room.id, label)
        return families

    return _claim
