"""Shared fixtures: a fresh SQLite database, an in-memory sheet and a fixed clock per test."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from voicelog.config import Settings
from voicelog.database import Base
from voicelog.main import app
from voicelog.services.meetings_service import MeetingsService, get_meetings_service
from voicelog.services.sheets import InMemorySheetSink
from voicelog.services.sync_coordinator import SyncCoordinator
from voicelog.services.sync_worker import SyncWorker

# A Friday afternoon, UTC
FIXED_NOW = datetime(2025, 7, 25, 15, 4, 5, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock whose instant tests can move."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'voicelog-test.db'}",
        upload_dir=tmp_path / "uploads",
        sync_timeout_seconds=0.5,
        sync_worker_concurrency=2,
    )


@pytest_asyncio.fixture
async def session_maker(settings: Settings):
    engine = create_async_engine(settings.database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sink() -> InMemorySheetSink:
    return InMemorySheetSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(FIXED_NOW)


@pytest.fixture
def coordinator(session_maker, sink, settings) -> SyncCoordinator:
    return SyncCoordinator(
        session_maker,
        sink,
        batch_size=settings.sync_batch_size,
        timeout_seconds=settings.sync_timeout_seconds,
    )


@pytest_asyncio.fixture
async def service(session_maker, settings, coordinator, clock):
    worker = SyncWorker(coordinator.sync_one, concurrency=settings.sync_worker_concurrency)
    meetings_service = MeetingsService(
        session_maker,
        settings=settings,
        sync_coordinator=coordinator,
        sync_worker=worker,
        clock=clock,
    )
    yield meetings_service
    await worker.stop()


@pytest_asyncio.fixture
async def client(service: MeetingsService):
    app.dependency_overrides[get_meetings_service] = lambda: service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
