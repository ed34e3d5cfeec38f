"""Pytest fixtures for onboarding engine tests."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from onboarding_engine.authorization import Actor
from onboarding_engine.config import Settings
from onboarding_engine.database import make_session_factory
from onboarding_engine.models import Base, OnboardingProgress, Role, User
from onboarding_engine.registry import seed_tasks
from onboarding_engine.services import AssessmentService, ProgressService

# In-memory SQLite shared by every session of one test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock pinned to a fixed instant, moved explicitly by tests."""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def make_settings(**overrides) -> Settings:
    """Settings with test defaults."""
    values = dict(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        scheduler_enabled=False,
        scheduler_timezone="UTC",
        daily_sweep_time=time(7, 0),
        event_sweep_interval_minutes=30,
        event_soon_window_minutes=60,
        stage_window_days=90,
        trial_period_months=3,
        trial_reminder_days=7,
        assessment_program_types=frozenset({"SFP", "CC"}),
    )
    values.update(overrides)
    return Settings(**values)


def actor_for(user: User) -> Actor:
    """Principal acting as ``user``."""
    return Actor(user_id=user.id, role=Role(user.role))


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        await seed_tasks(session)
        yield session
        await session.rollback()


async def add_user(
    session: AsyncSession,
    role: Role,
    name: str,
    **fields,
) -> User:
    user = User(
        id=uuid4(),
        name=name,
        email=f"{name.lower().replace(' ', '.')}.{uuid4().hex[:6]}@example.com",
        role=role.value,
        **fields,
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def hr_user(session: AsyncSession) -> User:
    """Create an HR user."""
    return await add_user(session, Role.HR, "Hannah HR")


@pytest.fixture
async def manager_user(session: AsyncSession) -> User:
    """Create a department manager."""
    return await add_user(session, Role.MANAGER, "Marc Manager", department="Operations")


@pytest.fixture
async def supervisor_user(session: AsyncSession) -> User:
    """Create the employee's supervisor."""
    return await add_user(session, Role.SUPERVISOR, "Sam Supervisor", department="Operations")


@pytest.fixture
async def other_supervisor(session: AsyncSession) -> User:
    """Create a supervisor with no reports."""
    return await add_user(session, Role.SUPERVISOR, "Olga Other", department="Finance")


@pytest.fixture
async def employee_user(
    session: AsyncSession, supervisor_user: User, manager_user: User
) -> User:
    """Create an SFP employee reporting to ``supervisor_user``."""
    return await add_user(
        session,
        Role.EMPLOYEE,
        "Emma Employee",
        department="Operations",
        supervisor_id=supervisor_user.id,
        manager_id=manager_user.id,
        start_date=date(2026, 7, 19),
        program_type="SFP",
    )


@pytest.fixture
def progress_service(session, clock, settings) -> ProgressService:
    return ProgressService(session, clock, settings)


@pytest.fixture
def assessment_service(session, clock, settings) -> AssessmentService:
    return AssessmentService(session, clock, settings)


@pytest.fixture
async def journey(
    progress_service: ProgressService, hr_user: User, employee_user: User
) -> OnboardingProgress:
    """Journey for ``employee_user`` started by HR."""
    return await progress_service.create_journey(actor_for(hr_user), employee_user.id)
