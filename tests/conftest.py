from collections.abc import AsyncGenerator
from datetime import datetime, time
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mentorloop.clock import FrozenClock, get_clock
from mentorloop.database import Base, get_db
from mentorloop.main import app
from mentorloop.models.availability import AvailabilityWindow
from mentorloop.models.enums import CallType, Role
from mentorloop.models.user import User
from mentorloop.scheduling.collaborators import (
    Notifier,
    RewardLedger,
    get_notifier,
    get_reward_ledger,
)
from mentorloop.scheduling.locks import timeline_locks

test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
test_session = async_sessionmaker(test_engine, expire_on_commit=False)

# Monday 2 March 2026, 04:00 local
NOW = datetime(2026, 3, 2, 4, 0)

MENTOR_ID = 1
PARTICIPANT_ID = 2
OTHER_PARTICIPANT_ID = 3
OTHER_MENTOR_ID = 4
ADMIN_ID = 9


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.events: list[tuple[int, str, dict[str, Any]]] = []

    async def notify(self, user_id: int, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((user_id, event_type, payload))

    def of_type(self, event_type: str) -> list[tuple[int, str, dict[str, Any]]]:
        return [e for e in self.events if e[1] == event_type]


class RecordingRewardLedger(RewardLedger):
    def __init__(self) -> None:
        self.credits: list[tuple[int, int, str]] = []

    async def credit(self, user_id: int, points: int, reason: str) -> None:
        self.credits.append((user_id, points, reason))


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


def headers(user_id: int, role: Role) -> dict[str, str]:
    return {"X-User-Id": str(user_id), "X-User-Role": role.value}


MENTOR = headers(MENTOR_ID, Role.MENTOR)
PARTICIPANT = headers(PARTICIPANT_ID, Role.PARTICIPANT)
OTHER_PARTICIPANT = headers(OTHER_PARTICIPANT_ID, Role.PARTICIPANT)
ADMIN = headers(ADMIN_ID, Role.ADMIN)


async def seed_users(session: AsyncSession) -> None:
    session.add_all(
        [
            User(id=MENTOR_ID, name="Ana Mentor", email="ana@example.com", role=Role.MENTOR),
            User(id=PARTICIPANT_ID, name="Luis", email="luis@example.com"),
            User(id=OTHER_PARTICIPANT_ID, name="Sofia", email="sofia@example.com"),
            User(id=OTHER_MENTOR_ID, name="Bruno Mentor", email="bruno@example.com", role=Role.MENTOR),
            User(id=ADMIN_ID, name="Admin", email="admin@example.com", role=Role.ADMIN),
        ]
    )
    await session.commit()


async def add_window(
    session: AsyncSession,
    call_type: CallType,
    day_of_week: int,
    start: time,
    end: time,
    mentor_id: int = MENTOR_ID,
) -> AvailabilityWindow:
    window = AvailabilityWindow(
        mentor_id=mentor_id,
        call_type=call_type,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
    )
    session.add(window)
    await session.commit()
    return window


async def add_discipline_week(session: AsyncSession, mentor_id: int = MENTOR_ID) -> None:
    """05:00-08:00 discipline windows Monday to Friday."""
    for dow in range(1, 6):
        await add_window(session, CallType.DISCIPLINE, dow, time(5, 0), time(8, 0), mentor_id)


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def fresh_timeline_locks() -> None:
    # asyncio.Lock objects must not outlive the event loop of the test that made them
    timeline_locks._locks.clear()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def rewards() -> RecordingRewardLedger:
    return RecordingRewardLedger()


@pytest.fixture
async def seeded() -> None:
    async with test_session() as session:
        await seed_users(session)


@pytest.fixture
async def client(
    clock: FrozenClock, notifier: RecordingNotifier, rewards: RecordingRewardLedger
) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_reward_ledger] = lambda: rewards
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    for dep in (get_clock, get_notifier, get_reward_ledger):
        app.dependency_overrides.pop(dep, None)
