import os
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app's own engine off the local huddle.db file during tests.
os.environ.setdefault("HUDDLE_DATABASE_URL", "sqlite://")

from huddle.database import Base, get_db
from huddle.main import app
from huddle.routers.meetings import get_aggregate
from huddle.schemas.meeting import Meeting, Participant, ParticipantStatus
from huddle.services.meeting_aggregate import MeetingAggregate

OWNER_ID = "owner-1"
MEETING_START = datetime(2024, 3, 4, 10, 0, tzinfo=UTC)

# Define a test database URL
TEST_DATABASE_URL = "sqlite://"  # Use in-memory SQLite for tests
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False)


# pysqlite defers BEGIN on its own; take over so SAVEPOINTs nest inside the
# per-test transaction instead of committing it.
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(connection):
    connection.exec_driver_sql("BEGIN")


class FixedClock:
    """Injectable clock that only moves when a test moves it."""

    def __init__(self, start: datetime = MEETING_START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class SequentialCodes:
    """Deterministic attendance codes: ABC001, ABC002, ..."""

    def __init__(self, prefix: str = "ABC"):
        self.prefix = prefix
        self.issued = []
        self._counter = count(1)

    def __call__(self) -> str:
        code = f"{self.prefix}{next(self._counter):03d}"
        self.issued.append(code)
        return code


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def codes() -> SequentialCodes:
    return SequentialCodes()


@pytest.fixture
def aggregate(clock: FixedClock, codes: SequentialCodes) -> MeetingAggregate:
    return MeetingAggregate(clock=clock, code_factory=codes, window_seconds=180)


def build_meeting(
    *,
    approved=(),
    pending=(),
    rejected=(),
    max_participants=None,
    owner_id: str = OWNER_ID,
    meeting_id: str = "MTG-TEST0001",
    **extra,
) -> Meeting:
    """Meeting fixture with the owner plus participants in the given states."""
    participants = [
        Participant(user_id=owner_id, status=ParticipantStatus.OWNER, joined_at=MEETING_START)
    ]
    for status, user_ids in (
        (ParticipantStatus.APPROVED, approved),
        (ParticipantStatus.PENDING, pending),
        (ParticipantStatus.REJECTED, rejected),
    ):
        participants.extend(
            Participant(user_id=user_id, status=status, joined_at=MEETING_START)
            for user_id in user_ids
        )
    return Meeting(
        id=meeting_id,
        title="Algorithms study group",
        description="Weekly problem set review",
        owner_id=owner_id,
        max_participants=max_participants,
        created_at=MEETING_START,
        participants=tuple(participants),
        **extra,
    )


@pytest.fixture
def meeting_factory():
    return build_meeting


@pytest.fixture(scope="session")
def create_test_tables():
    """Create all database tables once per session before tests run."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function")
def db_session(create_test_tables):
    """
    Provides a database session whose commits land in savepoints of an
    outer transaction that is rolled back after the test.
    Overrides the main app's get_db dependency.
    """
    connection = engine.connect()
    transaction = connection.begin()
    db = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db

    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def client(db_session: Session, aggregate: MeetingAggregate, tmp_path, monkeypatch):
    """TestClient with the database session and a deterministic aggregate."""
    monkeypatch.chdir(tmp_path)  # lifespan writes logs/ under the cwd
    app.dependency_overrides[get_aggregate] = lambda: aggregate
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_aggregate, None)
