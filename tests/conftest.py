"""Shared pytest fixtures for sports-tracker tests."""
import sys
from pathlib import Path
from typing import Generator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app.models import Base, LifecycleState, NormalizedGame, Sport  # noqa: E402


@pytest.fixture(scope="function")
def db_engine():
    """
    Isolated in-memory database.

    StaticPool keeps a single connection so the TestClient worker thread
    sees the same in-memory tables as the test itself.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create fresh test database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def snapshot_repo(db_session):
    from app.repositories import GameSnapshotRepository
    return GameSnapshotRepository(db_session)


@pytest.fixture
def event_repo(db_session):
    from app.repositories import GameEventRepository
    return GameEventRepository(db_session)


def make_game(
    game_id: str = "M1",
    sport: Sport = Sport.SOCCER,
    team1: str = "Arsenal",
    team2: str = "Chelsea",
    score1: int = 0,
    score2: int = 0,
    status: LifecycleState = LifecycleState.PENDING,
    current_time: str = "0 min",
) -> NormalizedGame:
    """Helper to build a NormalizedGame with sensible defaults.

    Usage:
        game = make_game("M1", score1=1, status=LifecycleState.ACTIVE)
    """
    return NormalizedGame(
        game_id=game_id,
        sport=sport,
        team1=team1,
        team2=team2,
        score1=score1,
        score2=score2,
        status=status,
        current_time=current_time,
    )


class FakeFeedAdapter:
    """
    In-memory feed with the adapter interface (source_tag, fetch_games).

    Set ``games`` to change what the next cycle sees, or ``error`` to make
    fetch_games() raise.
    """

    def __init__(self, source_tag: str, games: Optional[List[NormalizedGame]] = None):
        self.source_tag = source_tag
        self.games = list(games or [])
        self.error: Optional[Exception] = None
        self.calls = 0

    async def fetch_games(self) -> List[NormalizedGame]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.games)


@pytest.fixture
def soccer_feed():
    return FakeFeedAdapter("soccer-api")


@pytest.fixture
def tennis_feed():
    return FakeFeedAdapter("tennis-api")


@pytest.fixture
def hockey_feed():
    return FakeFeedAdapter("hockey-api")


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture(scope="function")
def test_client(db_session):
    """
    Create FastAPI TestClient bound to the test database.

    Note: We don't use context manager (with TestClient) so the lifespan
    (init_db on the configured database, scheduler start) does not run.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/games")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from app.main import app, limiter
    from app.core.database import get_db

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # Rate-limit counters are in memory and shared by every client
    limiter.reset()
    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
    limiter.reset()
