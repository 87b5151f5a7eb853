import os
import sys
import asyncio
from datetime import datetime

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


@pytest.fixture(scope="session")
def session_loop():
    """Single event loop for all sync fixtures that need to run async DB code."""

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()

# Register every model with the declarative Base so metadata.create_all
# builds the full schema when the test database is initialised.
from league_engine import db, models  # noqa: F401

# Honour any externally provided DATABASE_URL (e.g. CI may set a file-backed DB)
# but fall back to an in-memory SQLite database so local runs remain isolated.
DEFAULT_DB_URL = os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def ensure_database(session_loop):
    """Ensure the test database starts clean and honours DATABASE_URL."""

    mp = pytest.MonkeyPatch()
    desired_url = os.getenv("DATABASE_URL") or DEFAULT_DB_URL
    mp.setenv("DATABASE_URL", desired_url)

    if desired_url.startswith("sqlite") and ":memory:" not in desired_url:
        path = desired_url.split("///")[-1]
        if os.path.exists(path):
            os.remove(path)

    db.engine = None
    db.AsyncSessionLocal = None
    yield
    if db.engine is not None:
        session_loop.run_until_complete(db.engine.dispose())
        db.engine = None

    if db.AsyncSessionLocal is not None:
        db.AsyncSessionLocal = None
    mp.undo()


async def _reset_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(db.Base.metadata.drop_all)
        await conn.run_sync(db.Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_schema(request, session_loop):
    """Reset the schema before each test unless preserved via marker."""

    if request.node.get_closest_marker("preserve_schema"):
        yield
        return

    engine = db.engine or db.get_engine()
    session_loop.run_until_complete(_reset_schema(engine))
    yield


def at(day: int, hour: int = 12) -> datetime:
    """Naive UTC timestamp in October 2024, as stored in DateTime columns."""

    return datetime(2024, 10, day, hour, 0, 0)


def make_player(pid, name=None, *, level="intermediate", status="active",
                league="L1", season="S1", registered=None):
    """Player plus one registration, ready for ``session.add_all``."""

    player = models.Player(id=pid, name=name or pid.upper())
    registration = models.Registration(
        id=f"reg-{pid}-{league}-{season}",
        player_id=pid,
        league_id=league,
        season=season,
        level=level,
        status=status,
        registered_at=registered or at(1),
    )
    return [player, registration]


def make_match(mid, p1, p2, *, winner=None, sets=(), walkover=False, round=1,
               league="L1", season="S1", played=None, status=None):
    """Match row; completed when a winner is given, scheduled otherwise."""

    completed = winner is not None
    return models.Match(
        id=mid,
        league_id=league,
        season=season,
        round=round,
        player1_id=p1,
        player2_id=p2,
        is_bye=False,
        status=status or (models.MATCH_COMPLETED if completed else models.MATCH_SCHEDULED),
        winner_id=winner,
        score=(
            {"sets": [{"player1": a, "player2": b} for a, b in sets], "walkover": walkover}
            if completed
            else None
        ),
        played_at=played,
        created_at=played or at(1),
    )


def make_bye(mid, pid, *, round=1, league="L1", season="S1"):
    return models.Match(
        id=mid,
        league_id=league,
        season=season,
        round=round,
        player1_id=pid,
        player2_id=None,
        is_bye=True,
        status=models.MATCH_COMPLETED,
        winner_id=pid,
        played_at=at(1),
        created_at=at(1),
    )


def new_session():
    return db.get_sessionmaker()()
