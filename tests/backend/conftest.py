import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

# 1. SETUP ENVIRONMENT FIRST (Before any app/database imports)
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("FOOTBALL_DATA_API_KEY", "test_key")

# 2. Add backend to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../src/backend')))

# 3. NOW IMPORT LOCAL MODULES
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app import app
from database import get_session
from exceptions import MatchDataError
from models import Base, MarketStatus, User
from routers.automation import get_automation_service
from services import market_service, repository
from services.automation_service import AutomationService
from services.match_data import MatchData


class FakeMatchClient:
    """In-memory MatchDataClient. Unknown ids raise MatchDataError."""

    def __init__(self):
        self.matches: dict[int, MatchData] = {}
        self.failures: dict[int, Exception] = {}
        self.calls: list[int] = []

    def set_match(self, match_id, status, home=None, away=None):
        self.matches[match_id] = MatchData.model_validate({
            "id": match_id,
            "status": status,
            "score": {"fullTime": {"home": home, "away": away}},
        })

    def fail(self, match_id, exc=None):
        self.failures[match_id] = exc or MatchDataError(match_id, "HTTP 503")

    async def get_match(self, match_id: int) -> MatchData:
        self.calls.append(match_id)
        if match_id in self.failures:
            raise self.failures[match_id]
        if match_id not in self.matches:
            raise MatchDataError(match_id, "HTTP 404")
        return self.matches[match_id]


@pytest_asyncio.fixture
async def session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """File-backed SQLite per test so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as s:
        yield s


@pytest.fixture
def match_client() -> FakeMatchClient:
    return FakeMatchClient()


@pytest.fixture
def automation(session_maker, match_client) -> AutomationService:
    return AutomationService(session_maker, match_client)


@pytest_asyncio.fixture
async def client(session_maker, automation) -> AsyncGenerator[AsyncClient, None]:
    """Wired httpx client: one fresh session per request, fake match data."""
    async def _get_session_override():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_session] = _get_session_override
    app.dependency_overrides[get_automation_service] = lambda: automation
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================================
# Helpers
# ============================================================================

async def create_user(session: AsyncSession, name: str = "alice") -> User:
    suffix = uuid.uuid4().hex[:8]
    return await repository.create_user(
        session=session,
        email=f"{name}_{suffix}@example.com",
        wallet_address=f"0x{name}{suffix}",
        display_name=name,
    )


async def create_market(
    session: AsyncSession,
    creator: User,
    *,
    match_id: int = 1001,
    entry_fee: Decimal = Decimal("0.1"),
    end_time: datetime = None,
    title: str = "Arsenal vs Chelsea",
):
    return await market_service.create_market(
        creator_id=creator.id,
        match_id=match_id,
        title=title,
        entry_fee=entry_fee,
        end_time=end_time or datetime.now(timezone.utc) + timedelta(days=1),
        home_team_name="Arsenal",
        away_team_name="Chelsea",
        session=session,
    )


async def set_status(session: AsyncSession, market, status: MarketStatus):
    await repository.update_market(market=market, session=session, status=status)
