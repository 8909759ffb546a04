from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from libs.db.base import Base
from libs.db.session import get_async_db
from services.loyalty_service.app.main import create_app
from services.loyalty_service.models import CustomerProfile
from services.loyalty_service.services.wallets.presence import WalletPresenceDetector
from services.loyalty_service.services.wallets.sync import WalletSyncOrchestrator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

PASS_TYPE_ID = "pass.com.vigocoffee.loyalty"


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    File-backed SQLite per test so concurrent sessions see the same data
    through separate connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'loyalty.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_profile(session_factory):
    """Insert a profile in its own session and return its id."""

    async def _make_profile(
        customer_id: str = "cust-0001-aaaa-bbbb",
        *,
        points_balance: int = 0,
        redeemed_rewards: Optional[dict] = None,
        full_name: Optional[str] = "Jane Doe",
        email: Optional[str] = "jane@example.com",
        total_purchases: int = 0,
    ) -> str:
        async with session_factory() as session:
            session.add(
                CustomerProfile(
                    id=customer_id,
                    full_name=full_name,
                    email=email,
                    points_balance=points_balance,
                    total_purchases=total_purchases,
                    redeemed_rewards=redeemed_rewards
                    or {"coffees": [], "meals": []},
                )
            )
            await session.commit()
        return customer_id

    return _make_profile


@pytest.fixture
def wallet_sync(session_factory) -> WalletSyncOrchestrator:
    """Orchestrator with no wallet configured: sync is reported, never attempted."""
    presence = WalletPresenceDetector(
        session_factory=session_factory, pass_type_id=PASS_TYPE_ID
    )
    return WalletSyncOrchestrator(presence=presence)


@pytest_asyncio.fixture
async def client(session_factory, wallet_sync) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app and overridden DB dependency.
    """
    app = create_app(wallet_sync=wallet_sync)

    async def _override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _override_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
