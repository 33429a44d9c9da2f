"""Shared test fixtures and configuration."""

import os
from decimal import Decimal

import httpx
import jwt
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Settings are cached on first use, so the test secret must be in place before app imports
os.environ.setdefault("AUTH_JWT_SECRET", "battery-tests-signing-secret-0123456789")

from app.config import get_settings  # noqa: E402
from app.database import create_engine_for_url, get_db, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.battery import BatteryAccount  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.battery_ledger import utc_today  # noqa: E402
from app.services import pricing  # noqa: E402
from app.services.pricing import ModelPricing, PricingTable  # noqa: E402


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file per test; NullPool gives every session its own connection."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'battery.db'}", poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Create a user, optionally with a battery account holding `balance`."""
    async def _make_user(user_id="user-1", balance=None, daily_allowance=0,
                         last_daily_reset=None, **fields):
        async with session_factory() as session:
            session.add(User(id=user_id, **fields))
            await session.flush()
            if balance is not None:
                session.add(BatteryAccount(
                    user_id=user_id,
                    total_balance=balance,
                    daily_allowance=daily_allowance,
                    last_daily_reset=last_daily_reset or utc_today(),
                ))
            await session.commit()
        return user_id
    return _make_user


@pytest.fixture
def read_balance(session_factory):
    async def _read_balance(user_id="user-1"):
        async with session_factory() as session:
            account = await session.get(BatteryAccount, user_id)
            return account.total_balance if account else None
    return _read_balance


# =============================================================================
# Pricing Fixtures
# =============================================================================

@pytest.fixture
def flat_pricing():
    """gpt-4o-mini at 20 BU per 1K tokens: 1000 input + 500 output tokens cost 30."""
    return PricingTable({
        "gpt-4o-mini": ModelPricing(battery_per_k_token=Decimal("20"), display_name="GPT-4o Mini", tier="budget"),
    })


@pytest.fixture
def use_flat_pricing(monkeypatch, flat_pricing):
    monkeypatch.setattr(pricing, "get_pricing_table", lambda: flat_pricing)
    return flat_pricing


# =============================================================================
# API Fixtures
# =============================================================================

def make_token(user_id="user-1", **claims):
    settings = get_settings()
    return jwt.encode({"sub": user_id, **claims}, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    def _auth_headers(user_id="user-1", **claims):
        return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}
    return _auth_headers


@pytest.fixture
async def client(session_factory):
    """HTTP client bound to the app, with every request using the test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
