# tests/conftest.py
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from inventory_sync import models  # noqa: F401
from inventory_sync.core.config import Settings
from inventory_sync.database import Base, build_session_factory

# In-memory database shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL=TEST_DATABASE_URL,
        ADMIN_EMAIL="admin@example.com",
        STORE_NAME="Test Store",
        ZOHO_ORGANIZATION_ID="org-1",
        ZOHO_ACCESS_TOKEN="test-token",
        WOOCOMMERCE_URL="https://shop.example.com",
        WOOCOMMERCE_CONSUMER_KEY="ck_test",
        WOOCOMMERCE_CONSUMER_SECRET="cs_test",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    """Provide test settings"""
    return make_settings()


@pytest.fixture(scope="function")
async def test_engine():
    """Create the test database engine and tables (function-scoped)."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()
