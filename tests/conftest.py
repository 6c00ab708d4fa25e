"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- Environment isolation (data dir, database URL, credential key)
- Async database sessions (file-based SQLite per test)
- A connected Shopify channel and a fake storefront
"""

import base64
import os
import tempfile
from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

STORE_URL = "test-store.myshopify.com"
ACCESS_TOKEN = "shpat_test_token"


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers and set required env vars.

    The database module builds its engine at import time, so the data
    directory, database URL and credential key are pinned here before any
    test module imports ``src``.
    """
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests that take a long time to run"
    )

    data_dir = tempfile.mkdtemp(prefix="shipsync-tests-")
    os.environ.setdefault("SHIPSYNC_DATA_DIR", data_dir)
    os.environ.setdefault(
        "DATABASE_URL", f"sqlite:///{os.path.join(data_dir, 'shipsync-test.db')}"
    )
    os.environ.setdefault(
        "SHIPSYNC_CREDENTIAL_KEY", base64.b64encode(os.urandom(32)).decode("ascii")
    )
    os.environ.setdefault(
        "SHIPSYNC_SHOPIFY_REDIRECT_URI", "https://app.example.com/oauth/callback"
    )
    os.environ.pop("SHIPSYNC_API_KEY", None)
    os.environ.pop("SHIPSYNC_CONFIG", None)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_url(tmp_path) -> str:
    """Async SQLite URL for a fresh per-test database file."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def db_session(db_url: str) -> AsyncGenerator[AsyncSession, None]:
    """Create a file-based SQLite database with all tables and yield a session."""
    from src.db.connection import async_init_db, create_engine_for_url, create_session_factory

    engine = create_engine_for_url(db_url)
    await async_init_db(engine)
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        yield session
    await engine.dispose()


# ============================================================================
# Channel Fixtures
# ============================================================================


@pytest.fixture
def key() -> bytes:
    """The credential key configured for the test session."""
    from src.services.credential_encryption import get_or_create_key

    return get_or_create_key()


@pytest.fixture
async def channel(db_session: AsyncSession, key: bytes):
    """A connected Shopify channel with an encrypted access token."""
    from src.db.models import SalesChannel, generate_uuid
    from src.services.channel_access import set_access_token

    sales_channel = SalesChannel(
        id=generate_uuid(),
        name="Test Store",
        channel_type="shopify",
        store_url=STORE_URL,
        is_connected=True,
        order_sync_days=7,
    )
    set_access_token(sales_channel, ACCESS_TOKEN, key)
    db_session.add(sales_channel)
    await db_session.commit()
    return sales_channel


@pytest.fixture
def store():
    """Empty fake storefront; tests fill in orders, products and levels."""
    from tests.helpers import FakeShopifyStore

    return FakeShopifyStore()


@pytest.fixture
def locks():
    """A lock registry private to the test."""
    from src.services.channel_locks import ChannelLockRegistry

    return ChannelLockRegistry()
