"""Pytest fixtures for API tests.

Each test gets its own SQLite file. Rows are seeded through a sync
session; the app reads the same file through an async engine swapped in
with ``app.dependency_overrides``.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from src.api.dependencies import get_courier_factory, get_shopify_client_factory
from src.api.main import app
from src.couriers.factory import CourierAdapterFactory
from src.db.connection import create_session_factory, get_async_db
from src.db.models import Base

API_STORE_URL = "api-store.myshopify.com"


@pytest.fixture
def test_db(tmp_path) -> Generator[Session, None, None]:
    """Sync session on a fresh database file, used to seed and inspect rows."""
    engine = create_engine(f"sqlite:///{tmp_path / 'api.db'}")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(test_db: Session, tmp_path, store) -> Generator[TestClient, None, None]:
    """TestClient wired to the per-test database and the fake storefront."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    session_factory = create_session_factory(engine)

    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    app.dependency_overrides[get_shopify_client_factory] = lambda: store.factory
    app.dependency_overrides[get_courier_factory] = lambda: CourierAdapterFactory()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def connected_channel(client: TestClient) -> dict:
    """A channel connected with an admin token through the API."""
    created = client.post(
        "/api/v1/channels", json={"name": "API Store", "store_url": API_STORE_URL}
    )
    assert created.status_code == 201
    response = client.put(
        f"/api/v1/channels/{created.json()['id']}/token",
        json={"access_token": "shpat_api_token", "scopes": "read_orders"},
    )
    assert response.status_code == 200
    return response.json()
