"""
Test configuration and fixtures.

Provides:
- A fresh in-memory SQLite database per test (schema from the models)
- HTTPX AsyncClient with get_db overridden to the test session
- A factory for causes stocked through an approved sponsorship
"""
import os

# Settings are read at import time
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["NOTIFICATION_BACKEND"] = "log"

from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import tote_engine.db.models  # noqa: F401
from tote_engine.core.deps import get_db
from tote_engine.db.base import Base
from tote_engine.db.models import Cause
from tote_engine.main import app

from support import ADMIN_HEADERS


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Session on a private in-memory database.

    App code commits freely; the whole database is dropped with the engine.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def make_cause(db: Session) -> Callable[..., Cause]:
    """Create a cause stocked with `totes` via an approved sponsorship."""
    from tote_engine.services import cause_service, sponsorship_service

    def _make(totes: int = 0, title: str = "Clean Beaches", is_online: bool = True) -> Cause:
        cause = cause_service.create_cause(db, title=title, is_online=True)
        if totes:
            sponsorship = sponsorship_service.submit_sponsorship(
                db,
                cause_id=cause.id,
                organization_name="Acme Outfitters",
                contact_name="Dana Reyes",
                email="sponsor@acme.org",
                tote_quantity=totes,
            )
            sponsorship_service.approve(db, sponsorship.id)
        if not is_online:
            cause_service.update_cause(db, cause.id, is_online=False)
        db.refresh(cause)
        return cause

    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient for the public endpoints."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient carrying the admin key."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=ADMIN_HEADERS,
    ) as c:
        yield c

    app.dependency_overrides.clear()
