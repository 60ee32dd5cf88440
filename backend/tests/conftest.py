"""Shared fixtures: in-memory SQLite database, seeded alumni and a test client."""
import os

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from alumni_chat.database import SessionLocal, engine, Base
from alumni_chat.main import app
from alumni_chat.middleware.auth import create_user_with_api_key
from alumni_chat.services.gateway import FanoutGateway
from alumni_chat.api.chat import get_rate_limiter


@pytest.fixture
def db():
    """Create test database session."""
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def alice(db):
    user, _ = create_user_with_api_key(
        db, "Alice Menon", api_key="alice-key", batch="2015", branch="Computer Science"
    )
    return user


@pytest.fixture
def bob(db):
    user, _ = create_user_with_api_key(
        db, "Bob Fernandes", api_key="bob-key", batch="2017", branch="Civil"
    )
    return user


@pytest.fixture
def carol(db):
    user, _ = create_user_with_api_key(db, "Carol DSouza", api_key="carol-key")
    return user


@pytest.fixture
def gateway():
    """Fresh connection registry for each test."""
    gateway = FanoutGateway()
    app.state.gateway = gateway
    return gateway


@pytest.fixture
def limiter():
    """Rate limiter stand-in that allows every send."""
    limiter = MagicMock()
    limiter.check_rate_limit.return_value = (True, 1)
    return limiter


@pytest.fixture
def client(db, gateway, limiter):
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
