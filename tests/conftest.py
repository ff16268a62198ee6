# tests/conftest.py

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from discount_service.main import app
from discount_service.api import deps
from discount_service.db.session import create_db_engine, get_db
from discount_service.models import Base

from tests.utils.discount import TENANT_ID


# --- Test Database Setup ---
# One shared in-memory connection so every session sees the same tables.
engine = create_db_engine("sqlite://", poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


# --- Mock Dependencies Setup ---
class MockTokenPayload:
    def __init__(self, sub="user_123", tenant_id=TENANT_ID):
        self.sub = sub
        self.tenant_id = tenant_id


def override_get_current_user():
    return MockTokenPayload()


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def test_client(db_session):
    """
    TestClient backed by the in-memory database with authentication mocked.
    """

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_current_user] = override_get_current_user

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def unauthenticated_client(db_session):
    """TestClient with the real token dependency in place."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
