import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from tourney.database import get_session, init_db
from tourney.main import app

TEST_DATABASE_URL = "sqlite:///:memory:"

# One in-memory database shared by every connection (StaticPool), so the
# session fixture and the app's request sessions see the same tables.
# Rows persist for the whole pytest run: tests create their own tournaments
# and only assert on ids they created.
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Session on the shared test database, tables created up front."""
    init_db(test_engine)
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """
    TestClient whose requests use the test database.

    The override is installed before the client starts so the startup
    hook and every request go through the test engine.
    """
    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
