"""
Pytest configuration and fixtures for the test suite.
"""
import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Set test environment before importing app
os.environ["ENV"] = "development"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-purposes-only-32chars"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_MAIL_DELIVERY"] = "false"

from minutesflow.main import app
import minutesflow.models  # noqa: F401
from minutesflow.core.config import Settings
from minutesflow.core.deps import get_db, get_workflow
from minutesflow.db.base import Base
from minutesflow.models.meeting_series import MeetingSeriesModel
from minutesflow.models.user import User
from minutesflow.services.auth import create_access_token, create_user
from minutesflow.services.collection import ImmediateExecutor, create_executor
from minutesflow.services.container import build_workflow
from minutesflow.services.meeting_series import create_meeting_series
from minutesflow.services.workflow import WorkflowCoordinator


# Use SQLite for testing (file based, so deferred-mode worker threads
# get their own connections)
SQLALCHEMY_TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite:///./test.db"
)

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in SQLALCHEMY_TEST_DATABASE_URL else {},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

MODERATOR_PASSWORD = "TestPassword123!"
OTHER_PASSWORD = "OtherPassword123!"


def mail_disabled_settings() -> Settings:
    """Settings with mail delivery switched off."""
    return Settings(ENABLE_MAIL_DELIVERY=False)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(params=["immediate", "deferred"])
def workflow(request, db: Session) -> Generator[WorkflowCoordinator, None, None]:
    """Workflow coordinator, run once per execution mode."""
    coordinator = build_workflow(
        TestingSessionLocal,
        settings=mail_disabled_settings(),
        executor=create_executor(request.param, max_workers=2),
    )
    try:
        yield coordinator
    finally:
        coordinator.shutdown()


@pytest.fixture
def api_workflow(db: Session) -> Generator[WorkflowCoordinator, None, None]:
    """Immediate-mode coordinator used behind the HTTP endpoints."""
    coordinator = build_workflow(
        TestingSessionLocal,
        settings=mail_disabled_settings(),
        executor=ImmediateExecutor(),
    )
    yield coordinator
    coordinator.shutdown()


@pytest.fixture(scope="function")
def client(db: Session, api_workflow: WorkflowCoordinator) -> Generator[TestClient, None, None]:
    """Create a test client with database and workflow overrides."""

    def override_get_db_with_session():
        """Return the test database session."""
        yield db

    app.dependency_overrides[get_db] = override_get_db_with_session
    app.dependency_overrides[get_workflow] = lambda: api_workflow
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def moderator_user(db: Session) -> User:
    """Create the user moderating the test series."""
    return create_user(
        db,
        username="moderator",
        password=MODERATOR_PASSWORD,
        display_name="Moderator",
        emails=["moderator@example.com"],
    )


@pytest.fixture
def other_user(db: Session) -> User:
    """Create a user invited to the test series, without moderator rights."""
    return create_user(
        db,
        username="otheruser",
        password=OTHER_PASSWORD,
        display_name="Other User",
        emails=["other@example.com"],
    )


@pytest.fixture
def outsider_user(db: Session) -> User:
    """Create a user with no role in the test series."""
    return create_user(
        db,
        username="outsider",
        password="OutsiderPassword123!",
        display_name="Outsider",
    )


@pytest.fixture
def series(db: Session, moderator_user: User, other_user: User) -> MeetingSeriesModel:
    """Create an empty meeting series moderated by ``moderator_user``."""
    return create_meeting_series(
        db,
        name="Weekly Sync",
        moderator=moderator_user,
        project="Apollo",
        invited=[other_user],
    )


def token_headers(user: User) -> dict:
    """Create authentication headers for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def auth_headers(moderator_user: User) -> dict:
    """Create authentication headers for the moderator."""
    return token_headers(moderator_user)


@pytest.fixture
def other_auth_headers(other_user: User) -> dict:
    """Create authentication headers for the invited user."""
    return token_headers(other_user)


@pytest.fixture
def authenticated_client(client: TestClient, auth_headers: dict) -> TestClient:
    """Create a test client authenticated as the moderator."""
    client.headers.update(auth_headers)
    return client


@pytest.fixture
def outsider_auth_headers(outsider_user: User) -> dict:
    """Create authentication headers for the user without a role."""
    return token_headers(outsider_user)
