"""
Pytest configuration and fixtures.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from unittest.mock import patch

from cardgate.core.database import Base, enable_sqlite_foreign_keys, get_db
from cardgate.core.exceptions import CardGenerationError
from cardgate.main import app
from cardgate.services.card_generator import get_card_generator

# Import all models to ensure they register with Base.metadata
from cardgate.models import AccessKey, UsageLog

# Use file-based SQLite for testing (more reliable than in-memory across threads)
TEST_DATABASE_URL = "sqlite:///./test_cardgate.db"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    pool_pre_ping=False,
)
enable_sqlite_foreign_keys(test_engine)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

SAMPLE_CARD = {
    "title": "Five habits of focused teams",
    "summary": "A short guide to protecting deep work.",
    "keyPoints": ["Batch meetings", "Write things down"],
    "sections": [{"title": "Batch meetings", "content": "Keep afternoons free."}],
    "category": "Work",
    "emoji": "🎯",
    "sentimentColor": "#3366ff",
    "readingTime": "3 min",
    "authorOrSource": "Team blog",
}


class FakeCardGenerator:
    """Stands in for the OpenAI-backed generator."""

    def __init__(self):
        self.calls = []
        self.result = dict(SAMPLE_CARD)
        self.error = None

    def generate(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.result

    def fail_with(self, message="No response from AI"):
        self.error = CardGenerationError(message)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create all tables once per test session and drop them afterwards."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function", autouse=True)
def clean_tables():
    """Empty the key store after each test so names can be reused."""
    yield
    db = TestingSessionLocal()
    try:
        db.query(UsageLog).delete()
        db.query(AccessKey).delete()
        db.commit()
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def disable_openai():
    """Disable OpenAI for all tests by patching the settings."""
    with patch("cardgate.core.config.settings.OPENAI_API_KEY", None):
        yield


@pytest.fixture(scope="function", autouse=True)
def disable_admin_password():
    """Disable admin authentication for all tests."""
    with patch("cardgate.core.config.settings.ADMIN_PASSWORD", None):
        yield


@pytest.fixture(scope="function")
def fake_generator():
    return FakeCardGenerator()


def _override_get_db():
    """Override get_db dependency to use test database session."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(fake_generator):
    """
    Test client with the test database and a fake card generator.

    Admin authentication is disabled via the autouse fixture.
    """
    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_card_generator] = lambda: fake_generator

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client_with_auth(fake_generator):
    """
    Test client with admin authentication enabled.

    Sets ADMIN_PASSWORD="test-admin".
    """
    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_card_generator] = lambda: fake_generator

    with patch("cardgate.core.config.settings.ADMIN_PASSWORD", "test-admin"):
        yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def db_session():
    """Database session for tests that need direct DB access."""
    db = TestingSessionLocal()
    try:
        yield db
        db.rollback()
    finally:
        db.close()
