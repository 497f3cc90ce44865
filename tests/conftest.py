"""Pytest configuration and fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from voicenotes.config import Settings, get_settings
from voicenotes.database import Base
from voicenotes.main import app
from voicenotes.models.enums import AudioKind
from voicenotes.schemas.voice_note import IncomingVoiceNote, SenderInfo
from voicenotes.services.retry import RetryPolicy

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Monday 13 October 2025, 10:00 in Rome
REFERENCE = datetime(2025, 10, 13, 8, 0, tzinfo=UTC)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    from voicenotes import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with every provider configured and no real waiting."""
    return Settings(
        _env_file=None,
        database_url=SQLALCHEMY_DATABASE_URL,
        telegram_bot_token="123:test-token",
        telegram_webhook_secret="s3cret",
        assemblyai_api_key="aai-test-key",
        openrouter_api_key="or-test-key",
        scratch_dir=str(tmp_path / "scratch"),
        transcription_poll_interval=0,
    )


@pytest.fixture
def no_sleep_policy() -> RetryPolicy:
    """Retry policy that records its backoff waits instead of sleeping."""
    return RetryPolicy(retries=2, backoff_base=2.0, sleep=AsyncMock())


@pytest.fixture
def make_incoming() -> Callable[..., IncomingVoiceNote]:
    """Factory for incoming voice notes."""

    def _make(**overrides) -> IncomingVoiceNote:
        data = {
            "file_id": "AwACAgQAAxkBAAIB",
            "file_unique_id": "AgADBQADr6wxGw",
            "file_size": 5,
            "mime_type": "audio/ogg",
            "duration": 4,
            "kind": AudioKind.VOICE,
            "chat_id": 4242,
            "message_id": 17,
            "sender": SenderInfo(user_id="99", username="mario", first_name="Mario"),
            "sent_at": REFERENCE,
        }
        data.update(overrides)
        return IncomingVoiceNote(**data)

    return _make


@pytest.fixture(scope="function")
def client(settings):
    """Create a test client with settings override."""
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
