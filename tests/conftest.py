"""Shared pytest fixtures for Swizz tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from swizz.config import Settings
from swizz.db.models import Call, CallStatus, TranscriptionEntry, TranscriptSpeaker
from swizz.db.store import CallStore
from swizz.errors import ExternalServiceError
from swizz.services.llm.protocol import Message, ReplyMetadata
from swizz.services.notifications import HumanAvailableAlert
from swizz.services.stt.protocol import TranscriptResult
from swizz.services.tts.protocol import SynthesisMetadata


def build_settings(**overrides) -> Settings:
    """Create a Settings object with safe test defaults."""
    base = {
        "groq_api_key": "test-groq-key",
        "deepgram_api_key": "test-deepgram-key",
        "elevenlabs_api_key": "test-elevenlabs-key",
        "database_url": "sqlite+aiosqlite:///:memory:",
        "store_retry_delay_seconds": 0.0,
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Return a factory to build Settings with overrides."""
    return build_settings


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Default Settings fixture."""
    return settings_factory()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def async_engine():
    """Create an in-memory async SQLite engine shared by every session."""
    # Import models to register them with SQLModel metadata
    from swizz.db import models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    """Async session factory bound to the test engine."""
    return sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create an async database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def call_store(session_factory) -> CallStore:
    """CallStore over the in-memory database, without retry delays."""
    return CallStore(session_factory, retry_attempts=3, retry_delay=0.0)


@pytest_asyncio.fixture
async def stored_call(call_store: CallStore) -> Call:
    """A call in the calling state."""
    return await call_store.create(
        Call(
            phone_number="+15550001111",
            issue_description="Dispute a double charge on my March bill",
            user_phone="+15559998888",
        )
    )


# =============================================================================
# Service Fakes
# =============================================================================


class FakeSTT:
    """Returns queued transcripts in order, or raises queued exceptions."""

    def __init__(self, transcripts: list[Any] | None = None, delay: float = 0.0) -> None:
        self.transcripts = list(transcripts or [])
        self.delay = delay
        self.calls: list[bytes] = []

    async def transcribe(
        self,
        audio: bytes,
        *,
        mimetype: str = "audio/wav",
        language: str = "en",
    ) -> TranscriptResult:
        self.calls.append(audio)
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.transcripts.pop(0) if self.transcripts else ""
        if isinstance(item, BaseException):
            raise item
        return TranscriptResult(text=item, confidence=0.9, language=language)

    async def close(self) -> None:
        pass

    async def health_check(self) -> bool:
        return True


class FakeLLM:
    """Echoes a numbered reply; can be told to fail or stall."""

    def __init__(
        self,
        replies: list[Any] | None = None,
        delays: list[float] | None = None,
    ) -> None:
        self.replies = list(replies or [])
        self.delays = list(delays or [])
        self.histories: list[list[Message]] = []

    async def generate_reply(
        self,
        messages: list[Message],
        *,
        max_tokens: int = 150,
        temperature: float = 0.7,
    ) -> tuple[str, ReplyMetadata]:
        self.histories.append(list(messages))
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        item = self.replies.pop(0) if self.replies else f"Reply {len(self.histories)}"
        if isinstance(item, BaseException):
            raise item
        return item, ReplyMetadata(model="fake")

    async def health_check(self) -> bool:
        return True


class FakeTTS:
    """Synthesizes 10 ms of silence per input character."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.texts: list[str] = []

    async def synthesize(
        self,
        text: str,
        *,
        target_sample_rate: int = 8000,
    ) -> tuple[bytes, SynthesisMetadata]:
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        samples = target_sample_rate // 100 * max(1, len(text))
        return b"\x00\x00" * samples, SynthesisMetadata(model="fake", input_chars=len(text))

    async def close(self) -> None:
        pass

    async def health_check(self) -> bool:
        return True


class RecordingNotifier:
    """Collects alerts; optionally fails every delivery."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.alerts: list[HumanAvailableAlert] = []

    async def notify_human_available(self, alert: HumanAvailableAlert) -> None:
        self.alerts.append(alert)
        if self.fail:
            raise ExternalServiceError("alert webhook down")


class RecordingSender:
    """AudioSender that keeps what it was given."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[bytes] = []
        self.cleared = 0

    async def send_audio(self, audio_bytes: bytes) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(audio_bytes)

    async def clear_audio(self) -> None:
        self.cleared += 1


class InMemoryCallStore:
    """Dict-backed stand-in for CallStore, loop independent for API tests."""

    def __init__(self) -> None:
        self.calls: dict[str, Call] = {}
        self.entries: list[TranscriptionEntry] = []

    async def create(self, call: Call) -> Call:
        self.calls[call.id] = call
        return call

    async def get(self, call_id: str) -> Call | None:
        return self.calls.get(call_id)

    async def get_by_provider_sid(self, provider_call_sid: str) -> Call | None:
        for call in self.calls.values():
            if call.provider_call_sid == provider_call_sid:
                return call
        return None

    async def update(self, call_id: str, **fields: Any) -> bool:
        call = self.calls.get(call_id)
        if call is None:
            return False
        for key, value in fields.items():
            setattr(call, key, value)
        return True

    async def transition_status(self, call_id: str, status: CallStatus, **fields: Any) -> bool:
        call = self.calls.get(call_id)
        if call is None or call.status not in CallStatus.sources_for(status):
            return False
        call.status = status
        return await self.update(call_id, **fields)

    async def increment_ai_responses(self, call_id: str) -> bool:
        call = self.calls.get(call_id)
        if call is None:
            return False
        call.ai_responses_count += 1
        return True

    async def append_transcription(
        self,
        call_id: str,
        speaker: TranscriptSpeaker,
        text: str,
        timestamp: datetime | None = None,
    ) -> TranscriptionEntry:
        entry = TranscriptionEntry(
            id=len(self.entries) + 1,
            call_id=call_id,
            speaker=speaker,
            text=text,
            timestamp=timestamp or datetime.now(UTC),
        )
        self.entries.append(entry)
        return entry

    async def list_transcription(self, call_id: str) -> list[TranscriptionEntry]:
        return [e for e in self.entries if e.call_id == call_id]


@pytest.fixture
def fake_stt() -> FakeSTT:
    return FakeSTT()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_tts() -> FakeTTS:
    return FakeTTS()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def memory_store() -> InMemoryCallStore:
    return InMemoryCallStore()


@pytest.fixture
def call_services(memory_store, fake_stt, fake_llm, fake_tts, notifier):
    """CallServices wired to fakes."""
    from swizz.api.websocket.media_stream import CallServices

    return CallServices(
        stt=fake_stt,
        llm=fake_llm,
        tts=fake_tts,
        notifier=notifier,
        store=memory_store,
    )


@pytest.fixture
def test_client(settings_factory, call_services, monkeypatch) -> Generator:
    """FastAPI TestClient with fake services and an in-memory database."""
    from fastapi.testclient import TestClient

    import swizz.main
    from swizz.db.session import get_session, get_session_factory

    test_settings = settings_factory(max_concurrent_calls=2)

    async def mock_init_db(engine=None):
        pass

    async def mock_close_db():
        pass

    monkeypatch.setattr(swizz.main, "init_db", mock_init_db)
    monkeypatch.setattr(swizz.main, "close_db", mock_close_db)

    # The engine must be created inside the app's event loop
    engines: dict[str, Any] = {}

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        if "engine" not in engines:
            engines["engine"] = create_async_engine(
                "sqlite+aiosqlite:///:memory:",
                poolclass=StaticPool,
            )
        async with get_session_factory(engines["engine"])() as session:
            yield session

    app = swizz.main.create_app(test_settings, call_services)
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client


@pytest.fixture
def test_client_no_db(settings_factory, call_services, monkeypatch) -> Generator:
    """FastAPI TestClient whose database session always fails."""
    from fastapi.testclient import TestClient

    import swizz.main
    from swizz.db.session import get_session

    async def mock_init_db(engine=None):
        pass

    async def mock_close_db():
        pass

    monkeypatch.setattr(swizz.main, "init_db", mock_init_db)
    monkeypatch.setattr(swizz.main, "close_db", mock_close_db)

    class BrokenSession:
        async def execute(self, *args, **kwargs):
            raise ConnectionRefusedError("database unavailable")

    async def override_get_session():
        yield BrokenSession()

    app = swizz.main.create_app(settings_factory(), call_services)
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client
