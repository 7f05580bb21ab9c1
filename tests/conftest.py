"""Shared fixtures for the Smart Reminder test suite."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker

from app.db import create_db_engine, init_db
from app.schemas.preferences import UserSettings
from app.services.kv_store import KeyValueStore
from app.services.prompt_builder import PromptBuilder
from app.services.reminder_store import ReminderStore
from app.services.response_parser import ResponseParser
from app.services.session_controller import SessionController
from tests.fakes import FakeActivitySource, FakeAnalysisClient, FakeClock, RecordingLogSink


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def kv(session_factory):
    return KeyValueStore(session_factory)


@pytest.fixture
def reminder_store(kv):
    return ReminderStore(kv)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeActivitySource()


@pytest.fixture
def analysis_client():
    return FakeAnalysisClient()


@pytest.fixture
def log_sink():
    return RecordingLogSink()


@pytest.fixture
def controller(source, analysis_client, log_sink, reminder_store, clock):
    return SessionController(
        source=source,
        builder=PromptBuilder(),
        parser=ResponseParser(),
        store=reminder_store,
        log_sink=log_sink,
        client_factory=lambda _settings: analysis_client,
        settings_provider=lambda: UserSettings(analysis_frequency_minutes=5),
        fetch_interval=3600,
        initial_fetch_delay=3600,
        clock=clock,
    )
