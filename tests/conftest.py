"""Shared test fixtures."""

import pytest

from studio_sessions.config import Settings
from studio_sessions.containers import AppContainer, build_session_service
from studio_sessions.services.sessions import SessionService
from studio_sessions.services.state_machine import StateMachine
from tests.fakes import FakeClock, InMemorySessionRepository, RecordingDispatcher


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        api_token="api-token",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def session_service(
    settings: Settings, repository: InMemorySessionRepository, clock: FakeClock
) -> SessionService:
    return build_session_service(settings, repository, clock=clock)


@pytest.fixture
def state_machine(session_service: SessionService) -> StateMachine:
    return session_service.state_machine


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def container(
    settings: Settings,
    session_service: SessionService,
    dispatcher: RecordingDispatcher,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_service=session_service,
        notification_dispatcher=dispatcher,
        close_resources=close_resources,
    )
