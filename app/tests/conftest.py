"""
Test configuration and fixtures
"""

from typing import AsyncGenerator, Dict, List

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.pool import NullPool

from app.core.events import EventEmitter
from app.db.init_db import create_tables
from app.db.session import create_session_factory
from app.models import Recording
from app.schemas.principal import Principal, Role, TeamMembership, TeamRole
from app.services.pipeline import PipelineOrchestrator
from app.services.pipeline_store import PipelineStore
from app.tests.helpers import (
    TEAM_ID,
    FakeAnalysisClient,
    FakeReporting,
    FakeStorage,
    FakeTranscriptionClient,
)


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Per-test SQLite database file"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        connect_args={"check_same_thread": False}
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory) -> PipelineStore:
    return PipelineStore(session_factory)


@pytest.fixture
def transcription_client() -> FakeTranscriptionClient:
    return FakeTranscriptionClient()


@pytest.fixture
def analysis_client() -> FakeAnalysisClient:
    return FakeAnalysisClient()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def reporting() -> FakeReporting:
    return FakeReporting()


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def events(emitter) -> List[Dict]:
    """Every event the orchestrator emits, in order"""
    captured = []
    emitter.use(lambda event_data: captured.append(event_data) or event_data)
    return captured


@pytest.fixture
def orchestrator(store, transcription_client, analysis_client, storage, reporting, emitter) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        store=store,
        transcription_client=transcription_client,
        analysis_client=analysis_client,
        storage=storage,
        reporting=reporting,
        transcription_timeout=5,
        poll_interval=0,
        emitter=emitter
    )


@pytest.fixture
def uploader() -> Principal:
    return Principal(id=1)


@pytest.fixture
def team_member() -> Principal:
    return Principal(id=2, teams=[TeamMembership(team_id=TEAM_ID)])


@pytest.fixture
def team_manager() -> Principal:
    return Principal(id=4, role=Role.MANAGER, teams=[TeamMembership(team_id=TEAM_ID, role=TeamRole.MANAGER)])


@pytest.fixture
def outsider() -> Principal:
    return Principal(id=3, teams=[TeamMembership(team_id=99)])


@pytest.fixture
def admin() -> Principal:
    return Principal(id=100, role=Role.ADMIN)


@pytest.fixture
def make_recording(session_factory):
    """Factory inserting recordings"""
    async def _make(**overrides) -> Recording:
        values = {
            "title": "Sales call",
            "storage_key": "rec1.mp3",
            "uploaded_by_id": 1,
            "team_id": TEAM_ID,
        }
        values.update(overrides)
        async with session_factory() as session:
            recording = Recording(**values)
            session.add(recording)
            await session.commit()
            await session.refresh(recording)
            return recording
    return _make


@pytest.fixture
async def recording(make_recording) -> Recording:
    return await make_recording()


@pytest.fixture
async def client(orchestrator, store) -> AsyncGenerator[AsyncClient, None]:
    """API client wired to the test orchestrator"""
    from app.main import app
    from app.api.v1.endpoints.criteria import get_criteria_service
    from app.services.criteria import CriteriaService
    from app.services.pipeline import get_pipeline_orchestrator

    app.dependency_overrides[get_pipeline_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_criteria_service] = lambda: CriteriaService(store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer headers for a principal"""
    from app.core.auth import auth_service

    def _headers(principal: Principal) -> dict:
        return {"Authorization": f"Bearer {auth_service.create_access_token(principal)}"}
    return _headers
