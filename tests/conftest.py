"""Shared test fixtures."""

import asyncio
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bulkgen.config import Settings
from bulkgen.db.base import Base
# Import all models to register with Base.metadata
import bulkgen.db.models  # noqa: F401
from bulkgen.models.bulk_job import BulkItem, BulkJob
from bulkgen.models.enums import ItemStatus, JobStatus
from bulkgen.services.generation_client import GenerationResult
from bulkgen.services.id_generator import generate_job_id, item_id
from bulkgen.services.job_store import JobStore
from bulkgen.workers.orchestrator import build_orchestrator


class FakeGenerator:
    """Stand-in for the generation service.

    ``outcomes`` maps a product name to an exception to raise; ``delays``
    maps a product name to how long the call takes.
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.delays: dict[str, float] = {}
        self.outcomes: dict[str, BaseException] = {}
        self.calls: list[str] = []
        self.auth_seen = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, item, *, owner_id, selected_sections, auth):
        self.calls.append(item.product_name)
        self.auth_seen.append(auth)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(item.product_name, self.delay))
            outcome = self.outcomes.get(item.product_name)
            if outcome is not None:
                raise outcome
            return GenerationResult(
                content=f"Generated listing for {item.product_name}",
                content_id=f"cnt_{item.product_name}",
            )
        finally:
            self.in_flight -= 1


@pytest.fixture
async def db_engine(tmp_path):
    """SQLite engine backed by a temp file so concurrent sessions get separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bulkgen_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def fast_settings():
    """Settings with every pause removed and a short item timeout."""
    return Settings(
        batch_size=3,
        batch_pause_seconds=0,
        reconcile_delay_seconds=0,
        status_update_backoff_seconds=0,
        item_timeout_seconds=0.5,
        batch_timeout_seconds=5,
    )


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
async def orchestrator(session_factory, fast_settings, generator):
    orch = build_orchestrator(session_factory, fast_settings, generator=generator)
    yield orch
    await orch.registry.shutdown()


@pytest.fixture
def create_job(store):
    """Persist a job directly, bypassing the orchestrator."""

    async def _create(
        names=("A", "B", "C"),
        owner_id="owner-1",
        statuses=None,
        status=JobStatus.PROCESSING,
        created_at=None,
    ) -> BulkJob:
        job_id = generate_job_id(owner_id)
        statuses = statuses or [ItemStatus.PENDING] * len(names)
        items = [
            BulkItem(id=item_id(job_id, i), product_name=name, status=item_status)
            for i, (name, item_status) in enumerate(zip(names, statuses))
        ]
        now = created_at or datetime.now(timezone.utc)
        return await store.create(
            BulkJob(
                job_id=job_id,
                owner_id=owner_id,
                status=status,
                total_count=len(items),
                items=items,
                created_at=now,
                updated_at=now,
            )
        )

    return _create


@pytest.fixture
def app(db_engine, session_factory, orchestrator):
    """Create a test application instance wired to the test database."""
    from bulkgen.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.orchestrator = orchestrator
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
