"""FastAPI application factory and lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bulkgen.config import settings
from bulkgen.db.engine import create_db_engine, create_session_factory
from bulkgen.logging_config import configure_logging
from bulkgen.workers.orchestrator import build_orchestrator, run_recovery_loop

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=not settings.local_mode)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources.

    Tests may pre-populate ``app.state`` with an engine, session factory and
    orchestrator; those are used as-is and not disposed here.
    """
    owns_engine = getattr(app.state, "db_engine", None) is None
    if owns_engine:
        engine = create_db_engine()
        db_url = str(engine.url)

        # Auto-create tables for SQLite (local dev, no Alembic migrations)
        if "sqlite" in db_url:
            from bulkgen.db.base import Base
            import bulkgen.db.models  # noqa: F401 (register all ORM models)

            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("SQLite tables created (local mode)")

        app.state.db_engine = engine
        app.state.db_session_factory = create_session_factory(engine)

    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator(app.state.db_session_factory, settings)

    orchestrator = app.state.orchestrator
    recovered = await orchestrator.recover_orphans()
    if recovered:
        logger.warning("Closed %d abandoned jobs at startup", recovered)
    recovery_task = asyncio.create_task(
        run_recovery_loop(orchestrator, settings.recovery_interval_seconds)
    )

    logger.info("Bulk generation API started (batch_size=%d)", settings.batch_size)
    yield

    # Shutdown
    recovery_task.cancel()
    try:
        await recovery_task
    except asyncio.CancelledError:
        pass
    await orchestrator.registry.shutdown()
    if owns_engine:
        await app.state.db_engine.dispose()
    logger.info("Bulk generation API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Bulk Generation API",
        version="1.0.0",
        description="Asynchronous bulk product-content generation jobs.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from bulkgen.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    from bulkgen.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from bulkgen.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
