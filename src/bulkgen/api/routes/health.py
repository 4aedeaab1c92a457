"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness plus the number of jobs running in this process."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    running = len(orchestrator.registry.active_job_ids()) if orchestrator else 0
    return {"status": "healthy", "service": "bulkgen-api", "version": "1.0.0", "running_jobs": running}


@router.get("/health/ready")
async def readiness(request: Request):
    """Readiness probe: checks database connectivity."""
    try:
        session_factory = request.app.state.db_session_factory
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks = {"database": "ok"}
        overall_ok = True
    except Exception as exc:
        checks = {"database": f"error: {exc}"}
        overall_ok = False

    return JSONResponse(
        status_code=200 if overall_ok else 503,
        content={
            "status": "ready" if overall_ok else "not_ready",
            "checks": checks,
        },
    )
