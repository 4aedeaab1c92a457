"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request

from bulkgen.services.credentials import ForwardedAuth
from bulkgen.services.job_store import JobStore
from bulkgen.workers.orchestrator import JobOrchestrator


def get_orchestrator(request: Request) -> JobOrchestrator:
    """Return the orchestrator built during application startup."""
    return request.app.state.orchestrator


def get_job_store(request: Request) -> JobStore:
    return request.app.state.orchestrator.store


def get_forwarded_auth(request: Request) -> ForwardedAuth:
    """Capture the caller's credentials for the generation service."""
    return ForwardedAuth.from_headers(request.headers)


# Type aliases for dependency injection
Orchestrator = Annotated[JobOrchestrator, Depends(get_orchestrator)]
Store = Annotated[JobStore, Depends(get_job_store)]
CallerAuth = Annotated[ForwardedAuth, Depends(get_forwarded_auth)]
