"""FastAPI dependency injection for the sync orchestrator."""

from fastapi import HTTPException, Request, status

from election_sync.services.sync_orchestrator import DataOrchestrator


def get_orchestrator(request: Request) -> DataOrchestrator:
    """Return the orchestrator created by the application lifespan.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    orchestrator: DataOrchestrator | None = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Sync service not initialized")
    return orchestrator
