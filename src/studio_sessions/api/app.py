"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from studio_sessions.api.sessions import router as sessions_router
from studio_sessions.app_logging import configure_logging
from studio_sessions.containers import AppContainer
from studio_sessions.domain.errors import (
    ConflictError,
    GuardViolationError,
    InfrastructureError,
    InvalidTransitionError,
    SessionError,
    SessionNotFoundError,
    TerminalStateError,
    ValidationError,
)

_STATUS_CODES: dict[type[SessionError], int] = {
    TerminalStateError: 409,
    InvalidTransitionError: 409,
    ConflictError: 409,
    GuardViolationError: 422,
    ValidationError: 422,
    SessionNotFoundError: 404,
    InfrastructureError: 503,
}


def error_body(exc: SessionError) -> dict[str, object]:
    """Render a lifecycle error as the failure response body."""
    body: dict[str, object] = {"error_kind": exc.error_kind, "message": str(exc)}
    if isinstance(exc, GuardViolationError):
        body["violations"] = [violation.to_dict() for violation in exc.violations]
    return body


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(sessions_router)

    @app.exception_handler(SessionError)
    async def session_error_handler(
        request: Request, exc: SessionError
    ) -> JSONResponse:
        status_code = _STATUS_CODES.get(type(exc), 400)
        if status_code >= 500:
            logger.error("Request %s failed: %s", request.url.path, exc)
        return JSONResponse(status_code=status_code, content=error_body(exc))

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
