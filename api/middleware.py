"""
Global middleware and exception handlers.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from utils.errors import (
    ActionForbiddenError,
    ActionNotFoundError,
    ActionStateError,
    AgentServiceError,
    ConnectorError,
)

logger = logging.getLogger(__name__)


def register_middleware(app: FastAPI) -> None:
    """Attach app-level middleware."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug(
            "%s %s → %d — %.3fs",
            request.method, request.url.path, response.status_code, elapsed,
        )
        return response


def _upstream_status(exc: AgentServiceError) -> int:
    """Mirror the agent's 4xx; anything else is a bad gateway."""
    if exc.status_code and 400 <= exc.status_code < 500:
        return exc.status_code
    return status.HTTP_502_BAD_GATEWAY


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    @app.exception_handler(ActionNotFoundError)
    async def _not_found(request: Request, exc: ActionNotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Action not found"})

    @app.exception_handler(ActionForbiddenError)
    async def _forbidden(request: Request, exc: ActionForbiddenError):
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": "Unauthorized"})

    @app.exception_handler(ActionStateError)
    async def _conflict(request: Request, exc: ActionStateError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(AgentServiceError)
    async def _agent_failed(request: Request, exc: AgentServiceError):
        logger.error("Reasoning service error on %s: %s", request.url.path, exc.detail)
        return JSONResponse(status_code=_upstream_status(exc), content={"detail": exc.detail})

    @app.exception_handler(ConnectorError)
    async def _connector_failed(request: Request, exc: ConnectorError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
