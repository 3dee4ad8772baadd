"""
Workspace action relay — application entry point.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.integrations import router as integrations_router
from api.middleware import register_exception_handlers, register_middleware
from api.routes import router as monitoring_router
from api.webhooks import router as webhooks_router
from config.settings import config
from connectors.registry import ConnectorRegistry
from connectors.routes import router as connectors_router
from core.monitoring import run_expiry_sweeper
from database.session import async_session_factory, init_models

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Workspace Action Relay",
        version="1.0.0",
        description="Monitors workspace channels and relays suggested actions to an AI agent.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    # Routes
    app.include_router(monitoring_router, prefix="/api/v1/monitoring")
    app.include_router(webhooks_router, prefix="/api/v1/monitoring/webhooks")
    app.include_router(integrations_router, prefix="/api/v1/integrations")
    app.include_router(connectors_router, prefix="/api/v1/connectors")

    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "ok"}

    sweeper: dict = {}

    @app.on_event("startup")
    async def on_startup():
        await init_models()
        ConnectorRegistry().discover()

        if config.action_expiry_sweep_seconds > 0:
            sweeper["task"] = asyncio.create_task(
                run_expiry_sweeper(
                    async_session_factory,
                    interval_seconds=config.action_expiry_sweep_seconds,
                    hours_old=config.action_expiry_hours,
                )
            )
            logger.info(
                "Expiry sweep every %ds for actions pending > %dh",
                config.action_expiry_sweep_seconds, config.action_expiry_hours,
            )
        logger.info("Application ready to accept requests.")

    @app.on_event("shutdown")
    async def on_shutdown():
        task = sweeper.pop("task", None)
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
