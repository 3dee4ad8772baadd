"""
Shared fixtures: an in-memory SQLite database and a reasoning-service
stub built on ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.agent_client import AgentClient
from database.models import Base


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


class AgentStub:
    """Records requests and answers from a per-path handler table."""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.handlers: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def on(self, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handlers[path] = handler

    def reply(self, path: str, body: Any, status_code: int = 200) -> None:
        self.on(path, lambda request: httpx.Response(status_code, json=body))

    def calls_to(self, path: str) -> List[Dict[str, Any]]:
        return [r["json"] for r in self.requests if r["path"] == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(
            {"path": request.url.path, "json": json.loads(request.content or b"null")}
        )
        handler = self.handlers.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"detail": "no stub"})
        return handler(request)


@pytest.fixture
def agent_stub() -> AgentStub:
    return AgentStub()


@pytest.fixture
def agent_client(agent_stub) -> AgentClient:
    return AgentClient(
        "http://agent.test",
        timeout=5.0,
        relay_timeout=5.0,
        transport=httpx.MockTransport(agent_stub),
    )


@pytest_asyncio.fixture
async def client(session, agent_client):
    """The full app over ``httpx.ASGITransport``, bound to the test database."""
    from api.dependencies import get_agent_client, get_monitoring_service
    from auth.dependencies import db_session
    from core.monitoring import MonitoringService
    from main import create_app

    app = create_app()

    async def _session():
        yield session

    service = MonitoringService.from_config(agent_client)
    app.dependency_overrides[db_session] = _session
    app.dependency_overrides[get_monitoring_service] = lambda: service
    app.dependency_overrides[get_agent_client] = lambda: agent_client

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
