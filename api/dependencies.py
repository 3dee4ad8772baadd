"""
FastAPI dependencies for the monitoring pipeline (shared across routes).
"""

from __future__ import annotations

from functools import lru_cache

from config.settings import config
from core.agent_client import AgentClient
from core.monitoring import MonitoringService


@lru_cache(maxsize=1)
def get_agent_client() -> AgentClient:
    return AgentClient(
        config.ai_agent_url,
        timeout=config.agent_timeout_seconds,
        relay_timeout=config.agent_relay_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_monitoring_service() -> MonitoringService:
    return MonitoringService.from_config(get_agent_client())
