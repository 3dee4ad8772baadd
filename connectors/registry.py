"""
ConnectorRegistry — selects the connector for a platform.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from connectors.base import BaseConnector
from connectors.google import GoogleConnector
from connectors.slack import SlackConnector

logger = logging.getLogger(__name__)

# ── All known connectors (add new ones here) ─────────────────────────────

_ALL_CONNECTORS: List[BaseConnector] = [
    SlackConnector(),
    GoogleConnector(),
]


class ConnectorRegistry:
    """Singleton registry for all provider connectors."""

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {}
            cls._instance._discovered = False
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def discover(self) -> None:
        """Register all configured connectors."""
        if self._discovered:
            return
        for conn in _ALL_CONNECTORS:
            if conn.is_configured():
                self.register(conn)
            else:
                logger.warning(
                    "Connector %s skipped — not configured (missing client_id/secret)",
                    conn.provider_name,
                )
        self._discovered = True

    def register(self, connector: BaseConnector) -> None:
        self._connectors[connector.provider_name] = connector
        logger.info(
            "Connector registered: %s (%s)",
            connector.display_name,
            connector.provider_name,
        )

    def get(self, provider: str) -> Optional[BaseConnector]:
        return self._connectors.get(provider)

    def list_providers(self) -> List[Dict[str, object]]:
        return [
            {
                "provider": c.provider_name,
                "display_name": c.display_name,
                "configured": c.is_configured(),
            }
            for c in _ALL_CONNECTORS
        ]

    def list_configured(self) -> List[str]:
        return list(self._connectors.keys())
