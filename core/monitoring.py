"""
MonitoringService — the façade the HTTP layer talks to.

Ingestion:
  inbound event → ``route_inbound_event`` resolves interested users via the
  channel registry → ``process_event`` per user → ContextAnalyzer →
  pending actions.

Review:
  list / count / edit / reject / execute.  Every mutating call loads the
  action and verifies ownership first; the store itself never does.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import config
from core.action_executor import ActionExecutor
from core.agent_client import AgentClient
from core.context_analyzer import ContextAnalyzer
from database import actions as action_store
from database import channels as channel_registry
from database.models import MonitoredChannel, SuggestedAction
from utils.errors import ActionForbiddenError, ActionNotFoundError, ActionStateError
from utils.schemas import ActionStatus, ChannelSpec

logger = logging.getLogger(__name__)


class MonitoringService:
    def __init__(
        self,
        analyzer: ContextAnalyzer,
        executor: ActionExecutor,
        *,
        default_limit: int = 50,
    ):
        self.analyzer = analyzer
        self.executor = executor
        self.default_limit = default_limit

    @classmethod
    def from_config(cls, agent_client: Optional[AgentClient] = None) -> "MonitoringService":
        client = agent_client or AgentClient(
            config.ai_agent_url,
            timeout=config.agent_timeout_seconds,
            relay_timeout=config.agent_relay_timeout_seconds,
        )
        return cls(
            ContextAnalyzer(client, min_context_chars=config.min_context_chars),
            ActionExecutor(client),
            default_limit=config.default_action_limit,
        )

    # ── Ingestion ───────────────────────────────────────────────────────

    async def process_event(
        self,
        session: AsyncSession,
        user_id: int,
        platform: str,
        channel_id: str,
        context_text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[SuggestedAction]:
        """Analyze one event for one user; membership was checked upstream."""
        return await self.analyzer.analyze(
            session, user_id, platform, channel_id, context_text, metadata or {},
        )

    async def route_inbound_event(
        self,
        session: AsyncSession,
        channel_id: str,
        context_text: str,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        platform: str = "slack",
    ) -> Dict[int, List[SuggestedAction]]:
        """Fan an event out to every user monitoring *channel_id*."""
        user_ids = await channel_registry.find_users_by_channel(session, channel_id)
        if not user_ids:
            logger.debug("No user monitors channel %s — event ignored", channel_id)
            return {}
        created: Dict[int, List[SuggestedAction]] = {}
        for uid in user_ids:
            created[uid] = await self.process_event(
                session, uid, platform, channel_id, context_text, metadata,
            )
        return created

    # ── Review surface ──────────────────────────────────────────────────

    async def _owned_action(
        self,
        session: AsyncSession,
        user_id: int,
        action_id: int,
    ) -> SuggestedAction:
        action = await action_store.find_action(session, action_id)
        if action is None:
            raise ActionNotFoundError(action_id)
        if action.user_id != user_id:
            raise ActionForbiddenError(action_id, user_id)
        return action

    async def get_action(
        self,
        session: AsyncSession,
        user_id: int,
        action_id: int,
    ) -> SuggestedAction:
        return await self._owned_action(session, user_id, action_id)

    async def list_actions(
        self,
        session: AsyncSession,
        user_id: int,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[SuggestedAction]:
        return await action_store.list_actions(
            session, user_id, status, self.default_limit if limit is None else limit,
        )

    async def pending_count(self, session: AsyncSession, user_id: int) -> int:
        return await action_store.count_pending(session, user_id)

    async def edit_action(
        self,
        session: AsyncSession,
        user_id: int,
        action_id: int,
        params: Dict[str, Any],
    ) -> SuggestedAction:
        action = await self._owned_action(session, user_id, action_id)
        if action.status != ActionStatus.PENDING.value:
            raise ActionStateError(action_id, action.status)
        await action_store.update_params(session, action_id, params)
        return action

    async def reject_action(
        self,
        session: AsyncSession,
        user_id: int,
        action_id: int,
    ) -> SuggestedAction:
        action = await self._owned_action(session, user_id, action_id)
        await action_store.update_status(session, action_id, ActionStatus.REJECTED.value)
        logger.info("[Monitor] User %s dismissed action %s", user_id, action_id)
        return action

    async def execute_action(
        self,
        session: AsyncSession,
        user_id: int,
        action_id: int,
    ) -> Dict[str, Any]:
        return await self.executor.execute(session, user_id, action_id)

    async def expire_stale_actions(
        self,
        session: AsyncSession,
        hours_old: Optional[int] = None,
    ) -> int:
        return await action_store.expire_old_actions(
            session, config.action_expiry_hours if hours_old is None else hours_old,
        )

    # ── Channel selection ───────────────────────────────────────────────

    async def list_channels(
        self,
        session: AsyncSession,
        user_id: int,
        platform: Optional[str] = None,
    ) -> List[MonitoredChannel]:
        return await channel_registry.list_channels(session, user_id, platform)

    async def set_channels(
        self,
        session: AsyncSession,
        user_id: int,
        platform: str,
        channels: List[ChannelSpec],
    ) -> List[MonitoredChannel]:
        """Replace the user's selection for *platform* and return the new set."""
        await channel_registry.replace_channels(session, user_id, platform, channels)
        return await channel_registry.list_channels(session, user_id, platform)

    async def remove_channel(
        self,
        session: AsyncSession,
        user_id: int,
        row_id: int,
    ) -> bool:
        return await channel_registry.deactivate_channel_by_id(
            session, row_id, user_id=user_id,
        )

    async def users_for_channel(self, session: AsyncSession, channel_id: str) -> List[int]:
        return await channel_registry.find_users_by_channel(session, channel_id)


# ── Background expiry sweep ─────────────────────────────────────────────


async def run_expiry_sweeper(
    session_factory: async_sessionmaker,
    *,
    interval_seconds: int,
    hours_old: int,
) -> None:
    """
    Expire stale pending actions every *interval_seconds* until cancelled.
    The first sweep runs immediately.
    """
    while True:
        try:
            async with session_factory() as session:
                expired = await action_store.expire_old_actions(session, hours_old)
                await session.commit()
            if expired:
                logger.info("Expiry sweep: %d action(s) expired", expired)
        except Exception:
            logger.exception("Expiry sweep failed")
        await asyncio.sleep(interval_seconds)
