"""
Context analyzer — turn inbound event text into pending suggested actions.

Monitoring must never block ingestion on agent availability, so every
reasoning-service failure degrades to "no suggestions".  Storage errors
are not swallowed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from core.agent_client import AgentClient
from database.actions import create_actions
from database.models import SuggestedAction
from utils.errors import AgentServiceError, AgentUnavailableError
from utils.schemas import ActionDraft, Suggestion

logger = logging.getLogger(__name__)


class ContextAnalyzer:
    def __init__(
        self,
        agent_client: AgentClient,
        *,
        min_context_chars: int = 10,
    ):
        self.agent_client = agent_client
        self.min_context_chars = min_context_chars

    async def analyze(
        self,
        session: AsyncSession,
        user_id: int,
        platform: str,
        channel_id: str,
        context_text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[SuggestedAction]:
        if not context_text or len(context_text.strip()) < self.min_context_chars:
            return []

        logger.info(
            "[Monitor] Processing %s event for user %s: %r",
            platform, user_id, context_text[:80],
        )
        try:
            raw = await self.agent_client.analyze_context(
                user_id, platform, channel_id, context_text, metadata,
            )
        except AgentUnavailableError as exc:
            logger.warning("[Monitor] Reasoning service offline, skipping analysis: %s", exc)
            return []
        except AgentServiceError as exc:
            logger.error("[Monitor] Error analyzing %s event for user %s: %s", platform, user_id, exc)
            return []

        suggestions = self._parse(raw)
        drafts = self._to_drafts(suggestions, user_id, platform, channel_id, context_text)
        if not drafts:
            logger.info("[Monitor] No actions suggested for user %s", user_id)
            return []

        logger.info("[Monitor] Agent suggested %d action(s)", len(drafts))
        return await create_actions(session, drafts)

    @staticmethod
    def _parse(raw: List[Any]) -> List[Suggestion]:
        """Validate entries one by one; a malformed entry never sinks the rest."""
        suggestions = []
        for entry in raw:
            try:
                suggestions.append(Suggestion.model_validate(entry))
            except ValidationError as exc:
                logger.warning("[Monitor] Dropping malformed suggestion %r: %s", entry, exc)
        return suggestions

    @staticmethod
    def _to_drafts(
        suggestions: List[Suggestion],
        user_id: int,
        platform: str,
        channel_id: str,
        context_text: str,
    ) -> List[ActionDraft]:
        drafts = []
        for s in suggestions:
            if not s.tool:
                logger.warning("[Monitor] Dropping suggestion without a tool: %s", s.model_dump())
                continue
            drafts.append(
                ActionDraft(
                    user_id=user_id,
                    source_platform=platform,
                    source_channel=channel_id or "",
                    source_context=context_text,
                    suggested_tool=s.tool,
                    suggested_params=s.resolved_params(),
                    description=s.description or f"{s.tool} action",
                )
            )
        return drafts
