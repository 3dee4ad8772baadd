"""
Action executor — run an approved (possibly edited) suggestion through the
reasoning service and record the outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from core.agent_client import AgentClient
from database.actions import find_action, update_status
from utils.errors import (
    ActionForbiddenError,
    ActionNotFoundError,
    ActionStateError,
)
from utils.schemas import ActionStatus

logger = logging.getLogger(__name__)


class ActionExecutor:
    def __init__(self, agent_client: AgentClient):
        self.agent_client = agent_client

    async def execute(
        self,
        session: AsyncSession,
        user_id: int,
        action_id: int,
    ) -> Dict[str, Any]:
        """
        Dispatch the action and mark it executed.

        Checks, in order: existence, ownership, still pending.  A failed
        dispatch raises ``AgentServiceError`` and leaves the action pending
        so it can be edited and retried.
        """
        action = await find_action(session, action_id)
        if action is None:
            raise ActionNotFoundError(action_id)
        if action.user_id != user_id:
            raise ActionForbiddenError(action_id, user_id)
        if action.status != ActionStatus.PENDING.value:
            raise ActionStateError(action_id, action.status)

        params = action.resolved_params
        logger.info(
            "[Monitor] Executing action %s (%s) for user %s",
            action_id, action.suggested_tool, user_id,
        )
        try:
            result = await self.agent_client.execute_action(
                user_id, action.suggested_tool, params,
            )
        except Exception as exc:
            logger.error("[Monitor] Failed to execute action %s: %s", action_id, exc)
            raise

        await update_status(session, action_id, ActionStatus.EXECUTED.value, result)
        return {"success": True, "result": result}
