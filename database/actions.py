"""
Suggested-action store — persist proposals and their state transitions.

Functions take the caller's ``AsyncSession`` and only ``flush``; the
request (or background job) that owns the session commits.  Ownership is
not checked here: callers verify it before mutating.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import config
from database.models import SuggestedAction
from utils.errors import ActionStateError
from utils.schemas import ActionDraft, ActionStatus

logger = logging.getLogger(__name__)

_PENDING = ActionStatus.PENDING.value


def _truncate_context(text: str | None) -> str:
    return (text or "")[: config.max_source_context_chars]


def _new_action(draft: ActionDraft) -> SuggestedAction:
    return SuggestedAction(
        user_id=draft.user_id,
        source_platform=draft.source_platform,
        source_channel=draft.source_channel or "",
        source_context=_truncate_context(draft.source_context),
        suggested_tool=draft.suggested_tool,
        suggested_params=dict(draft.suggested_params),
        description=draft.description,
        status=_PENDING,
        edited_params=None,
        execution_result=None,
        created_at=datetime.now(timezone.utc),
    )


async def create_action(
    session: AsyncSession,
    *,
    user_id: int,
    source_platform: str,
    source_channel: str,
    source_context: str,
    suggested_tool: str,
    suggested_params: Dict[str, Any],
    description: str,
) -> SuggestedAction:
    """Insert one pending action and return the row (id assigned)."""
    row = _new_action(
        ActionDraft(
            user_id=user_id,
            source_platform=source_platform,
            source_channel=source_channel or "",
            source_context=source_context or "",
            suggested_tool=suggested_tool,
            suggested_params=suggested_params or {},
            description=description or "",
        )
    )
    session.add(row)
    await session.flush()
    return row


async def create_actions(
    session: AsyncSession,
    drafts: List[ActionDraft],
) -> List[SuggestedAction]:
    """
    Insert a batch of pending actions with a single flush.

    All-or-nothing: a failure propagates and leaves the caller's
    transaction to roll back.  Rows come back in input order, so
    ``len()`` of the result is the inserted count.
    """
    if not drafts:
        return []
    rows = [_new_action(d) for d in drafts]
    session.add_all(rows)
    await session.flush()
    logger.info("Stored %d suggested action(s) for user %s", len(rows), rows[0].user_id)
    return rows


async def find_action(
    session: AsyncSession,
    action_id: int,
) -> Optional[SuggestedAction]:
    result = await session.execute(
        select(SuggestedAction)
        .where(SuggestedAction.id == action_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_actions(
    session: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
    limit: int = 50,
) -> List[SuggestedAction]:
    """Newest-first actions of one user, optionally filtered by status."""
    stmt = select(SuggestedAction).where(SuggestedAction.user_id == user_id)
    if status:
        stmt = stmt.where(SuggestedAction.status == status)
    stmt = (
        stmt.order_by(SuggestedAction.created_at.desc(), SuggestedAction.id.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_pending(session: AsyncSession, user_id: int) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(SuggestedAction)
        .where(
            SuggestedAction.user_id == user_id,
            SuggestedAction.status == _PENDING,
        )
    )
    return int(result.scalar_one())


async def update_params(
    session: AsyncSession,
    action_id: int,
    edited_params: Dict[str, Any],
) -> bool:
    """
    Store user edits.  Missing or no-longer-pending rows are left alone
    and ``False`` is returned.
    """
    row = await find_action(session, action_id)
    if row is None or row.status != _PENDING:
        return False
    row.edited_params = dict(edited_params)
    await session.flush()
    return True


async def update_status(
    session: AsyncSession,
    action_id: int,
    status: str,
    execution_result: Optional[Any] = None,
) -> bool:
    """
    Move a pending action to a terminal status.

    ``executed`` stamps ``executed_at`` and stores *execution_result* when
    given.  Returns ``False`` for a missing id; raises
    ``ActionStateError`` when the row already left ``pending``.
    """
    status = ActionStatus(status).value
    row = await find_action(session, action_id)
    if row is None:
        return False
    if row.status != _PENDING:
        raise ActionStateError(action_id, row.status)

    row.status = status
    if status == ActionStatus.EXECUTED.value:
        row.executed_at = datetime.now(timezone.utc)
        if execution_result is not None:
            row.execution_result = execution_result
    await session.flush()
    logger.info("Action %s → %s", action_id, status)
    return True


async def expire_old_actions(session: AsyncSession, hours_old: int = 24) -> int:
    """
    Mark every pending action created more than *hours_old* hours ago as
    ``expired``.  Returns the number of rows affected.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours_old)
    result = await session.execute(
        update(SuggestedAction)
        .where(
            SuggestedAction.status == _PENDING,
            SuggestedAction.created_at < cutoff,
        )
        .values(status=ActionStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    expired = result.rowcount or 0
    if expired:
        logger.info("Expired %d pending action(s) older than %dh", expired, hours_old)
    return expired
