"""
Monitored-channel registry — which external channels each user watches.

Rows are never deleted: deactivation flips ``is_active`` so history
survives and a later upsert simply reactivates the row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import MonitoredChannel
from utils.schemas import ChannelSpec

logger = logging.getLogger(__name__)

_DEFAULT_PLATFORM = "slack"
_CONFLICT_KEY = ["user_id", "platform", "channel_id"]


def _row(user_id: int, platform: str, channel_id: str, channel_name: str) -> dict:
    return {
        "user_id": user_id,
        "platform": platform,
        "channel_id": channel_id,
        "channel_name": channel_name or "",
        "is_active": True,
        "created_at": datetime.now(timezone.utc),
    }


def _insert_for(session: AsyncSession):
    """Dialect-specific INSERT supporting ``ON CONFLICT DO UPDATE``."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def _upsert_rows(session: AsyncSession, values: List[dict]) -> None:
    insert = _insert_for(session)
    stmt = insert(MonitoredChannel).values(values)
    stmt = stmt.on_conflict_do_update(
        index_elements=_CONFLICT_KEY,
        set_={
            "channel_name": stmt.excluded.channel_name,
            "is_active": True,
        },
    )
    await session.execute(stmt)
    await session.flush()


async def upsert_channel(
    session: AsyncSession,
    user_id: int,
    channel_id: str,
    channel_name: str = "",
    platform: Optional[str] = None,
) -> None:
    """Insert the channel, or refresh its name and reactivate it."""
    await _upsert_rows(
        session,
        [_row(user_id, platform or _DEFAULT_PLATFORM, channel_id, channel_name)],
    )


async def bulk_upsert_channels(
    session: AsyncSession,
    user_id: int,
    channels: Iterable[ChannelSpec],
) -> int:
    """
    Upsert many channels in one statement.  Empty input is a no-op.

    Duplicate ``(platform, channel_id)`` entries collapse to the last one,
    since a single ``ON CONFLICT`` statement cannot touch a row twice.
    """
    deduped: dict[tuple[str, str], dict] = {}
    for spec in channels:
        platform = spec.platform or _DEFAULT_PLATFORM
        deduped[(platform, spec.channel_id)] = _row(
            user_id, platform, spec.channel_id, spec.channel_name
        )
    if not deduped:
        return 0
    await _upsert_rows(session, list(deduped.values()))
    return len(deduped)


async def list_channels(
    session: AsyncSession,
    user_id: int,
    platform: Optional[str] = None,
) -> List[MonitoredChannel]:
    """Active channels of a user, by channel name."""
    stmt = select(MonitoredChannel).where(
        MonitoredChannel.user_id == user_id,
        MonitoredChannel.is_active.is_(True),
    )
    if platform:
        stmt = stmt.where(MonitoredChannel.platform == platform)
    stmt = stmt.order_by(
        MonitoredChannel.channel_name.asc(), MonitoredChannel.id.asc()
    ).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def find_users_by_channel(session: AsyncSession, channel_id: str) -> List[int]:
    """Distinct ids of users actively monitoring *channel_id*."""
    result = await session.execute(
        select(MonitoredChannel.user_id)
        .where(
            MonitoredChannel.channel_id == channel_id,
            MonitoredChannel.is_active.is_(True),
        )
        .distinct()
        .order_by(MonitoredChannel.user_id)
    )
    return [int(uid) for uid in result.scalars().all()]


async def deactivate_channel(session: AsyncSession, user_id: int, channel_id: str) -> int:
    result = await session.execute(
        update(MonitoredChannel)
        .where(
            MonitoredChannel.user_id == user_id,
            MonitoredChannel.channel_id == channel_id,
            MonitoredChannel.is_active.is_(True),
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    return result.rowcount or 0


async def deactivate_channel_by_id(
    session: AsyncSession,
    row_id: int,
    *,
    user_id: Optional[int] = None,
) -> bool:
    """
    Deactivate one registry row.  With *user_id* the row must also belong
    to that user.  Returns ``False`` when no active row matched.
    """
    stmt = update(MonitoredChannel).where(
        MonitoredChannel.id == row_id,
        MonitoredChannel.is_active.is_(True),
    )
    if user_id is not None:
        stmt = stmt.where(MonitoredChannel.user_id == user_id)
    result = await session.execute(
        stmt.values(is_active=False).execution_options(synchronize_session=False)
    )
    await session.flush()
    return bool(result.rowcount)


async def replace_channels(
    session: AsyncSession,
    user_id: int,
    platform: str,
    channels: Iterable[ChannelSpec],
) -> int:
    """
    Make *channels* the exact active set for ``(user_id, platform)``.

    Every active row of the pair is deactivated first, then the new list
    is upserted under *platform*, so deselected channels never survive.
    """
    await session.execute(
        update(MonitoredChannel)
        .where(
            MonitoredChannel.user_id == user_id,
            MonitoredChannel.platform == platform,
            MonitoredChannel.is_active.is_(True),
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    tagged = [spec.model_copy(update={"platform": platform}) for spec in channels]
    count = await bulk_upsert_channels(session, user_id, tagged)
    logger.info("User %s now monitors %d %s channel(s)", user_id, count, platform)
    return count
