"""
Degrade-to-default wrapper for best-effort read paths.

Dashboard aggregation should stay partially usable when one provider is
down, so these call sites swap failures for an empty value instead of
failing the whole response.
"""

from __future__ import annotations

import logging
from typing import Awaitable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def tolerant_call(call: Awaitable[T], default: T, *, label: str) -> T:
    """
    Await *call*; on any exception log it and return *default*.

    Cancellation is not an ``Exception`` and still propagates.
    """
    try:
        return await call
    except Exception as exc:
        logger.warning("%s failed, using fallback: %s", label, exc)
        return default
