"""
Review Queue Factory

Wires the SQL stores into a ParameterCache and a ReviewQueueBuilder.

The cache is process-wide (create it once at startup and pass it along);
queue builders are cheap and created per request session.

Usage:
    parameter_cache = create_parameter_cache()

    async with async_session_maker() as session:
        builder = create_review_queue(session, parameter_cache)
        result = await builder.build_queue(user_id, deck_id)
"""

import random
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deckstudy.db.base import async_session_maker
from deckstudy.services.learning.parameter_cache import ParameterCache
from deckstudy.services.learning.review_queue import ReviewQueueBuilder
from deckstudy.services.learning.stores import (
    SqlAuditLog,
    SqlCardStore,
    SqlSettingsStore,
)


def create_parameter_cache(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    ttl_seconds: Optional[float] = None,
) -> ParameterCache:
    """Create the shared cache backed by the user_settings table."""
    return ParameterCache(
        SqlSettingsStore(session_maker or async_session_maker),
        ttl_seconds=ttl_seconds,
    )


def create_review_queue(
    db: AsyncSession,
    parameter_cache: ParameterCache,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    rng: Optional[random.Random] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ReviewQueueBuilder:
    """Create a queue builder bound to one request session."""
    return ReviewQueueBuilder(
        settings_store=SqlSettingsStore(session_maker or async_session_maker),
        card_store=SqlCardStore(db),
        audit_log=SqlAuditLog(db),
        parameter_cache=parameter_cache,
        rng=rng,
        clock=clock,
    )
