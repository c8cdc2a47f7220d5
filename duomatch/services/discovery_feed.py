"""
DuoMatch — Discovery Feed

Candidate duos for a given duo: every other active duo it has not yet swiped
on, in any direction.  Duos that swiped on the requester without being swiped
back are still candidates.  Ordering is exclusion-based only (creation time,
then id) so pages are stable between calls.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duomatch.config import get_settings
from duomatch.database import store_errors
from duomatch.errors import NotActive, NotFound
from duomatch.models.duo import Duo
from duomatch.models.enums import DuoStatus
from duomatch.models.match import Swipe
from duomatch.schemas.duo import DuoSummary
from duomatch.services.profile_repository import ProfileRepository

logger = structlog.get_logger("duomatch.discovery_feed")


class DiscoveryFeed:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profiles: ProfileRepository,
    ) -> None:
        self._session_factory = session_factory
        self._profiles = profiles
        self._max_limit = get_settings().DISCOVERY_MAX_LIMIT

    async def get_candidates(
        self, for_duo: uuid.UUID, limit: int, offset: int = 0
    ) -> list[DuoSummary]:
        """Return up to ``limit`` candidate duos starting at ``offset``.

        Parameters
        ----------
        for_duo:
            The duo browsing the feed.  Must exist and be active.
        limit:
            Page size, clamped to ``DISCOVERY_MAX_LIMIT``.
        offset:
            Number of candidates to skip.

        Raises
        ------
        NotFound
            ``for_duo`` does not exist.
        NotActive
            ``for_duo`` has been dissolved.
        """
        if limit < 1 or offset < 0:
            raise ValueError("limit must be positive and offset non-negative")
        limit = min(limit, self._max_limit)

        async with store_errors("get_candidates"), self._session_factory() as session:
            duo = await session.get(Duo, for_duo)
            if duo is None:
                raise NotFound(f"Duo {for_duo} not found.")
            if duo.status != DuoStatus.ACTIVE.value:
                raise NotActive(f"Duo {for_duo} is no longer active.")

            already_swiped = exists().where(
                and_(Swipe.swiper_duo_id == for_duo, Swipe.swiped_duo_id == Duo.id)
            )
            result = await session.execute(
                select(Duo)
                .where(
                    Duo.status == DuoStatus.ACTIVE.value,
                    Duo.id != for_duo,
                    ~already_swiped,
                )
                .order_by(Duo.created_at, Duo.id)
                .offset(offset)
                .limit(limit)
            )
            candidates = list(result.scalars())
            summaries = await self._profiles.summarize_duos_in(session, candidates)

        logger.debug(
            "candidates_listed",
            duo_id=str(for_duo),
            offset=offset,
            returned=len(candidates),
        )
        return [summaries[c.id] for c in candidates if c.id in summaries]
