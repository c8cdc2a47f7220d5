"""
DuoMatch — Swipe Engine

Records one duo's verdict on another and detects reciprocal matches.

Flow for ``record_swipe``:

  1. Validate actor, self-swipe and both duos.
  2. In the same transaction, upsert the swipe keyed by (swiper_duo,
     swiped_duo), guarded on both duos still being active, and COMMIT.
  3. like / superLike only: look for the reverse positive swipe.  If present,
     ask the MatchRegistry for the match (conditional insert).

Committing step 2 before step 3 is what makes concurrent reciprocal likes
safe: whichever of the two swipes commits second is guaranteed to see the
first, and the registry collapses any number of creators onto one row.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import DateTime, String, Uuid, exists, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duomatch.database import dialect_insert, store_errors, utcnow
from duomatch.errors import InvalidActor, NotActive, NotFound, SelfSwipe
from duomatch.models.duo import Duo
from duomatch.models.enums import POSITIVE_DIRECTIONS, DuoStatus, SwipeDirection
from duomatch.models.match import Swipe
from duomatch.schemas.match import SwipeResult
from duomatch.services import events
from duomatch.services.events import EventBus
from duomatch.services.match_registry import MatchRegistry

logger = structlog.get_logger("duomatch.swipe_engine")


class SwipeEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        match_registry: MatchRegistry,
        event_bus: EventBus,
    ) -> None:
        self._session_factory = session_factory
        self._matches = match_registry
        self._events = event_bus

    async def record_swipe(
        self,
        swiper_duo: uuid.UUID,
        swiper_user: uuid.UUID,
        swiped_duo: uuid.UUID,
        direction: SwipeDirection | str,
    ) -> SwipeResult:
        """Record (or overwrite) a swipe and report whether it produced a match.

        Re-swiping the same target replaces the previous direction.  ``pass``
        never creates a match; ``like`` and ``superLike`` are interchangeable
        for reciprocity.  A match that already exists for the pair is
        returned as-is.

        Raises
        ------
        InvalidActor
            ``swiper_user`` is not a member of ``swiper_duo``.
        SelfSwipe
            ``swiper_duo == swiped_duo``.
        NotFound / NotActive
            Either duo is missing or dissolved.
        """
        direction = SwipeDirection(direction)
        log = logger.bind(
            swiper_duo=str(swiper_duo),
            swiped_duo=str(swiped_duo),
            direction=direction.value,
        )

        now = utcnow()
        async with store_errors("record_swipe"), self._session_factory.begin() as session:
            await self._validate(session, swiper_duo, swiper_user, swiped_duo)

            # The row is only produced while both duos are still active, so a
            # dissolution that commits after validation cannot receive a swipe.
            source = Duo.__table__.alias("source")
            target = Duo.__table__.alias("target")
            guarded_row = select(
                literal(uuid.uuid4(), Uuid),
                literal(swiper_duo, Uuid),
                literal(swiped_duo, Uuid),
                literal(swiper_user, Uuid),
                literal(direction.value, String),
                literal(now, DateTime(timezone=True)),
            ).where(
                exists().where(
                    source.c.id == swiper_duo,
                    source.c.status == DuoStatus.ACTIVE.value,
                    or_(source.c.member_a_id == swiper_user, source.c.member_b_id == swiper_user),
                ),
                exists().where(
                    target.c.id == swiped_duo,
                    target.c.status == DuoStatus.ACTIVE.value,
                ),
            )
            stmt = dialect_insert(session, Swipe.__table__).from_select(
                [
                    "id",
                    "swiper_duo_id",
                    "swiped_duo_id",
                    "swiper_user_id",
                    "direction",
                    "created_at",
                ],
                guarded_row,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["swiper_duo_id", "swiped_duo_id"],
                set_={
                    "direction": stmt.excluded.direction,
                    "swiper_user_id": stmt.excluded.swiper_user_id,
                    "updated_at": now,
                },
            )
            result = await session.execute(stmt)
            if result.rowcount != 1:
                await self._validate(session, swiper_duo, swiper_user, swiped_duo)
                raise NotActive("One of the duos is no longer active.")

        log.info("swipe_recorded")
        await self._events.publish(
            events.SWIPE_RECORDED,
            swiper_duo_id=swiper_duo,
            swiped_duo_id=swiped_duo,
            direction=direction.value,
        )

        if not direction.is_positive:
            return SwipeResult(
                swiper_duo_id=swiper_duo,
                swiped_duo_id=swiped_duo,
                direction=direction,
                is_match=False,
            )

        async with store_errors("record_swipe"), self._session_factory() as session:
            reciprocal = await session.scalar(
                select(Swipe.id).where(
                    Swipe.swiper_duo_id == swiped_duo,
                    Swipe.swiped_duo_id == swiper_duo,
                    Swipe.direction.in_(POSITIVE_DIRECTIONS),
                )
            )

        match = None
        if reciprocal is not None:
            match, created = await self._matches.create_match_if_absent(swiper_duo, swiped_duo)
            log.info("reciprocal_like_detected", match_id=str(match.id), created=created)

        return SwipeResult(
            swiper_duo_id=swiper_duo,
            swiped_duo_id=swiped_duo,
            direction=direction,
            is_match=match is not None,
            match=match,
        )

    async def _validate(
        self,
        session: AsyncSession,
        swiper_duo: uuid.UUID,
        swiper_user: uuid.UUID,
        swiped_duo: uuid.UUID,
    ) -> None:
        source = await session.get(Duo, swiper_duo, populate_existing=True)
        if source is None:
            raise NotFound(f"Duo {swiper_duo} not found.")
        if not source.has_member(swiper_user):
            raise InvalidActor("You are not a member of the swiping duo.")
        if swiper_duo == swiped_duo:
            raise SelfSwipe()
        if source.status != DuoStatus.ACTIVE.value:
            raise NotActive(f"Duo {swiper_duo} is no longer active.")

        target = await session.get(Duo, swiped_duo, populate_existing=True)
        if target is None:
            raise NotFound(f"Duo {swiped_duo} not found.")
        if target.status != DuoStatus.ACTIVE.value:
            raise NotActive(f"Duo {swiped_duo} is no longer active.")
