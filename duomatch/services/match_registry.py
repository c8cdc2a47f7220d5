"""
DuoMatch — Match Registry

Match lifecycle between two duos:

    (reciprocal like) ──► active ──► archived   (unmatch)
                                └──► blocked    (block)

Both exits are terminal.  A match is stored once per unordered duo pair in
canonical order, and is created with a single conditional insert so any
number of concurrent creators resolve to the same row.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duomatch.database import dialect_insert, store_errors, utcnow
from duomatch.errors import InvalidActor, NotActive, NotFound
from duomatch.models.duo import Duo
from duomatch.models.enums import MatchStatus
from duomatch.models.match import Match, canonical_pair
from duomatch.models.message import Message
from duomatch.models.user import User
from duomatch.schemas.match import MatchDetail, MatchRecord, MatchSummary, MessageSummary
from duomatch.services import events
from duomatch.services.events import EventBus
from duomatch.services.profile_repository import ProfileRepository

logger = structlog.get_logger("duomatch.match_registry")


class MatchRegistry:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profiles: ProfileRepository,
        event_bus: EventBus,
    ) -> None:
        self._session_factory = session_factory
        self._profiles = profiles
        self._events = event_bus

    # ── Creation ──────────────────────────────────────────────────────────

    async def create_match_if_absent(
        self, duo_x: uuid.UUID, duo_y: uuid.UUID
    ) -> tuple[MatchRecord, bool]:
        """Return the match for the unordered pair, creating it if needed.

        The insert carries ``ON CONFLICT (duo_a_id, duo_b_id) DO NOTHING``, so
        a writer that loses the uniqueness race simply reads back the winner's
        row.  The ``bool`` is True only for the caller whose insert landed.
        """
        duo_a, duo_b = canonical_pair(duo_x, duo_y)
        new_id = uuid.uuid4()

        async with store_errors("create_match_if_absent"), self._session_factory.begin() as session:
            stmt = (
                dialect_insert(session, Match.__table__)
                .values(
                    id=new_id,
                    duo_a_id=duo_a,
                    duo_b_id=duo_b,
                    status=MatchStatus.ACTIVE.value,
                    matched_at=utcnow(),
                )
                .on_conflict_do_nothing(index_elements=["duo_a_id", "duo_b_id"])
            )
            await session.execute(stmt)
            match = await session.scalar(
                select(Match).where(Match.duo_a_id == duo_a, Match.duo_b_id == duo_b)
            )
            record = MatchRecord.model_validate(match)

        created = record.id == new_id
        if created:
            logger.info(
                "match_created",
                match_id=str(record.id),
                duo_a_id=str(duo_a),
                duo_b_id=str(duo_b),
            )
            await self._events.publish(
                events.MATCH_CREATED, match_id=record.id, duo_ids=[duo_a, duo_b]
            )
        else:
            logger.info("match_already_exists", match_id=str(record.id))
        return record, created

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_matches(self, for_duo: uuid.UUID) -> list[MatchSummary]:
        """Active matches of ``for_duo``, most recently active first.

        Each entry embeds a fresh snapshot of the other duo and a preview of
        the newest message.  Ordered by ``coalesce(last_message_at,
        matched_at)`` descending.
        """
        async with store_errors("get_matches"), self._session_factory() as session:
            if await session.get(Duo, for_duo) is None:
                raise NotFound(f"Duo {for_duo} not found.")

            activity = func.coalesce(Match.last_message_at, Match.matched_at)
            result = await session.execute(
                select(Match)
                .where(
                    or_(Match.duo_a_id == for_duo, Match.duo_b_id == for_duo),
                    Match.status == MatchStatus.ACTIVE.value,
                )
                .order_by(activity.desc(), Match.id)
            )
            matches = list(result.scalars())
            if not matches:
                return []

            other_ids = {m.other_duo_id(for_duo) for m in matches}
            duos = await session.execute(select(Duo).where(Duo.id.in_(other_ids)))
            duo_summaries = await self._profiles.summarize_duos_in(session, duos.scalars())
            previews = await self._last_messages(session, [m.id for m in matches])

        summaries = []
        for match in matches:
            other = duo_summaries.get(match.other_duo_id(for_duo))
            if other is None:
                continue
            summaries.append(
                MatchSummary(
                    id=match.id,
                    duo_id=for_duo,
                    other_duo=other,
                    status=match.status,
                    matched_at=match.matched_at,
                    last_message_at=match.last_message_at,
                    last_message=previews.get(match.id),
                )
            )
        return summaries

    async def get_match(self, match_id: uuid.UUID) -> MatchDetail:
        async with store_errors("get_match"), self._session_factory() as session:
            match = await session.get(Match, match_id)
            if match is None:
                raise NotFound(f"Match {match_id} not found.")
            duos = await session.execute(select(Duo).where(Duo.id.in_(match.duo_ids)))
            duo_summaries = await self._profiles.summarize_duos_in(session, duos.scalars())
        if match.duo_a_id not in duo_summaries or match.duo_b_id not in duo_summaries:
            raise NotFound(f"Match {match_id} refers to a missing duo.")
        return MatchDetail(
            id=match.id,
            duo_a=duo_summaries[match.duo_a_id],
            duo_b=duo_summaries[match.duo_b_id],
            status=match.status,
            matched_at=match.matched_at,
            last_message_at=match.last_message_at,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def unmatch(self, match_id: uuid.UUID, actor: uuid.UUID | None = None) -> None:
        """active → archived."""
        await self._close(match_id, MatchStatus.ARCHIVED, actor)
        logger.info("match_unmatched", match_id=str(match_id))
        await self._events.publish(events.MATCH_UNMATCHED, match_id=match_id)

    async def block(self, match_id: uuid.UUID, actor: uuid.UUID | None = None) -> None:
        """active → blocked."""
        await self._close(match_id, MatchStatus.BLOCKED, actor)
        logger.info("match_blocked", match_id=str(match_id))
        await self._events.publish(events.MATCH_BLOCKED, match_id=match_id)

    # ── Internal helpers ──────────────────────────────────────────────────

    async def _close(
        self, match_id: uuid.UUID, target: MatchStatus, actor: uuid.UUID | None
    ) -> None:
        async with store_errors(f"match_{target.value}"), self._session_factory.begin() as session:
            match = await session.get(Match, match_id)
            if match is None:
                raise NotFound(f"Match {match_id} not found.")
            if actor is not None and not await self.is_participant(session, match, actor):
                raise InvalidActor("You are not part of this match.")

            result = await session.execute(
                update(Match)
                .where(Match.id == match_id, Match.status == MatchStatus.ACTIVE.value)
                .values(status=target.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotActive(f"Match {match_id} is no longer active.")

    @staticmethod
    async def is_participant(
        session: AsyncSession, match: Match, user_id: uuid.UUID
    ) -> bool:
        """True if ``user_id`` is a member of either duo of ``match``."""
        count = await session.scalar(
            select(func.count())
            .select_from(Duo)
            .where(
                Duo.id.in_(match.duo_ids),
                or_(Duo.member_a_id == user_id, Duo.member_b_id == user_id),
            )
        )
        return bool(count)

    async def _last_messages(
        self, session: AsyncSession, match_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, MessageSummary]:
        newest = (
            select(Message.match_id, func.max(Message.seq).label("seq"))
            .where(Message.match_id.in_(match_ids))
            .group_by(Message.match_id)
            .subquery()
        )
        result = await session.execute(
            select(Message, User.first_name)
            .join(newest, Message.seq == newest.c.seq)
            .join(User, User.id == Message.sender_user_id)
        )
        return {
            message.match_id: MessageSummary(
                id=message.id,
                sender_id=message.sender_user_id,
                sender_name=sender_name,
                content=message.content,
                message_type=message.message_type,
                created_at=message.created_at,
            )
            for message, sender_name in result.all()
        }
