"""
DuoMatch — Pairing Manager

Owns the duo lifecycle:

  send_invite ──► pending ──► accept_invite ──► duo (active)
                     │                              │
                     ├──► decline_invite            └──► leave_duo ──► inactive
                     └──► cancel_invite (deleted)

and the invariant that a user belongs to at most one active duo.  Every
state change runs in its own transaction and guards its writes with
compare-and-set predicates, so two concurrent accepts involving the same user
cannot both succeed: the loser's transaction rolls back with AlreadyPaired.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duomatch.config import get_settings
from duomatch.database import dialect_insert, store_errors, utcnow
from duomatch.errors import (
    AlreadyPaired,
    InvalidActor,
    NotActive,
    NotFound,
    SelfInvite,
    StoreConflict,
)
from duomatch.models.duo import PENDING_ONLY, Duo, Invite
from duomatch.models.enums import DuoStatus, InviteStatus
from duomatch.models.user import User
from duomatch.schemas.duo import DuoSummary, InviteSummary
from duomatch.services import events
from duomatch.services.events import EventBus
from duomatch.services.profile_repository import ProfileRepository

logger = structlog.get_logger("duomatch.pairing_manager")


class PairingManager:
    """Duo invitations, formation, rename and dissolution.

    Dependencies are injected at construction so the FastAPI lifespan and the
    test fixtures build the same object graph.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profiles: ProfileRepository,
        event_bus: EventBus,
    ) -> None:
        """
        Parameters
        ----------
        session_factory:
            Opens one session (and transaction) per public operation.
        profiles:
            Builds the member snapshots embedded in duo and invite summaries.
        event_bus:
            Receives a change event after every committed mutation.
        """
        self._session_factory = session_factory
        self._profiles = profiles
        self._events = event_bus

    # ── Invites ───────────────────────────────────────────────────────────

    async def send_invite(
        self,
        from_user: uuid.UUID,
        to_user: uuid.UUID,
        message: str | None = None,
    ) -> InviteSummary:
        """Create a pending invite from ``from_user`` to ``to_user``.

        An identical pending invite already on file is returned instead of
        creating a duplicate.  The insert is guarded by the partial unique
        index on pending (from, to) pairs, so concurrent or retried calls all
        resolve to the same row.

        Raises
        ------
        SelfInvite
            ``from_user == to_user``.
        NotFound
            Either user does not exist.
        AlreadyPaired
            ``from_user`` is already a member of an active duo.
        """
        if from_user == to_user:
            raise SelfInvite()

        log = logger.bind(from_user=str(from_user), to_user=str(to_user))

        async with store_errors("send_invite"), self._session_factory.begin() as session:
            users = await self._load_users(session, (from_user, to_user))
            if users[from_user].active_duo_id is not None:
                raise AlreadyPaired()

            new_id = uuid.uuid4()
            await session.execute(
                dialect_insert(session, Invite.__table__)
                .values(
                    id=new_id,
                    from_user_id=from_user,
                    to_user_id=to_user,
                    message=message,
                    status=InviteStatus.PENDING.value,
                    created_at=utcnow(),
                )
                .on_conflict_do_nothing(
                    index_elements=["from_user_id", "to_user_id"],
                    index_where=PENDING_ONLY,
                )
            )
            invite = await session.scalar(
                select(Invite).where(
                    Invite.from_user_id == from_user,
                    Invite.to_user_id == to_user,
                    Invite.status == InviteStatus.PENDING.value,
                )
            )
            if invite is None:
                # Accepted or declined between our insert and the read back.
                raise StoreConflict("The invite changed while it was being sent.")
            created = invite.id == new_id

            summary = await self._invite_summary(session, invite)

        if created:
            log.info("invite_sent", invite_id=str(invite.id))
            await self._events.publish(
                events.INVITE_SENT,
                invite_id=invite.id,
                from_user_id=from_user,
                to_user_id=to_user,
            )
        else:
            log.info("invite_already_pending", invite_id=str(invite.id))
        return summary

    async def accept_invite(
        self, invite_id: uuid.UUID, actor: uuid.UUID | None = None
    ) -> DuoSummary:
        """Accept a pending invite and form the duo.

        Within a single transaction: the invite flips pending → accepted
        (guarded on ``status = 'pending'``), the duo row is inserted, and both
        users' ``active_duo_id`` is set (guarded on ``active_duo_id IS NULL``).
        If any guard matches fewer rows than expected, everything rolls back.

        Raises
        ------
        NotFound
            Invite missing or no longer pending.
        InvalidActor
            ``actor`` is given and is not the invitee.
        AlreadyPaired
            Either party is (or concurrently became) a member of an active duo.
        """
        log = logger.bind(invite_id=str(invite_id))

        async with store_errors("accept_invite"), self._session_factory.begin() as session:
            invite = await session.get(Invite, invite_id)
            if invite is None or invite.status != InviteStatus.PENDING.value:
                raise NotFound(f"Invite {invite_id} not found or no longer pending.")
            if actor is not None and actor != invite.to_user_id:
                raise InvalidActor("Only the invited user can accept this invite.")

            users = await self._load_users(session, (invite.from_user_id, invite.to_user_id))
            if any(u.active_duo_id is not None for u in users.values()):
                raise AlreadyPaired("One of you is already in a duo.")

            claimed = await session.execute(
                update(Invite)
                .where(Invite.id == invite_id, Invite.status == InviteStatus.PENDING.value)
                .values(status=InviteStatus.ACCEPTED.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                raise NotFound(f"Invite {invite_id} not found or no longer pending.")

            duo = Duo(
                id=uuid.uuid4(),
                member_a_id=invite.from_user_id,
                member_b_id=invite.to_user_id,
                bio="",
                status=DuoStatus.ACTIVE.value,
                created_at=utcnow(),
            )
            session.add(duo)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise StoreConflict("Duo could not be created.") from exc

            linked = await session.execute(
                update(User)
                .where(User.id.in_(duo.member_ids), User.active_duo_id.is_(None))
                .values(active_duo_id=duo.id, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if linked.rowcount != 2:
                raise AlreadyPaired("One of you joined another duo in the meantime.")

            summary = (await self._profiles.summarize_duos_in(session, [duo]))[duo.id]

        log.info("invite_accepted", duo_id=str(duo.id))
        await self._events.publish(
            events.INVITE_ACCEPTED,
            invite_id=invite_id,
            duo_id=duo.id,
            member_ids=list(duo.member_ids),
        )
        return summary

    async def decline_invite(
        self, invite_id: uuid.UUID, actor: uuid.UUID | None = None
    ) -> None:
        async with store_errors("decline_invite"), self._session_factory.begin() as session:
            invite = await self._pending_invite(session, invite_id)
            if actor is not None and actor != invite.to_user_id:
                raise InvalidActor("Only the invited user can decline this invite.")

            result = await session.execute(
                update(Invite)
                .where(Invite.id == invite_id, Invite.status == InviteStatus.PENDING.value)
                .values(status=InviteStatus.DECLINED.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFound(f"Invite {invite_id} not found or no longer pending.")

        logger.info("invite_declined", invite_id=str(invite_id))
        await self._events.publish(events.INVITE_DECLINED, invite_id=invite_id)

    async def cancel_invite(self, invite_id: uuid.UUID, actor: uuid.UUID) -> None:
        """Withdraw a pending invite.  Only its sender may cancel it."""
        async with store_errors("cancel_invite"), self._session_factory.begin() as session:
            invite = await self._pending_invite(session, invite_id)
            if actor != invite.from_user_id:
                raise InvalidActor("Only the sender can cancel this invite.")

            result = await session.execute(
                delete(Invite)
                .where(Invite.id == invite_id, Invite.status == InviteStatus.PENDING.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFound(f"Invite {invite_id} not found or no longer pending.")

        logger.info("invite_cancelled", invite_id=str(invite_id))
        await self._events.publish(events.INVITE_CANCELLED, invite_id=invite_id)

    async def list_incoming_invites(self, user_id: uuid.UUID) -> list[InviteSummary]:
        """Pending invites addressed to ``user_id``, newest first."""
        return await self._list_invites(Invite.to_user_id == user_id)

    async def list_sent_invites(self, user_id: uuid.UUID) -> list[InviteSummary]:
        """Pending invites sent by ``user_id``, newest first."""
        return await self._list_invites(Invite.from_user_id == user_id)

    # ── Duos ──────────────────────────────────────────────────────────────

    async def get_duo(self, duo_id: uuid.UUID) -> DuoSummary:
        return await self._profiles.summarize_duo(duo_id)

    async def get_current_duo(self, user_id: uuid.UUID) -> DuoSummary | None:
        """The user's active duo, or ``None`` when they are single."""
        async with store_errors("get_current_duo"), self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFound(f"User {user_id} not found.")
            if user.active_duo_id is None:
                return None
            duo = await session.get(Duo, user.active_duo_id)
            if duo is None or duo.status != DuoStatus.ACTIVE.value:
                logger.warning(
                    "stale_active_duo_reference",
                    user_id=str(user_id),
                    duo_id=str(user.active_duo_id),
                )
                return None
            return (await self._profiles.summarize_duos_in(session, [duo])).get(duo.id)

    async def update_duo_bio(
        self, duo_id: uuid.UUID, bio: str, actor: uuid.UUID | None = None
    ) -> DuoSummary:
        max_length = get_settings().DUO_BIO_MAX_LENGTH
        if len(bio) > max_length:
            raise ValueError(f"Duo bio exceeds {max_length} characters")

        async with store_errors("update_duo_bio"), self._session_factory.begin() as session:
            duo = await self._active_duo(session, duo_id, actor)
            result = await session.execute(
                update(Duo)
                .where(Duo.id == duo_id, Duo.status == DuoStatus.ACTIVE.value)
                .values(bio=bio, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotActive(f"Duo {duo_id} is no longer active.")
            duo.bio = bio
            summary = (await self._profiles.summarize_duos_in(session, [duo]))[duo.id]

        logger.info("duo_renamed", duo_id=str(duo_id))
        await self._events.publish(events.DUO_RENAMED, duo_id=duo_id)
        return summary

    async def leave_duo(self, duo_id: uuid.UUID, actor: uuid.UUID | None = None) -> None:
        """Dissolve the duo.  Its swipes and matches are left in place.

        Raises
        ------
        NotFound
            Duo does not exist.
        NotActive
            Duo already dissolved.
        InvalidActor
            ``actor`` is given and is not a member.
        """
        async with store_errors("leave_duo"), self._session_factory.begin() as session:
            duo = await self._active_duo(session, duo_id, actor)

            result = await session.execute(
                update(Duo)
                .where(Duo.id == duo_id, Duo.status == DuoStatus.ACTIVE.value)
                .values(status=DuoStatus.INACTIVE.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotActive(f"Duo {duo_id} is no longer active.")

            await session.execute(
                update(User)
                .where(User.id.in_(duo.member_ids), User.active_duo_id == duo_id)
                .values(active_duo_id=None, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

        logger.info("duo_dissolved", duo_id=str(duo_id), actor=str(actor) if actor else None)
        await self._events.publish(
            events.DUO_DISSOLVED, duo_id=duo_id, member_ids=list(duo.member_ids)
        )

    # ── Internal helpers ──────────────────────────────────────────────────

    async def _load_users(
        self, session: AsyncSession, user_ids: tuple[uuid.UUID, ...]
    ) -> dict[uuid.UUID, User]:
        result = await session.execute(select(User).where(User.id.in_(user_ids)))
        users = {u.id: u for u in result.scalars()}
        for uid in user_ids:
            if uid not in users:
                raise NotFound(f"User {uid} not found.")
        return users

    async def _pending_invite(self, session: AsyncSession, invite_id: uuid.UUID) -> Invite:
        invite = await session.get(Invite, invite_id)
        if invite is None or invite.status != InviteStatus.PENDING.value:
            raise NotFound(f"Invite {invite_id} not found or no longer pending.")
        return invite

    async def _active_duo(
        self, session: AsyncSession, duo_id: uuid.UUID, actor: uuid.UUID | None
    ) -> Duo:
        duo = await session.get(Duo, duo_id)
        if duo is None:
            raise NotFound(f"Duo {duo_id} not found.")
        if duo.status != DuoStatus.ACTIVE.value:
            raise NotActive(f"Duo {duo_id} is no longer active.")
        if actor is not None and not duo.has_member(actor):
            raise InvalidActor("You are not a member of this duo.")
        return duo

    async def _invite_summary(self, session: AsyncSession, invite: Invite) -> InviteSummary:
        people = await self._profiles.summarize_users_in(
            session, (invite.from_user_id, invite.to_user_id)
        )
        return InviteSummary(
            id=invite.id,
            from_user_id=invite.from_user_id,
            to_user_id=invite.to_user_id,
            from_user=people.get(invite.from_user_id),
            to_user=people.get(invite.to_user_id),
            status=invite.status,
            message=invite.message,
            created_at=invite.created_at,
        )

    async def _list_invites(self, predicate) -> list[InviteSummary]:
        async with store_errors("list_invites"), self._session_factory() as session:
            result = await session.execute(
                select(Invite)
                .where(predicate, Invite.status == InviteStatus.PENDING.value)
                .order_by(Invite.created_at.desc(), Invite.id)
            )
            invites = list(result.scalars())
            people = await self._profiles.summarize_users_in(
                session,
                (uid for inv in invites for uid in (inv.from_user_id, inv.to_user_id)),
            )
        return [
            InviteSummary(
                id=inv.id,
                from_user_id=inv.from_user_id,
                to_user_id=inv.to_user_id,
                from_user=people.get(inv.from_user_id),
                to_user=people.get(inv.to_user_id),
                status=inv.status,
                message=inv.message,
                created_at=inv.created_at,
            )
            for inv in invites
        ]
