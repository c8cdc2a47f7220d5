"""
DuoMatch — Profile Repository

Read-only projection of users (and the duos they form) into the immutable
public summaries embedded in duo, invite and match responses.  Snapshots are
rebuilt from the store on every read; nothing here is cached.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duomatch.database import store_errors
from duomatch.errors import NotFound
from duomatch.models.duo import Duo
from duomatch.models.user import User
from duomatch.schemas.duo import DuoSummary
from duomatch.schemas.profile import Interest, ProfilePrompt, UserSummary

logger = structlog.get_logger("duomatch.profile_repository")


def _age_on(birthday: date | None, today: date) -> int | None:
    if birthday is None:
        return None
    had_birthday = (today.month, today.day) >= (birthday.month, birthday.day)
    return today.year - birthday.year - (0 if had_birthday else 1)


def summarize_user(user: User, today: date | None = None) -> UserSummary:
    """Build the public snapshot of a loaded ``User`` row."""
    today = today or date.today()
    interests = [
        Interest(name=item["name"], emoji=item.get("emoji") or "")
        for item in (user.interests or [])
        if isinstance(item, dict) and item.get("name")
    ]
    prompts = [
        ProfilePrompt(prompt=item["prompt"], answer=item["answer"])
        for item in (user.prompts or [])
        if isinstance(item, dict) and item.get("prompt") and item.get("answer")
    ]
    return UserSummary(
        id=user.id,
        name=user.first_name,
        age=_age_on(user.birthday, today),
        photo_refs=[str(p) for p in (user.photos or [])],
        bio=user.bio or "",
        university=user.university,
        interests=interests,
        prompts=prompts,
    )


class ProfileRepository:
    """Summaries of users and duos.

    Every method has a ``*_in`` variant that runs inside a caller-supplied
    session, so services can embed summaries in the same read transaction as
    the records they describe.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ── Public API ────────────────────────────────────────────────────────

    async def summarize(self, user_id: uuid.UUID) -> UserSummary:
        """Return the public summary of one user.

        Raises
        ------
        NotFound
            If no user with ``user_id`` exists.
        """
        async with store_errors("summarize"), self._session_factory() as session:
            summaries = await self.summarize_users_in(session, [user_id])
        if user_id not in summaries:
            raise NotFound(f"User {user_id} not found.")
        return summaries[user_id]

    async def summarize_duo(self, duo_id: uuid.UUID) -> DuoSummary:
        async with store_errors("summarize_duo"), self._session_factory() as session:
            duo = await session.get(Duo, duo_id)
            if duo is None:
                raise NotFound(f"Duo {duo_id} not found.")
            summaries = await self.summarize_duos_in(session, [duo])
        return summaries[duo_id]

    # ── In-session helpers ────────────────────────────────────────────────

    async def summarize_users_in(
        self, session: AsyncSession, user_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, UserSummary]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await session.execute(select(User).where(User.id.in_(ids)))
        today = date.today()
        return {user.id: summarize_user(user, today) for user in result.scalars()}

    async def summarize_duos_in(
        self, session: AsyncSession, duos: Iterable[Duo]
    ) -> dict[uuid.UUID, DuoSummary]:
        duos = list(duos)
        members = await self.summarize_users_in(
            session, (uid for duo in duos for uid in duo.member_ids)
        )
        summaries: dict[uuid.UUID, DuoSummary] = {}
        for duo in duos:
            try:
                pair = (members[duo.member_a_id], members[duo.member_b_id])
            except KeyError:
                # Member row deleted out from under the duo.
                logger.warning("duo_member_missing", duo_id=str(duo.id))
                continue
            summaries[duo.id] = DuoSummary(
                id=duo.id,
                members=pair,
                bio=duo.bio,
                status=duo.status,
                created_at=duo.created_at,
            )
        return summaries
