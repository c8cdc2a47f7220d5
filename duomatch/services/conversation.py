"""
DuoMatch — Conversation

Append-only message log per match.  Messages are totally ordered by
``(created_at, seq)``; ``seq`` is assigned by the store on insert so two
messages stamped in the same instant keep a stable relative order.

Sending is guarded on the match still being active: the message insert and
the ``last_message_at`` bump share a transaction, and the bump is a
conditional update on ``status = 'active'``.  If a concurrent unmatch or
block lands first the update matches nothing and the message is rolled back.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duomatch.config import get_settings
from duomatch.database import store_errors, utcnow
from duomatch.errors import InvalidActor, NotActive, NotFound
from duomatch.models.enums import MatchStatus, MessageType
from duomatch.models.match import Match
from duomatch.models.message import Message
from duomatch.schemas.message import MessageRead
from duomatch.services import events
from duomatch.services.events import EventBus
from duomatch.services.match_registry import MatchRegistry

logger = structlog.get_logger("duomatch.conversation")


class Conversation:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_bus: EventBus,
    ) -> None:
        self._session_factory = session_factory
        self._events = event_bus
        settings = get_settings()
        self._page_size = settings.MESSAGE_PAGE_SIZE
        self._max_length = settings.MESSAGE_MAX_LENGTH

    async def send(
        self,
        match_id: uuid.UUID,
        sender: uuid.UUID,
        content: str,
        message_type: MessageType | str = MessageType.TEXT,
    ) -> MessageRead:
        """Append a message to an active match.

        Raises
        ------
        NotFound
            Match does not exist.
        NotActive
            Match was unmatched or blocked (including concurrently).
        InvalidActor
            ``sender`` is not a member of either duo in the match.
        ValueError
            ``content`` is empty or longer than ``MESSAGE_MAX_LENGTH``.
        """
        message_type = MessageType(message_type)
        if not content or not content.strip():
            raise ValueError("Message content must not be empty")
        if len(content) > self._max_length:
            raise ValueError(f"Message content exceeds {self._max_length} characters")

        log = logger.bind(match_id=str(match_id), sender=str(sender))

        async with store_errors("send_message"), self._session_factory.begin() as session:
            match = await session.get(Match, match_id)
            if match is None:
                raise NotFound(f"Match {match_id} not found.")
            if match.status != MatchStatus.ACTIVE.value:
                raise NotActive(f"Match {match_id} is no longer active.")
            if not await MatchRegistry.is_participant(session, match, sender):
                raise InvalidActor("You are not part of this match.")

            now = utcnow()
            message = Message(
                id=uuid.uuid4(),
                match_id=match_id,
                sender_user_id=sender,
                content=content,
                message_type=message_type.value,
                is_read=False,
                created_at=now,
            )
            session.add(message)
            await session.flush()

            bumped = await session.execute(
                update(Match)
                .where(Match.id == match_id, Match.status == MatchStatus.ACTIVE.value)
                .values(
                    last_message_at=case(
                        (
                            or_(
                                Match.last_message_at.is_(None),
                                Match.last_message_at < now,
                            ),
                            now,
                        ),
                        else_=Match.last_message_at,
                    )
                )
                .execution_options(synchronize_session=False)
            )
            if bumped.rowcount != 1:
                raise NotActive(f"Match {match_id} is no longer active.")

            result = MessageRead.model_validate(message)

        log.info("message_sent", message_id=str(result.id), seq=result.seq)
        await self._events.publish(
            events.MESSAGE_SENT,
            match_id=match_id,
            message_id=result.id,
            sender_id=sender,
        )
        return result

    async def get_messages(
        self,
        match_id: uuid.UUID,
        limit: int | None = None,
        before: uuid.UUID | None = None,
    ) -> list[MessageRead]:
        """Newest-first page of a match's messages.

        Callers reverse the list for chronological display.  Passing the id
        of the oldest message already shown as ``before`` returns the page
        preceding it.
        """
        if limit is None:
            limit = self._page_size
        if limit < 1:
            raise ValueError("limit must be positive")

        async with store_errors("get_messages"), self._session_factory() as session:
            if await session.get(Match, match_id) is None:
                raise NotFound(f"Match {match_id} not found.")

            stmt = select(Message).where(Message.match_id == match_id)
            if before is not None:
                anchor = await session.scalar(
                    select(Message).where(Message.id == before, Message.match_id == match_id)
                )
                if anchor is None:
                    raise NotFound(f"Message {before} not found in match {match_id}.")
                stmt = stmt.where(
                    or_(
                        Message.created_at < anchor.created_at,
                        and_(
                            Message.created_at == anchor.created_at,
                            Message.seq < anchor.seq,
                        ),
                    )
                )

            result = await session.execute(
                stmt.order_by(Message.created_at.desc(), Message.seq.desc()).limit(limit)
            )
            return [MessageRead.model_validate(m) for m in result.scalars()]

    async def mark_read(
        self, message_ids: list[uuid.UUID], match_id: uuid.UUID | None = None
    ) -> int:
        """Flag messages as read; returns how many rows actually changed.

        With ``match_id`` only messages of that match are touched.
        """
        if not message_ids:
            return 0

        conditions = [Message.id.in_(set(message_ids)), Message.is_read.is_(False)]
        if match_id is not None:
            conditions.append(Message.match_id == match_id)

        async with store_errors("mark_read"), self._session_factory.begin() as session:
            result = await session.execute(
                update(Message)
                .where(*conditions)
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount

        if updated:
            logger.info("messages_read", count=updated)
            await self._events.publish(
                events.MESSAGES_READ, message_ids=list(message_ids), count=updated
            )
        return updated
