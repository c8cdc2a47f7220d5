"""
DuoMatch — Change-notification bus.

Services publish a ``ChangeEvent`` after each successful state change has
committed.  Observers are plain async callables registered in-process; an
optional Redis publisher fans the same events out to other workers over
pub/sub.  Delivery is best-effort: a failing observer is logged and never
affects the operation that emitted the event.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

import structlog

from duomatch.database import utcnow

logger = structlog.get_logger("duomatch.events")


INVITE_SENT = "invite_sent"
INVITE_ACCEPTED = "invite_accepted"
INVITE_DECLINED = "invite_declined"
INVITE_CANCELLED = "invite_cancelled"
DUO_RENAMED = "duo_renamed"
DUO_DISSOLVED = "duo_dissolved"
SWIPE_RECORDED = "swipe_recorded"
MATCH_CREATED = "match_created"
MATCH_UNMATCHED = "match_unmatched"
MATCH_BLOCKED = "match_blocked"
MESSAGE_SENT = "message_sent"
MESSAGES_READ = "messages_read"


@dataclass(frozen=True)
class ChangeEvent:
    type: str
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=utcnow)

    def to_json(self) -> str:
        return json.dumps(
            {
                "type": self.type,
                "payload": self.payload,
                "occurred_at": self.occurred_at.isoformat(),
            },
            default=_json_default,
        )


def _json_default(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


Subscriber = Callable[[ChangeEvent], Awaitable[None]]


class RedisEventPublisher:
    """Publishes events as JSON on a Redis pub/sub channel."""

    def __init__(self, redis_client: Any, channel: str) -> None:
        self._redis = redis_client
        self._channel = channel

    async def __call__(self, event: ChangeEvent) -> None:
        await self._redis.publish(self._channel, event.to_json())


class EventBus:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; returns a callable that removes it."""
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    async def publish(self, event_type: str, **payload: Any) -> ChangeEvent:
        event = ChangeEvent(type=event_type, payload=payload)
        for subscriber in list(self._subscribers):
            try:
                await subscriber(event)
            except Exception:
                logger.exception(
                    "event_subscriber_failed",
                    event_type=event_type,
                    subscriber=getattr(subscriber, "__qualname__", repr(subscriber)),
                )
        return event
