"""
DuoMatch — Error taxonomy.

Every failure the engine reports carries a stable ``kind`` so callers can pick
the right user action (choose another partner, find a new match, retry).
"""

from __future__ import annotations


class DuoMatchError(Exception):
    """Base class for all engine errors."""

    kind: str = "DuoMatchError"
    default_message: str = "Operation failed."

    def __init__(self, message: str | None = None, **context: object) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class AlreadyPaired(DuoMatchError):
    kind = "AlreadyPaired"
    default_message = "You are already in a duo. Leave your current duo first."


class SelfInvite(DuoMatchError):
    kind = "SelfInvite"
    default_message = "You cannot invite yourself to a duo."


class SelfSwipe(DuoMatchError):
    kind = "SelfSwipe"
    default_message = "A duo cannot swipe on itself."


class InvalidActor(DuoMatchError):
    kind = "InvalidActor"
    default_message = "The acting user is not allowed to perform this action."


class NotFound(DuoMatchError):
    kind = "NotFound"
    default_message = "The requested record was not found."


class NotActive(DuoMatchError):
    kind = "NotActive"
    default_message = "The requested record is no longer active."


class StoreConflict(DuoMatchError):
    """Lost a uniqueness race against a concurrent writer."""

    kind = "StoreConflict"
    default_message = "A conflicting write happened at the same time. Please retry."


class Unavailable(DuoMatchError):
    """Transient store failure (timeout, connectivity).  Safe to retry."""

    kind = "Unavailable"
    default_message = "The service is temporarily unavailable. Please retry."
