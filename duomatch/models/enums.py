"""
DuoMatch — Status and direction vocabularies shared by models and schemas.

Values are persisted as plain strings; the CHECK constraints on each table
mirror these enumerations.
"""

import enum


class DuoStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class InviteStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class SwipeDirection(str, enum.Enum):
    PASS = "pass"
    LIKE = "like"
    SUPER_LIKE = "superLike"

    @property
    def is_positive(self) -> bool:
        """like and superLike are equivalent for reciprocity."""
        return self is not SwipeDirection.PASS


POSITIVE_DIRECTIONS: tuple[str, ...] = (
    SwipeDirection.LIKE.value,
    SwipeDirection.SUPER_LIKE.value,
)


class MatchStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    BLOCKED = "blocked"


class MessageType(str, enum.Enum):
    TEXT = "text"
    ICEBREAKER = "icebreaker"
    DATE_SUGGESTION = "dateSuggestion"
    IMAGE = "image"
