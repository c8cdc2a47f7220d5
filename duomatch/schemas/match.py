"""
DuoMatch — Match, swipe and match-listing schemas.
"""

from pydantic import BaseModel, ConfigDict
from uuid import UUID
from datetime import datetime
from typing import Optional

from duomatch.models.enums import MatchStatus, MessageType, SwipeDirection
from duomatch.schemas.duo import DuoSummary


class MessageSummary(BaseModel):
    """Latest-message preview embedded in a match listing."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    sender_id: UUID
    sender_name: str
    content: str
    message_type: MessageType
    created_at: datetime


class MatchSummary(BaseModel):
    """A match as seen from one of its duos."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    duo_id: UUID
    other_duo: DuoSummary
    status: MatchStatus
    matched_at: datetime
    last_message_at: Optional[datetime] = None
    last_message: Optional[MessageSummary] = None


class MatchDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    duo_a: DuoSummary
    duo_b: DuoSummary
    status: MatchStatus
    matched_at: datetime
    last_message_at: Optional[datetime] = None


class MatchRecord(BaseModel):
    """Bare match row returned by the registry's conditional insert."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    duo_a_id: UUID
    duo_b_id: UUID
    status: MatchStatus
    matched_at: datetime
    last_message_at: Optional[datetime] = None


class SwipeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    swiper_duo_id: UUID
    swiped_duo_id: UUID
    direction: SwipeDirection
    is_match: bool
    match: Optional[MatchRecord] = None


# ── Requests ─────────────────────────────────────────────────────────────

class SwipeCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    swiper_duo_id: UUID
    swiped_duo_id: UUID
    direction: SwipeDirection
