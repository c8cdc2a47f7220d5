"""
DuoMatch — Duo and invite schemas.

Read models are frozen snapshots rebuilt on every request; request bodies
reject unknown fields.
"""

from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime
from typing import Optional

from duomatch.models.enums import DuoStatus, InviteStatus
from duomatch.schemas.profile import Interest, UserSummary


class DuoSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    members: tuple[UserSummary, UserSummary]
    bio: str
    status: DuoStatus
    created_at: datetime

    @property
    def member_ids(self) -> tuple[UUID, UUID]:
        return (self.members[0].id, self.members[1].id)

    @property
    def combined_interests(self) -> list[Interest]:
        seen: dict[str, Interest] = {}
        for member in self.members:
            for interest in member.interests:
                seen.setdefault(interest.name, interest)
        return list(seen.values())


class InviteSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    from_user_id: UUID
    to_user_id: UUID
    from_user: Optional[UserSummary] = None
    to_user: Optional[UserSummary] = None
    status: InviteStatus
    message: Optional[str] = None
    created_at: datetime


# ── Requests ─────────────────────────────────────────────────────────────

class InviteCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    to_user_id: UUID
    message: Optional[str] = Field(None, max_length=500)


class DuoBioUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bio: str
