"""
DuoMatch — Swipe and Match models.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from duomatch.database import Base, utcnow


class Swipe(Base):
    __tablename__ = "swipes"
    __table_args__ = (
        UniqueConstraint("swiper_duo_id", "swiped_duo_id", name="uq_swipe_pair"),
        CheckConstraint("swiper_duo_id <> swiped_duo_id", name="ck_swipe_not_self"),
        CheckConstraint(
            "direction IN ('pass', 'like', 'superLike')", name="ck_swipe_direction"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    swiper_duo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("duos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    swiped_duo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("duos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    swiper_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    direction: Mapped[str] = mapped_column(
        String(16), nullable=False, comment="pass / like / superLike"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Set when a re-swipe overwrites"
    )

    def __repr__(self) -> str:
        return (
            f"<Swipe {self.swiper_duo_id} -> {self.swiped_duo_id} "
            f"dir={self.direction!r}>"
        )


class Match(Base):
    """A reciprocal match between two duos.

    The pair is stored canonically (``duo_a_id`` < ``duo_b_id``) so that the
    unique constraint covers the unordered pair regardless of swipe order.
    """

    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("duo_a_id", "duo_b_id", name="uq_match_pair"),
        CheckConstraint("duo_a_id <> duo_b_id", name="ck_match_distinct_duos"),
        CheckConstraint(
            "status IN ('active', 'archived', 'blocked')", name="ck_match_status"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    duo_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("duos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    duo_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("duos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="active", comment="active / archived / blocked"
    )
    matched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def duo_ids(self) -> tuple[uuid.UUID, uuid.UUID]:
        return (self.duo_a_id, self.duo_b_id)

    def other_duo_id(self, duo_id: uuid.UUID) -> uuid.UUID:
        return self.duo_b_id if duo_id == self.duo_a_id else self.duo_a_id

    def __repr__(self) -> str:
        return f"<Match {self.duo_a_id} <-> {self.duo_b_id} status={self.status!r}>"


def canonical_pair(
    duo_x: uuid.UUID, duo_y: uuid.UUID
) -> tuple[uuid.UUID, uuid.UUID]:
    """Order an unordered duo pair the way the ``matches`` table stores it."""
    return (duo_x, duo_y) if str(duo_x) < str(duo_y) else (duo_y, duo_x)
