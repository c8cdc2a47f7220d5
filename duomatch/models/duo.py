"""
DuoMatch — Duo and Invite models.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from duomatch.database import Base, utcnow

# At most one pending invite per ordered (from, to) pair.
PENDING_ONLY = text("status = 'pending'")


class Duo(Base):
    __tablename__ = "duos"
    __table_args__ = (
        CheckConstraint("member_a_id <> member_b_id", name="ck_duo_distinct_members"),
        CheckConstraint("status IN ('active', 'inactive')", name="ck_duo_status"),
        Index("ix_duos_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    member_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="active", comment="active / inactive"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    @property
    def member_ids(self) -> tuple[uuid.UUID, uuid.UUID]:
        return (self.member_a_id, self.member_b_id)

    def has_member(self, user_id: uuid.UUID) -> bool:
        return user_id in self.member_ids

    def __repr__(self) -> str:
        return (
            f"<Duo {self.id} {self.member_a_id} + {self.member_b_id} "
            f"status={self.status!r}>"
        )


class Invite(Base):
    __tablename__ = "invites"
    __table_args__ = (
        CheckConstraint("from_user_id <> to_user_id", name="ck_invite_distinct_users"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')", name="ck_invite_status"
        ),
        Index(
            "uq_invites_pending_pair",
            "from_user_id",
            "to_user_id",
            unique=True,
            postgresql_where=PENDING_ONLY,
            sqlite_where=PENDING_ONLY,
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending", index=True,
        comment="pending / accepted / declined",
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    def __repr__(self) -> str:
        return f"<Invite {self.from_user_id} -> {self.to_user_id} status={self.status!r}>"
