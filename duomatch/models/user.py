"""
DuoMatch — User model.

Profile columns are owned by the identity/profile side of the product and are
only read here.  ``active_duo_id`` is a weak reference maintained by the
pairing manager (no foreign key, so a duo can be soft-deleted independently).
"""

import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from duomatch.database import Base, utcnow

_JSON = JSON().with_variant(JSONB, "postgresql")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    birthday: Mapped[date | None] = mapped_column(Date, nullable=True)
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    university: Mapped[str | None] = mapped_column(String, nullable=True)
    photos: Mapped[list | None] = mapped_column(
        _JSON, nullable=True, comment="Ordered array of photo URLs, main photo first"
    )
    interests: Mapped[list | None] = mapped_column(
        _JSON, nullable=True, comment="Array of {name, emoji}"
    )
    prompts: Mapped[list | None] = mapped_column(
        _JSON, nullable=True, comment="Array of {prompt, answer}"
    )
    active_duo_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    def __repr__(self) -> str:
        return f"<User {self.email!r} id={self.id} duo={self.active_duo_id}>"
