"""Initial schema — users, duos, invites, swipes, matches, messages.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String, nullable=False),
        sa.Column("first_name", sa.String, nullable=False, server_default=""),
        sa.Column("birthday", sa.Date, nullable=True),
        sa.Column("bio", sa.Text, nullable=False, server_default=""),
        sa.Column("university", sa.String, nullable=True),
        sa.Column("photos", postgresql.JSONB, nullable=True,
                  comment="Ordered array of photo URLs, main photo first"),
        sa.Column("interests", postgresql.JSONB, nullable=True,
                  comment="Array of {name, emoji}"),
        sa.Column("prompts", postgresql.JSONB, nullable=True,
                  comment="Array of {prompt, answer}"),
        # Weak reference: no FK so a duo can be dissolved independently.
        sa.Column("active_duo_id", postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_active_duo_id", "users", ["active_duo_id"])

    # ── 2. duos ─────────────────────────────────────────────────────
    op.create_table(
        "duos",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("member_a_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("member_b_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("bio", sa.Text, nullable=False, server_default=""),
        sa.Column("status", sa.String(16), nullable=False, server_default="active",
                  comment="active / inactive"),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint("member_a_id <> member_b_id", name="ck_duo_distinct_members"),
        sa.CheckConstraint("status IN ('active', 'inactive')", name="ck_duo_status"),
    )
    op.create_index("ix_duos_member_a_id", "duos", ["member_a_id"])
    op.create_index("ix_duos_member_b_id", "duos", ["member_b_id"])
    op.create_index("ix_duos_status_created", "duos", ["status", "created_at"])

    # ── 3. invites ──────────────────────────────────────────────────
    op.create_table(
        "invites",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("from_user_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("to_user_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending",
                  comment="pending / accepted / declined"),
        sa.Column("message", sa.Text, nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint("from_user_id <> to_user_id", name="ck_invite_distinct_users"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')", name="ck_invite_status"
        ),
    )
    op.create_index("ix_invites_from_user_id", "invites", ["from_user_id"])
    op.create_index("ix_invites_to_user_id", "invites", ["to_user_id"])
    op.create_index("ix_invites_status", "invites", ["status"])
    op.create_index(
        "uq_invites_pending_pair",
        "invites",
        ["from_user_id", "to_user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # ── 4. swipes ───────────────────────────────────────────────────
    op.create_table(
        "swipes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("swiper_duo_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("duos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("swiped_duo_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("duos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("swiper_user_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("direction", sa.String(16), nullable=False,
                  comment="pass / like / superLike"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True,
                  comment="Set when a re-swipe overwrites"),
        sa.UniqueConstraint("swiper_duo_id", "swiped_duo_id", name="uq_swipe_pair"),
        sa.CheckConstraint("swiper_duo_id <> swiped_duo_id", name="ck_swipe_not_self"),
        sa.CheckConstraint(
            "direction IN ('pass', 'like', 'superLike')", name="ck_swipe_direction"
        ),
    )
    op.create_index("ix_swipes_swiper_duo_id", "swipes", ["swiper_duo_id"])
    op.create_index("ix_swipes_swiped_duo_id", "swipes", ["swiped_duo_id"])

    # ── 5. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("duo_a_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("duos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("duo_b_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("duos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active",
                  comment="active / archived / blocked"),
        sa.Column("matched_at", sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("duo_a_id", "duo_b_id", name="uq_match_pair"),
        sa.CheckConstraint("duo_a_id <> duo_b_id", name="ck_match_distinct_duos"),
        sa.CheckConstraint(
            "status IN ('active', 'archived', 'blocked')", name="ck_match_status"
        ),
    )
    op.create_index("ix_matches_duo_a_id", "matches", ["duo_a_id"])
    op.create_index("ix_matches_duo_b_id", "matches", ["duo_b_id"])

    # ── 6. messages ─────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("seq", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("match_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_user_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("message_type", sa.String(32), nullable=False, server_default="text",
                  comment="text / icebreaker / dateSuggestion / image"),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at(),
        sa.CheckConstraint(
            "message_type IN ('text', 'icebreaker', 'dateSuggestion', 'image')",
            name="ck_message_type",
        ),
    )
    op.create_index("ix_messages_match_order", "messages", ["match_id", "created_at", "seq"])
    op.create_index("ix_messages_match_unread", "messages", ["match_id", "is_read"])
    op.create_index("ix_messages_sender_user_id", "messages", ["sender_user_id"])


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_table("matches")
    op.drop_table("swipes")
    op.drop_table("invites")
    op.drop_table("duos")
    op.drop_table("users")
