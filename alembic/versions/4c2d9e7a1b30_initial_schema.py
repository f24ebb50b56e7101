"""Initial schema

Users, config entries, role/channel catalogs, events, birthdays,
mentors, quiet hours, daily challenges and scheduler markers.

Revision ID: 4c2d9e7a1b30
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "4c2d9e7a1b30"
down_revision = None
branch_labels = None
depends_on = None

_json = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_xp_earned", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("weekly_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("today_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("today_date", sa.Date(), nullable=True),
        sa.Column("last_message_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_daily_bonus_date", sa.Date(), nullable=True),
        sa.Column("streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_active_date", sa.Date(), nullable=True),
        sa.Column("channel_day", sa.Date(), nullable=True),
        sa.Column("channels_today", _json, nullable=True),
        sa.Column("voice_time", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vip_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invites", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_anniversary_year", sa.Integer(), nullable=True),
        sa.Column("dm_notifications", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_total_xp_earned", "users", ["total_xp_earned"])
    op.create_index("ix_users_weekly_xp", "users", ["weekly_xp"])
    op.create_index("ix_users_monthly_xp", "users", ["monthly_xp"])

    op.create_table(
        "config_entries",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    for table, key in (("level_rewards", "level"), ("milestones", "level")):
        op.create_table(
            table,
            sa.Column(key, sa.Integer(), primary_key=True),
            sa.Column("role_id", sa.BigInteger(), nullable=False),
        )
    op.create_table(
        "role_multipliers",
        sa.Column("role_id", sa.BigInteger(), primary_key=True),
        sa.Column("multiplier", sa.Float(), nullable=False),
    )
    op.create_table(
        "voice_channel_multipliers",
        sa.Column("channel_id", sa.BigInteger(), primary_key=True),
        sa.Column("multiplier", sa.Float(), nullable=False),
    )
    op.create_table(
        "blacklisted_channels",
        sa.Column("channel_id", sa.BigInteger(), primary_key=True),
        sa.Column("added_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("multiplier", sa.Float(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("creator_id", sa.BigInteger(), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_events_active_start", "events", ["active", "start_time"])

    op.create_table(
        "birthdays",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
    )
    op.create_table(
        "mentors",
        sa.Column("mentor_id", sa.BigInteger(), primary_key=True),
        sa.Column("mentee_id", sa.BigInteger(), primary_key=True),
        sa.Column("bonus", sa.Float(), nullable=False, server_default="0.2"),
    )
    op.create_index("ix_mentors_mentee", "mentors", ["mentee_id"])
    op.create_table(
        "quiet_hours",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("start_hour", sa.Integer(), nullable=False),
        sa.Column("end_hour", sa.Integer(), nullable=False),
        sa.Column("multiplier", sa.Float(), nullable=False),
    )

    op.create_table(
        "challenges",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("metric", sa.String(30), nullable=False),
        sa.Column("target", sa.Integer(), nullable=False),
        sa.Column("xp_reward", sa.Integer(), nullable=False),
    )
    op.create_table(
        "user_challenge_progress",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column(
            "challenge_id", sa.String(50),
            sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("user_id", "challenge_id", "day"),
    )

    op.create_table(
        "scheduler_state",
        sa.Column("job", sa.String(50), primary_key=True),
        sa.Column("last_run", sa.Date(), nullable=False),
    )


def downgrade() -> None:
    for table in (
        "scheduler_state",
        "user_challenge_progress",
        "challenges",
        "quiet_hours",
        "mentors",
        "birthdays",
        "events",
        "blacklisted_channels",
        "voice_channel_multipliers",
        "role_multipliers",
        "milestones",
        "level_rewards",
        "config_entries",
        "users",
    ):
        op.drop_table(table)
