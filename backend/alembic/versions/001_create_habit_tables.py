"""Create habits, tags, habit_tags and entries tables

Revision ID: 001
Revises: None
Create Date: 2024-06-01 00:00:00.000000+00:00

What:  Initial schema for habit tracking.
How:   String IDs with a type prefix (h_, t_, e_) generated by the application;
       enums stored as integers; every row carries the owning user's ID.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "habits",
        sa.Column("id", sa.String(50), nullable=False),
        sa.Column("user_id", sa.String(500), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("type", sa.Integer(), nullable=False),
        sa.Column("frequency_type", sa.Integer(), nullable=False),
        sa.Column("frequency_times_per_period", sa.Integer(), nullable=False),
        sa.Column("target_value", sa.Integer(), nullable=False),
        sa.Column("target_unit", sa.String(100), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("milestone_target", sa.Integer(), nullable=True),
        sa.Column("milestone_current", sa.Integer(), nullable=True),
        sa.Column(
            "created_at_utc",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_completed_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_habits_user_id", "habits", ["user_id"])

    op.create_table(
        "tags",
        sa.Column("id", sa.String(50), nullable=False),
        sa.Column("user_id", sa.String(500), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column(
            "created_at_utc",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        # Tag names are unique per user, not globally
        sa.UniqueConstraint("user_id", "name", name="uq_tags_user_id_name"),
    )

    op.create_table(
        "habit_tags",
        sa.Column("habit_id", sa.String(50), nullable=False),
        sa.Column("tag_id", sa.String(50), nullable=False),
        sa.Column(
            "created_at_utc",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("habit_id", "tag_id"),
    )

    op.create_table(
        "entries",
        sa.Column("id", sa.String(50), nullable=False),
        sa.Column("user_id", sa.String(500), nullable=False),
        sa.Column("habit_id", sa.String(50), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("source", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("external_id", sa.String(1000), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "created_at_utc",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    # Keyset pagination walks (user_id, date, id)
    op.create_index("idx_entries_user_id_date", "entries", ["user_id", "date", "id"])
    op.create_index("idx_entries_habit_id", "entries", ["habit_id"])


def downgrade() -> None:
    op.drop_index("idx_entries_habit_id", table_name="entries")
    op.drop_index("idx_entries_user_id_date", table_name="entries")
    op.drop_table("entries")
    op.drop_table("habit_tags")
    op.drop_table("tags")
    op.drop_index("idx_habits_user_id", table_name="habits")
    op.drop_table("habits")
