"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_OPEN_ITEM = sa.text("status IN ('pending', 'in_review')")


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create the live, archive, moderation and outbox tables."""
    op.create_table(
        "app_user",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("trust_score", sa.Integer(), nullable=False),
        _ts("mute_expires_at", nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _ts("created_at"),
    )

    op.create_table(
        "category_config",
        sa.Column("category", sa.String(length=32), primary_key=True),
        sa.Column("fuzz_min_meters", sa.Integer(), nullable=False),
        sa.Column("fuzz_max_meters", sa.Integer(), nullable=False),
        sa.Column("default_ttl_hours", sa.Integer(), nullable=False),
        sa.Column("max_extension_hours", sa.Integer(), nullable=False),
        sa.Column("max_extensions", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )

    op.create_table(
        "post",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("author_id", sa.String(length=36), sa.ForeignKey("app_user.id"), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("fuzz_radius_used", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("moderation_status", sa.String(length=16), nullable=False),
        sa.Column("duplicate_score", sa.Float(), nullable=False),
        sa.Column("linked_post_id", sa.String(length=36), nullable=True),
        _ts("expires_at"),
        sa.Column("extensions_used", sa.Integer(), nullable=False),
        sa.Column("reaction_confirm", sa.Integer(), nullable=False),
        sa.Column("reaction_still_active", sa.Integer(), nullable=False),
        sa.Column("reaction_no_longer_valid", sa.Integer(), nullable=False),
        sa.Column("reaction_thanks", sa.Integer(), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        _ts("terminal_at", nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_post_status_expires_at", "post", ["status", "expires_at"])
    op.create_index("ix_post_status_terminal_at", "post", ["status", "terminal_at"])
    op.create_index("ix_post_author_id", "post", ["author_id"])

    op.create_table(
        "proximity_cell",
        sa.Column(
            "post_id",
            sa.String(length=36),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("cell_row", sa.Integer(), nullable=False),
        sa.Column("cell_col", sa.Integer(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_proximity_cell_grid", "proximity_cell", ["cell_row", "cell_col"])
    op.create_index(
        "ix_proximity_cell_category_created", "proximity_cell", ["category", "created_at"]
    )

    op.create_table(
        "post_reaction",
        sa.Column(
            "post_id",
            sa.String(length=36),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(length=36), primary_key=True),
        sa.Column("reaction", sa.String(length=24), nullable=False),
        _ts("created_at"),
    )
    op.create_index(
        "ix_post_reaction_post_id_reaction", "post_reaction", ["post_id", "reaction"]
    )

    op.create_table(
        "post_report",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "post_id",
            sa.String(length=36),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reporter_id", sa.String(length=36), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        _ts("created_at"),
        sa.UniqueConstraint("post_id", "reporter_id", name="uq_post_report_reporter"),
    )

    op.create_table(
        "moderation_queue_item",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("assigned_to", sa.String(length=36), nullable=True),
        sa.Column("resolved_action", sa.String(length=16), nullable=True),
        sa.Column("resolved_note", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        _ts("resolved_at", nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_moderation_queue_item_order",
        "moderation_queue_item",
        ["status", "priority", "created_at"],
    )
    op.create_index(
        "uq_moderation_queue_item_open_post",
        "moderation_queue_item",
        ["post_id"],
        unique=True,
        sqlite_where=_OPEN_ITEM,
        postgresql_where=_OPEN_ITEM,
    )

    op.create_table(
        "moderation_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("moderator_id", sa.String(length=36), nullable=False),
        sa.Column("target_user_id", sa.String(length=36), nullable=True),
        sa.Column("target_post_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        _ts("created_at"),
    )
    op.create_index(
        "ix_moderation_log_target_user", "moderation_log", ["target_user_id", "created_at"]
    )

    op.create_table(
        "user_notification",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_user_notification_user_id", "user_notification", ["user_id"])

    op.create_table(
        "notification_job",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("job_type", sa.String(length=32), nullable=False),
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=16), nullable=False),
        sa.Column("attempts", sa.SmallInteger(), nullable=False),
        sa.Column("max_attempts", sa.SmallInteger(), nullable=False),
        _ts("run_after"),
        _ts("created_at"),
    )
    op.create_index(
        "ix_notification_job_status_run_after", "notification_job", ["status", "run_after"]
    )

    op.create_table(
        "post_archive",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("fuzz_radius_used", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("final_status", sa.String(length=32), nullable=False),
        sa.Column("moderation_status", sa.String(length=16), nullable=False),
        sa.Column("duplicate_score", sa.Float(), nullable=False),
        sa.Column("linked_post_id", sa.String(length=36), nullable=True),
        _ts("expires_at"),
        sa.Column("extensions_used", sa.Integer(), nullable=False),
        sa.Column("reaction_confirm", sa.Integer(), nullable=False),
        sa.Column("reaction_still_active", sa.Integer(), nullable=False),
        sa.Column("reaction_no_longer_valid", sa.Integer(), nullable=False),
        sa.Column("reaction_thanks", sa.Integer(), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        _ts("terminal_at", nullable=True),
        _ts("archived_at"),
    )


def downgrade() -> None:
    """Drop every table created by :func:`upgrade`."""
    for table in (
        "post_archive",
        "notification_job",
        "user_notification",
        "moderation_log",
        "moderation_queue_item",
        "post_report",
        "post_reaction",
        "proximity_cell",
        "post",
        "category_config",
        "app_user",
    ):
        op.drop_table(table)
