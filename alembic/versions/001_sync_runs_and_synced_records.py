"""Add sync_runs and synced_records tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JSON = sa.JSON().with_variant(JSONB(), "postgresql")
_ACTIVE = sa.text("status IN ('pending', 'running')")


def upgrade() -> None:
    op.create_table(
        "sync_runs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("provider", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("trigger", sa.String(20), nullable=False, server_default="manual"),
        sa.Column("created_count", sa.Integer, nullable=True),
        sa.Column("updated_count", sa.Integer, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="ck_sync_run_status",
        ),
    )
    op.create_index("ix_sync_runs_category", "sync_runs", ["category"])
    op.create_index("ix_sync_runs_provider", "sync_runs", ["provider"])
    op.create_index("ix_sync_runs_created_at", "sync_runs", ["created_at"])
    op.create_index(
        "idx_sync_runs_category_status_completed",
        "sync_runs",
        ["category", "status", "completed_at"],
    )
    # At most one pending/running run per category
    op.create_index(
        "uq_sync_runs_active_category",
        "sync_runs",
        ["category"],
        unique=True,
        postgresql_where=_ACTIVE,
        sqlite_where=_ACTIVE,
    )

    op.create_table(
        "synced_records",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("record_type", sa.String(30), nullable=False),
        sa.Column("record_key", sa.String(500), nullable=False),
        sa.Column("primary_source", sa.String(50), nullable=False),
        sa.Column("merged", _JSON, nullable=False),
        sa.Column("provenance", _JSON, nullable=False),
        sa.Column("supplementary", _JSON, nullable=False),
        sa.Column("contributions", _JSON, nullable=False),
        sa.Column("checksum", sa.String(16), nullable=False),
        sa.Column("last_sync_run_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("last_fetched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("uq_synced_records_type_key", "synced_records", ["record_type", "record_key"], unique=True)
    op.create_index("idx_synced_records_category", "synced_records", ["category"])


def downgrade() -> None:
    op.drop_table("synced_records")
    op.drop_index("uq_sync_runs_active_category", table_name="sync_runs")
    op.drop_table("sync_runs")
