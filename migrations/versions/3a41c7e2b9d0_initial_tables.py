"""initial_tables

Tenants, sources, archive jobs, archived objects, and the task outbox
(events + deliveries).

Revision ID: 3a41c7e2b9d0
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3a41c7e2b9d0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # TENANTS
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("retention_days", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # SOURCES
    op.create_table(
        "sources",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("zone_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("pull_interval", sa.Integer(), nullable=False),
        sa.Column("last_pulled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_sources_tenant", "sources", ["tenant_id"])
    op.create_index("idx_sources_due", "sources", ["active", "last_pulled_at"])

    # ARCHIVE JOBS
    op.create_table(
        "archive_jobs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("source_id", sa.String(), sa.ForeignKey("sources.id"), nullable=False),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("object_key", sa.Text(), nullable=True),
        sa.Column("provider", sa.String(64), nullable=True),
        sa.Column("digest", sa.String(64), nullable=True),
        sa.Column("chain_hash", sa.String(64), nullable=True),
        sa.Column("chain_seq", sa.Integer(), nullable=True),
        sa.Column("byte_count", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("line_count", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("source_id", "chain_seq", name="uq_archive_jobs_chain_seq"),
    )
    op.create_index(
        "idx_archive_jobs_window", "archive_jobs", ["source_id", "period_start", "period_end"]
    )
    op.create_index(
        "idx_archive_jobs_expiry", "archive_jobs", ["tenant_id", "status", "period_end"]
    )

    # ARCHIVED OBJECTS
    op.create_table(
        "archived_objects",
        sa.Column(
            "job_id", sa.String(), sa.ForeignKey("archive_jobs.id"), primary_key=True
        ),
        sa.Column("object_key", sa.Text(), nullable=False),
        sa.Column("provider", sa.String(64), nullable=False),
        sa.Column("digest", sa.String(64), nullable=False),
        sa.Column("byte_count", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # EVENTS (append-only task log)
    op.create_table(
        "events",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("event_type", sa.String(128), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_events_type_created",
        "events",
        ["event_type", sa.text("created_at DESC")],
    )

    # DELIVERIES (per-consumer-group tracking)
    op.create_table(
        "deliveries",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("event_id", sa.String(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("consumer_group", sa.String(128), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_error", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("available_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("event_id", "consumer_group", name="uq_delivery_event_consumer"),
    )
    op.create_index(
        "idx_deliveries_claim",
        "deliveries",
        ["consumer_group", "status", "available_at"],
        postgresql_where=sa.text("status IN ('pending', 'claimed')"),
    )
    op.create_index("idx_deliveries_event", "deliveries", ["event_id"])
    op.create_index(
        "idx_deliveries_stale",
        "deliveries",
        ["claimed_at"],
        postgresql_where=sa.text("status = 'claimed'"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_deliveries_stale", table_name="deliveries")
    op.drop_index("idx_deliveries_event", table_name="deliveries")
    op.drop_index("idx_deliveries_claim", table_name="deliveries")
    op.drop_table("deliveries")
    op.drop_index("idx_events_type_created", table_name="events")
    op.drop_table("events")
    op.drop_table("archived_objects")
    op.drop_index("idx_archive_jobs_expiry", table_name="archive_jobs")
    op.drop_index("idx_archive_jobs_window", table_name="archive_jobs")
    op.drop_table("archive_jobs")
    op.drop_index("idx_sources_due", table_name="sources")
    op.drop_index("idx_sources_tenant", table_name="sources")
    op.drop_table("sources")
    op.drop_table("tenants")
