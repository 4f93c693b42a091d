"""SQLAlchemy table definitions - dialect-agnostic (works with SQLite and PostgreSQL)."""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    text,
    true,
)
from sqlalchemy.types import JSON

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# TENANTS TABLE
# ============================================================================
tenants_table = Table(
    "tenants",
    metadata,
    Column("id", String, primary_key=True),  # UUID as string
    Column("name", String(255), nullable=False),
    Column("retention_days", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


# ============================================================================
# SOURCES TABLE (monitored zones)
# ============================================================================
sources_table = Table(
    "sources",
    metadata,
    Column("id", String, primary_key=True),
    Column("tenant_id", String, ForeignKey("tenants.id"), nullable=False),
    Column("zone_id", String(64), nullable=False),  # Upstream identifier
    Column("name", String(255), nullable=False, server_default=text("''")),
    Column("pull_interval", Integer, nullable=False),  # Seconds
    Column("last_pulled_at", DateTime(timezone=True), nullable=True),
    Column("active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("idx_sources_tenant", sources_table.c.tenant_id)
Index("idx_sources_due", sources_table.c.active, sources_table.c.last_pulled_at)


# ============================================================================
# ARCHIVE JOBS TABLE (never deleted; expiry is a status change)
# ============================================================================
archive_jobs_table = Table(
    "archive_jobs",
    metadata,
    Column("id", String, primary_key=True),
    Column("source_id", String, ForeignKey("sources.id"), nullable=False),
    Column("tenant_id", String, ForeignKey("tenants.id"), nullable=False),
    Column("period_start", DateTime(timezone=True), nullable=False),
    Column("period_end", DateTime(timezone=True), nullable=False),
    Column("status", String(16), nullable=False),  # JobStatus as string
    Column("object_key", Text, nullable=True),
    Column("provider", String(64), nullable=True),
    Column("digest", String(64), nullable=True),  # hex sha256 of compressed bytes
    Column("chain_hash", String(64), nullable=True),
    Column("chain_seq", Integer, nullable=True),  # 1-based link number, completion order
    Column("byte_count", BigInteger, nullable=False, server_default=text("0")),
    Column("line_count", BigInteger, nullable=False, server_default=text("0")),
    Column("error", Text, nullable=True),
    Column("verified_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    # One job per link; also serves predecessor lookup and audit
    UniqueConstraint("source_id", "chain_seq", name="uq_archive_jobs_chain_seq"),
)

# Duplicate-window pre-check
Index(
    "idx_archive_jobs_window",
    archive_jobs_table.c.source_id,
    archive_jobs_table.c.period_start,
    archive_jobs_table.c.period_end,
)
# Expiry sweep
Index(
    "idx_archive_jobs_expiry",
    archive_jobs_table.c.tenant_id,
    archive_jobs_table.c.status,
    archive_jobs_table.c.period_end,
)


# ============================================================================
# ARCHIVED OBJECTS TABLE (one per done job, immutable)
# ============================================================================
archived_objects_table = Table(
    "archived_objects",
    metadata,
    Column("job_id", String, ForeignKey("archive_jobs.id"), primary_key=True),
    Column("object_key", Text, nullable=False),
    Column("provider", String(64), nullable=False),
    Column("digest", String(64), nullable=False),
    Column("byte_count", BigInteger, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


# ============================================================================
# EVENTS TABLE (append-only task log)
# ============================================================================
events_table = Table(
    "events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String(128), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index(
    "idx_events_type_created",
    events_table.c.event_type,
    events_table.c.created_at.desc(),
)


# ============================================================================
# DELIVERIES TABLE (per-consumer-group tracking)
# ============================================================================
deliveries_table = Table(
    "deliveries",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_id", String, ForeignKey("events.id"), nullable=False),
    Column("consumer_group", String(128), nullable=False),
    Column("status", String(32), nullable=False, server_default=text("'pending'")),
    Column("claimed_at", DateTime(timezone=True), nullable=True),
    Column("delivered_at", DateTime(timezone=True), nullable=True),
    Column("delivery_error", Text, nullable=True),
    Column("retry_count", Integer, nullable=False, server_default=text("0")),
    # Earliest time a pending delivery may be claimed (retry backoff)
    Column("available_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("event_id", "consumer_group", name="uq_delivery_event_consumer"),
)

# Primary worker polling index
Index(
    "idx_deliveries_claim",
    deliveries_table.c.consumer_group,
    deliveries_table.c.status,
    deliveries_table.c.available_at,
    postgresql_where=text("status IN ('pending', 'claimed')"),
)

# For joining back to events
Index("idx_deliveries_event", deliveries_table.c.event_id)

# Stale claim detection
Index(
    "idx_deliveries_stale",
    deliveries_table.c.claimed_at,
    postgresql_where=text("status = 'claimed'"),
)
