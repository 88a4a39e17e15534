"""
SQLAlchemy Table definitions for the DelayGuard database.

Uses SQLAlchemy Core (not ORM) so rows map directly onto Pydantic models.
"""

from sqlalchemy import (
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
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

metadata = MetaData()

# =============================================================================
# TABLE: merchants
# =============================================================================

merchants = Table(
    "merchants",
    metadata,
    Column("id", UUID, primary_key=True),
    Column("shop_domain", String(255), unique=True, nullable=False),
    Column("plan_tier", String(20), nullable=False, default="starter"),
    Column("billing_status", String(20), nullable=False, default="pending"),
    Column("installed_at", DateTime(timezone=True), nullable=False),
    Column("random_poll_offset", Integer, nullable=False, default=0),
    # Merchant settings (JSONB)
    Column("settings", JSONB, nullable=False, default={}),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# =============================================================================
# TABLE: shipments
# =============================================================================

shipments = Table(
    "shipments",
    metadata,
    Column("id", UUID, primary_key=True),
    Column(
        "merchant_id",
        UUID,
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("order_number", String(255)),
    Column("tracking_number", String(64)),
    Column("carrier", String(20), nullable=False, default="unknown"),
    Column("service_level", String(255)),
    Column("ship_date", DateTime(timezone=True)),
    # Expected delivery
    Column("expected_delivery_date", DateTime(timezone=True)),
    Column("expected_delivery_source", String(20), nullable=False, default="default"),
    Column("rescheduled_delivery_date", DateTime(timezone=True)),
    # Delay state
    Column("is_delayed", Boolean, nullable=False, default=False),
    Column("delay_reason", String(50)),
    Column("days_delayed", Integer, nullable=False, default=0),
    Column("delay_flagged_at", DateTime(timezone=True)),
    # Carrier status
    Column("current_status", Text),
    Column("last_carrier_status", Text),
    Column("last_scan_location", Text),
    Column("last_scan_time", DateTime(timezone=True)),
    Column("carrier_exception_code", String(100)),
    Column("carrier_exception_reason", Text),
    # Delivery and archive
    Column("is_delivered", Boolean, nullable=False, default=False),
    Column("delivered_at", DateTime(timezone=True)),
    Column("is_archived", Boolean, nullable=False, default=False),
    # Poll bookkeeping
    Column("last_polled_at", DateTime(timezone=True)),
    Column("next_poll_at", DateTime(timezone=True)),
    Column("poll_error_count", Integer, nullable=False, default=0),
    Column("has_carrier_scan", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_shipments_next_poll_at", "next_poll_at"),
    Index("ix_shipments_merchant_scan", "merchant_id", "has_carrier_scan", "created_at"),
)

# =============================================================================
# TABLE: tracking_events
# =============================================================================

tracking_events = Table(
    "tracking_events",
    metadata,
    Column("id", UUID, primary_key=True),
    Column(
        "shipment_id",
        UUID,
        ForeignKey("shipments.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("event_timestamp", DateTime(timezone=True), nullable=False),
    Column("event_type", String(100), nullable=False),
    Column("event_description", Text, nullable=False),
    Column("city", String(255)),
    Column("state", String(255)),
    Column("country", String(255)),
    Column("raw_data", JSONB),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint(
        "shipment_id",
        "event_timestamp",
        "event_type",
        "event_description",
        name="uq_tracking_events_dedup",
    ),
)

# =============================================================================
# TABLE: carrier_tokens
# =============================================================================

carrier_tokens = Table(
    "carrier_tokens",
    metadata,
    Column("carrier", String(20), primary_key=True),
    Column("access_token", Text, nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)
