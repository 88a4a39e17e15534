"""
Shipment repository for database operations.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy import Table, func, select

from delayguard.db.repositories.base import BaseRepository, to_uuid
from delayguard.db.tables import merchants, shipments
from delayguard.models.merchant import BillingStatus
from delayguard.models.shipment import Carrier, DelayReason, DeliverySource, Shipment


class ShipmentRepository(BaseRepository[Shipment]):
    """Repository for shipment operations."""

    @property
    def table(self) -> Table:
        return shipments

    def _row_to_model(self, row: Any) -> Shipment:
        """Convert database row to Shipment model."""
        return Shipment(
            id=str(row.id),
            merchant_id=str(row.merchant_id),
            order_number=row.order_number,
            tracking_number=row.tracking_number,
            carrier=Carrier(row.carrier),
            service_level=row.service_level,
            ship_date=row.ship_date,
            expected_delivery_date=row.expected_delivery_date,
            expected_delivery_source=DeliverySource(row.expected_delivery_source),
            rescheduled_delivery_date=row.rescheduled_delivery_date,
            is_delayed=row.is_delayed,
            delay_reason=DelayReason(row.delay_reason) if row.delay_reason else None,
            days_delayed=row.days_delayed,
            delay_flagged_at=row.delay_flagged_at,
            current_status=row.current_status,
            last_carrier_status=row.last_carrier_status,
            last_scan_location=row.last_scan_location,
            last_scan_time=row.last_scan_time,
            carrier_exception_code=row.carrier_exception_code,
            carrier_exception_reason=row.carrier_exception_reason,
            is_delivered=row.is_delivered,
            delivered_at=row.delivered_at,
            is_archived=row.is_archived,
            last_polled_at=row.last_polled_at,
            next_poll_at=row.next_poll_at,
            poll_error_count=row.poll_error_count,
            has_carrier_scan=row.has_carrier_scan,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def update_fields(self, id: UUID | str, fields: dict[str, Any]) -> bool:
        """
        Update columns of one shipment and bump updated_at.

        Enum values are stored by their string value.
        """
        values = {
            key: value.value if isinstance(value, StrEnum) else value
            for key, value in fields.items()
        }
        values["updated_at"] = datetime.now(timezone.utc)
        return self.update_by_id(id, **values)

    def get_due_for_poll(
        self, now: datetime, limit: int = 500, offset: int = 0
    ) -> list[Shipment]:
        """
        Shipments whose next poll time has passed.

        Excludes delivered, archived and unknown-carrier shipments, shipments
        without a tracking number, and shipments of cancelled merchants.
        Ordered by expected delivery (soonest first, unknown last), then id.
        """
        stmt = (
            select(self.table)
            .join(merchants, merchants.c.id == self.table.c.merchant_id)
            .where(
                self.table.c.next_poll_at.isnot(None),
                self.table.c.next_poll_at <= now,
                self.table.c.is_delivered.is_(False),
                self.table.c.is_archived.is_(False),
                self.table.c.carrier != Carrier.UNKNOWN.value,
                self.table.c.tracking_number.isnot(None),
                self.table.c.tracking_number != "",
                merchants.c.billing_status != BillingStatus.CANCELLED.value,
            )
            .order_by(
                self.table.c.expected_delivery_date.asc().nulls_last(),
                self.table.c.id,
            )
            .limit(limit)
            .offset(offset)
        )
        result = self.session.execute(stmt)
        return [self._row_to_model(row) for row in result.fetchall()]

    def count_first_scanned(
        self, merchant_id: UUID | str, start: datetime, end: datetime
    ) -> int:
        """Shipments of a merchant created in [start, end) that have a carrier scan."""
        stmt = select(func.count()).where(
            self.table.c.merchant_id == to_uuid(merchant_id),
            self.table.c.has_carrier_scan.is_(True),
            self.table.c.created_at >= start,
            self.table.c.created_at < end,
        )
        return self.session.execute(stmt).scalar_one()
