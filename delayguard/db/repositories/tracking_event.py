"""
Tracking event repository.

Events are append-only. A shipment never holds two events with the same
(timestamp, type, description); the table enforces it with a unique
constraint and inserts skip conflicting rows.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table, select
from sqlalchemy.dialects.postgresql import insert

from delayguard.db.repositories.base import to_uuid
from delayguard.db.tables import tracking_events
from delayguard.models.tracking import TrackingEvent

DEDUP_CONSTRAINT = "uq_tracking_events_dedup"


class TrackingEventRepository:
    """Repository for tracking event operations."""

    def __init__(self, session):
        self.session = session

    @property
    def table(self) -> Table:
        return tracking_events

    def _row_to_model(self, row: Any) -> TrackingEvent:
        return TrackingEvent(
            timestamp=row.event_timestamp,
            type=row.event_type,
            description=row.event_description,
            city=row.city,
            state=row.state,
            country=row.country,
            raw_data=row.raw_data,
        )

    def _event_to_dict(self, shipment_id: UUID, event: TrackingEvent, now: datetime) -> dict:
        return {
            "id": uuid4(),
            "shipment_id": shipment_id,
            "event_timestamp": event.timestamp,
            "event_type": event.type,
            "event_description": event.description,
            "city": event.city,
            "state": event.state,
            "country": event.country,
            "raw_data": event.raw_data,
            "created_at": now,
        }

    def get_existing_keys(
        self, shipment_id: UUID | str
    ) -> set[tuple[datetime, str, str]]:
        """Dedup keys of the events already stored for a shipment."""
        stmt = select(
            self.table.c.event_timestamp,
            self.table.c.event_type,
            self.table.c.event_description,
        ).where(self.table.c.shipment_id == to_uuid(shipment_id))
        result = self.session.execute(stmt)
        return {
            (row.event_timestamp, row.event_type, row.event_description)
            for row in result.fetchall()
        }

    def list_for_shipment(self, shipment_id: UUID | str) -> list[TrackingEvent]:
        """All events of a shipment, most recent first."""
        stmt = (
            select(self.table)
            .where(self.table.c.shipment_id == to_uuid(shipment_id))
            .order_by(self.table.c.event_timestamp.desc())
        )
        result = self.session.execute(stmt)
        return [self._row_to_model(row) for row in result.fetchall()]

    def insert_new(self, shipment_id: UUID | str, events: list[TrackingEvent]) -> int:
        """
        Insert the events that are not stored yet.

        Args:
            shipment_id: Owning shipment
            events: Events from the latest carrier result

        Returns:
            Number of rows inserted
        """
        shipment_uuid = to_uuid(shipment_id)
        seen = self.get_existing_keys(shipment_uuid)
        now = datetime.now(timezone.utc)

        rows = []
        for event in events:
            if event.dedup_key in seen:
                continue
            seen.add(event.dedup_key)
            rows.append(self._event_to_dict(shipment_uuid, event, now))

        if not rows:
            return 0

        stmt = (
            insert(self.table)
            .values(rows)
            .on_conflict_do_nothing(constraint=DEDUP_CONSTRAINT)
        )
        result = self.session.execute(stmt)
        return result.rowcount
