"""
Unit tests for TrackingEventRepository deduplication.

These tests verify the insert logic without requiring a database connection.
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from delayguard.db.repositories.tracking_event import TrackingEventRepository
from delayguard.models.tracking import TrackingEvent

UTC = timezone.utc


def _event(hour: int, description: str = "Arrived at Facility") -> TrackingEvent:
    return TrackingEvent(
        timestamp=datetime(2026, 2, 3, hour, 0, tzinfo=UTC),
        type="I",
        description=description,
        city="Louisville",
    )


def _key_row(event: TrackingEvent) -> SimpleNamespace:
    return SimpleNamespace(
        event_timestamp=event.timestamp,
        event_type=event.type,
        event_description=event.description,
    )


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock database session."""
    return MagicMock()


@pytest.fixture
def event_repo(mock_session: MagicMock) -> TrackingEventRepository:
    return TrackingEventRepository(mock_session)


@pytest.fixture
def shipment_id() -> str:
    return str(uuid4())


def _existing(mock_session: MagicMock, events: list[TrackingEvent], inserted: int = 0):
    select_result = MagicMock()
    select_result.fetchall.return_value = [_key_row(event) for event in events]
    insert_result = MagicMock()
    insert_result.rowcount = inserted
    mock_session.execute.side_effect = [select_result, insert_result]


class TestInsertNew:
    def test_inserts_only_unknown_events(self, event_repo, mock_session, shipment_id):
        old, new = _event(8), _event(10, "Departed from Facility")
        _existing(mock_session, [old], inserted=1)

        with patch.object(
            event_repo, "_event_to_dict", wraps=event_repo._event_to_dict
        ) as to_dict:
            inserted = event_repo.insert_new(shipment_id, [new, old])

        assert inserted == 1
        assert to_dict.call_count == 1
        assert to_dict.call_args.args[1] == new

    def test_all_known_skips_insert(self, event_repo, mock_session, shipment_id):
        events = [_event(8), _event(10)]
        _existing(mock_session, events)

        assert event_repo.insert_new(shipment_id, events) == 0
        assert mock_session.execute.call_count == 1

    def test_duplicates_within_batch_are_collapsed(
        self, event_repo, mock_session, shipment_id
    ):
        _existing(mock_session, [], inserted=1)

        with patch.object(
            event_repo, "_event_to_dict", wraps=event_repo._event_to_dict
        ) as to_dict:
            event_repo.insert_new(shipment_id, [_event(8), _event(8)])

        assert to_dict.call_count == 1

    def test_conflicting_rows_are_ignored(self, event_repo, mock_session, shipment_id):
        _existing(mock_session, [], inserted=1)

        event_repo.insert_new(shipment_id, [_event(8)])

        insert_stmt = mock_session.execute.call_args_list[1].args[0]
        sql = str(insert_stmt.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT ON CONSTRAINT uq_tracking_events_dedup DO NOTHING" in sql

    def test_empty_event_list(self, event_repo, mock_session, shipment_id):
        _existing(mock_session, [])

        assert event_repo.insert_new(shipment_id, []) == 0


class TestListForShipment:
    def test_rows_are_converted(self, event_repo, mock_session, shipment_id):
        row = SimpleNamespace(
            event_timestamp=datetime(2026, 2, 3, 8, tzinfo=UTC),
            event_type="I",
            event_description="Arrived at Facility",
            city="Louisville",
            state="KY",
            country="US",
            raw_data={"status": {"type": "I"}},
        )
        mock_session.execute.return_value.fetchall.return_value = [row]

        events = event_repo.list_for_shipment(shipment_id)

        assert events[0].type == "I"
        assert events[0].state == "KY"
        assert events[0].raw_data == {"status": {"type": "I"}}
