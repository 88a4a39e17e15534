"""
Unit of Work pattern for transaction coordination.

Groups the repositories used by one operation into a single transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from delayguard.db.connection import DatabaseConnection
from delayguard.db.repositories.carrier_token import CarrierTokenRepository
from delayguard.db.repositories.merchant import MerchantRepository
from delayguard.db.repositories.shipment import ShipmentRepository
from delayguard.db.repositories.tracking_event import TrackingEventRepository

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class UnitOfWork:
    """
    Unit of Work for managing database transactions.

    Nothing is committed implicitly; leaving the block without commit()
    discards the changes, and an exception rolls them back.

    Usage:
        with UnitOfWork() as uow:
            uow.tracking_events.insert_new(shipment_id, events)
            uow.shipments.update_fields(shipment_id, {"poll_error_count": 0})
            uow.commit()
    """

    def __init__(self):
        self._session: Session | None = None
        self._carrier_tokens: CarrierTokenRepository | None = None
        self._merchants: MerchantRepository | None = None
        self._shipments: ShipmentRepository | None = None
        self._tracking_events: TrackingEventRepository | None = None

    def __enter__(self) -> UnitOfWork:
        self._session = DatabaseConnection.get_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.rollback()
        self._close()
        return False

    @property
    def session(self) -> Session:
        """Get current session (raises if not in context)."""
        if self._session is None:
            raise RuntimeError("UnitOfWork must be used within a context manager")
        return self._session

    @property
    def carrier_tokens(self) -> CarrierTokenRepository:
        if self._carrier_tokens is None:
            self._carrier_tokens = CarrierTokenRepository(self.session)
        return self._carrier_tokens

    @property
    def merchants(self) -> MerchantRepository:
        if self._merchants is None:
            self._merchants = MerchantRepository(self.session)
        return self._merchants

    @property
    def shipments(self) -> ShipmentRepository:
        if self._shipments is None:
            self._shipments = ShipmentRepository(self.session)
        return self._shipments

    @property
    def tracking_events(self) -> TrackingEventRepository:
        if self._tracking_events is None:
            self._tracking_events = TrackingEventRepository(self.session)
        return self._tracking_events

    def commit(self):
        """Commit the current transaction."""
        self.session.commit()

    def rollback(self):
        """Rollback the current transaction."""
        self.session.rollback()

    def _close(self):
        if self._session is not None:
            self._session.close()
            self._session = None
            self._carrier_tokens = None
            self._merchants = None
            self._shipments = None
            self._tracking_events = None
