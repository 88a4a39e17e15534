"""
Repository implementations for the DelayGuard database.

Repositories encapsulate SQLAlchemy Core queries and the conversion
between rows and Pydantic models.
"""

from delayguard.db.repositories.carrier_token import CarrierTokenRepository
from delayguard.db.repositories.merchant import MerchantRepository
from delayguard.db.repositories.shipment import ShipmentRepository
from delayguard.db.repositories.tracking_event import TrackingEventRepository

__all__ = [
    "CarrierTokenRepository",
    "MerchantRepository",
    "ShipmentRepository",
    "TrackingEventRepository",
]
