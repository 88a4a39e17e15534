"""
DelayGuard data models.

This package contains all Pydantic models for the shipment polling core.
"""

# Billing models
from delayguard.models.billing import BillingCycle, UsageInfo

# Merchant models
from delayguard.models.merchant import (
    BillingStatus,
    Merchant,
    MerchantSettings,
    PlanTier,
)

# Shipment models
from delayguard.models.shipment import (
    Carrier,
    DelayReason,
    DeliverySource,
    Shipment,
)

# Task models
from delayguard.models.task import (
    CarrierPollResult,
    CarrierPollTask,
    PollSchedulerResult,
    PollSchedulerTask,
)

# Tracking models
from delayguard.models.tracking import (
    CachedToken,
    CarrierError,
    CarrierErrorCode,
    TokenGrant,
    TrackingEvent,
    TrackingResult,
)

__all__ = [
    # Billing
    "BillingCycle",
    "UsageInfo",
    # Merchant
    "BillingStatus",
    "Merchant",
    "MerchantSettings",
    "PlanTier",
    # Shipment
    "Carrier",
    "DelayReason",
    "DeliverySource",
    "Shipment",
    # Task
    "CarrierPollResult",
    "CarrierPollTask",
    "PollSchedulerResult",
    "PollSchedulerTask",
    # Tracking
    "CachedToken",
    "CarrierError",
    "CarrierErrorCode",
    "TokenGrant",
    "TrackingEvent",
    "TrackingResult",
]
