from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Carrier(StrEnum):
    """Supported shipping carriers"""

    UPS = "ups"
    FEDEX = "fedex"
    USPS = "usps"
    UNKNOWN = "unknown"  # Needs merchant review, never polled


class DeliverySource(StrEnum):
    """Provenance of a shipment's expected delivery date"""

    CARRIER = "carrier"  # Reported by the carrier API
    MERCHANT_OVERRIDE = "merchant_override"  # Set manually by the merchant
    DEFAULT = "default"  # Ship date plus service-level window


class DelayReason(StrEnum):
    """Why a shipment is flagged as delayed"""

    CARRIER_EXCEPTION = "carrier_exception"  # Carrier reported an exception
    PAST_EXPECTED_DELIVERY = "past_expected_delivery"  # Deadline has passed


class Shipment(BaseModel):
    """
    Tracked shipment.

    Shipments are created by the fulfillment ingestion path. The polling
    core only mutates carrier status, delay and poll bookkeeping fields.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "b3c1d6c2-4a77-4a53-8a8e-0c9b2f1a7e11",
                "merchant_id": "0f6f7a0e-6a0b-4c51-9f3e-3c2d1b8e5a90",
                "order_number": "#1042",
                "tracking_number": "1Z999AA10123456784",
                "carrier": "ups",
                "service_level": "UPS Ground",
                "ship_date": "2026-02-02T15:00:00Z",
            }
        }
    )

    # Identity
    id: str = Field(description="Internal shipment identifier (UUID)")
    merchant_id: str = Field(description="Owning merchant")
    order_number: Optional[str] = Field(default=None, description="Store order number")

    # Carrier
    tracking_number: Optional[str] = Field(
        default=None, description="Carrier tracking number"
    )
    carrier: Carrier = Field(default=Carrier.UNKNOWN, description="Shipping carrier")
    service_level: Optional[str] = Field(
        default=None, description="Carrier service level as reported by the store"
    )

    # Delivery dates
    ship_date: Optional[datetime] = Field(default=None, description="Fulfillment date")
    expected_delivery_date: Optional[datetime] = Field(
        default=None, description="Displayed expected delivery date"
    )
    expected_delivery_source: DeliverySource = Field(
        default=DeliverySource.DEFAULT, description="Where the expected date came from"
    )
    rescheduled_delivery_date: Optional[datetime] = Field(
        default=None, description="Carrier-reported rescheduled delivery"
    )

    # Delay state
    is_delayed: bool = Field(default=False, description="Shipment flagged as delayed")
    delay_reason: Optional[DelayReason] = Field(
        default=None, description="Reason for the delay flag"
    )
    days_delayed: int = Field(default=0, description="Calendar days past expected")
    delay_flagged_at: Optional[datetime] = Field(
        default=None, description="When the shipment first became delayed"
    )

    # Carrier status
    current_status: Optional[str] = Field(default=None, description="Current status")
    last_carrier_status: Optional[str] = Field(
        default=None, description="Last raw status reported by the carrier"
    )
    last_scan_location: Optional[str] = Field(
        default=None, description="Location of the latest scan"
    )
    last_scan_time: Optional[datetime] = Field(
        default=None, description="Time of the latest scan"
    )
    carrier_exception_code: Optional[str] = Field(
        default=None, description="Carrier exception code"
    )
    carrier_exception_reason: Optional[str] = Field(
        default=None, description="Carrier exception description"
    )

    # Lifecycle
    is_delivered: bool = Field(default=False, description="Delivered")
    delivered_at: Optional[datetime] = Field(default=None, description="Delivery time")
    is_archived: bool = Field(default=False, description="Archived by the merchant")

    # Poll bookkeeping
    last_polled_at: Optional[datetime] = Field(
        default=None, description="Last carrier poll"
    )
    next_poll_at: Optional[datetime] = Field(
        default=None, description="Next scheduled poll (null = not polled)"
    )
    poll_error_count: int = Field(
        default=0, description="Consecutive failed polls"
    )
    has_carrier_scan: bool = Field(
        default=False, description="First scan recorded (billable)"
    )

    # Metadata
    created_at: Optional[datetime] = Field(default=None, description="Created time")
    updated_at: Optional[datetime] = Field(default=None, description="Updated time")
