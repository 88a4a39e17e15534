"""
Normalized carrier tracking models.

Every carrier adapter maps its own wire format into these shapes, so the
rest of the pipeline never sees carrier-specific payloads.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

from delayguard.models.shipment import Carrier


class CarrierErrorCode(StrEnum):
    """Failure taxonomy shared by all carrier adapters"""

    TRACKING_NOT_FOUND = "TRACKING_NOT_FOUND"  # Number unknown to the carrier
    INVALID_TRACKING_NUMBER = "INVALID_TRACKING_NUMBER"  # Malformed or unroutable
    RATE_LIMITED = "RATE_LIMITED"  # HTTP 429
    AUTH_FAILED = "AUTH_FAILED"  # Token exchange failed or token rejected
    API_ERROR = "API_ERROR"  # Carrier returned an error response
    NETWORK_ERROR = "NETWORK_ERROR"  # Timeout or connection failure
    PARSE_ERROR = "PARSE_ERROR"  # Body is not the documented shape


class CarrierError(BaseModel):
    """Structured adapter failure"""

    code: CarrierErrorCode = Field(description="Failure category")
    message: str = Field(description="Human readable message")
    retryable: bool = Field(description="Whether the poll job should be retried")
    raw_error: Optional[Any] = Field(
        default=None, description="Carrier payload or exception detail", exclude=True
    )

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class TrackingEvent(BaseModel):
    """One carrier scan, normalized"""

    timestamp: datetime = Field(description="Scan time (UTC)")
    type: str = Field(description="Carrier event/status code")
    description: str = Field(description="Carrier event description")
    city: Optional[str] = Field(default=None, description="Scan city")
    state: Optional[str] = Field(default=None, description="Scan state/province")
    country: Optional[str] = Field(default=None, description="Scan country")
    raw_data: Optional[dict[str, Any]] = Field(
        default=None, description="Raw carrier event payload"
    )

    @property
    def dedup_key(self) -> tuple[datetime, str, str]:
        """Uniqueness key of an event within one shipment."""
        return (self.timestamp, self.type, self.description)


class TrackingResult(BaseModel):
    """Normalized result of a successful carrier lookup"""

    tracking_number: str = Field(description="Tracking number that was looked up")
    carrier: Carrier = Field(description="Carrier that answered")
    current_status: str = Field(description="Human readable current status")

    # Exceptions
    is_exception: bool = Field(
        default=False, description="Carrier reports a delay or exception"
    )
    exception_code: Optional[str] = Field(
        default=None, description="Carrier exception code"
    )
    exception_reason: Optional[str] = Field(
        default=None, description="Carrier exception description"
    )

    # Dates
    expected_delivery_date: Optional[datetime] = Field(
        default=None, description="Carrier-provided expected delivery"
    )
    rescheduled_delivery_date: Optional[datetime] = Field(
        default=None, description="Carrier-provided rescheduled delivery"
    )
    is_delivered: bool = Field(default=False, description="Package delivered")
    delivered_at: Optional[datetime] = Field(
        default=None, description="Delivery timestamp"
    )

    # Last scan
    last_scan_location: Optional[str] = Field(
        default=None, description="Formatted location of the latest scan"
    )
    last_scan_time: Optional[datetime] = Field(
        default=None, description="Timestamp of the latest scan"
    )
    events: list[TrackingEvent] = Field(
        default_factory=list, description="Events, most recent first"
    )


class TokenGrant(BaseModel):
    """OAuth client-credentials token response"""

    access_token: str = Field(description="Bearer token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int = Field(description="Lifetime in seconds")


class CachedToken(BaseModel):
    """Bearer token with absolute expiry"""

    access_token: str = Field(description="Bearer token")
    expires_at: datetime = Field(description="Absolute expiry (UTC)")
