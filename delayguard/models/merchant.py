from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class PlanTier(StrEnum):
    """Subscription plan"""

    STARTER = "starter"
    PROFESSIONAL = "professional"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"


class BillingStatus(StrEnum):
    """Subscription billing state"""

    PENDING = "pending"  # Awaiting charge approval
    ACTIVE = "active"
    FROZEN = "frozen"  # Store paused by the platform
    CANCELLED = "cancelled"  # App uninstalled or plan cancelled


class MerchantSettings(BaseModel):
    """Merchant polling and delay settings"""

    delay_threshold_hours: int = Field(
        default=8,
        ge=0,
        le=72,
        description="Grace hours after the expected delivery day before flagging",
    )
    delivery_windows: dict[str, int] = Field(
        default_factory=dict,
        description="Business-day windows keyed by service level (e.g., ups_ground)",
    )


class Merchant(BaseModel):
    """Merchant (tenant) record as seen by the polling core"""

    id: str = Field(description="Internal merchant identifier (UUID)")
    shop_domain: str = Field(description="Store domain")
    plan_tier: PlanTier = Field(default=PlanTier.STARTER, description="Plan")
    billing_status: BillingStatus = Field(
        default=BillingStatus.PENDING, description="Billing state"
    )
    installed_at: datetime = Field(description="Install time, anchors billing cycles")
    random_poll_offset: int = Field(
        default=0,
        ge=0,
        le=239,
        description="Fixed minutes added to every poll interval",
    )
    settings: MerchantSettings = Field(
        default_factory=MerchantSettings, description="Merchant settings"
    )
    created_at: Optional[datetime] = Field(default=None, description="Created time")
    updated_at: Optional[datetime] = Field(default=None, description="Updated time")
