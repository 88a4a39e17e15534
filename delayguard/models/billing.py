from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class BillingCycle(BaseModel):
    """30-day usage window anchored to the install time"""

    start: datetime = Field(description="Inclusive cycle start")
    end: datetime = Field(description="Exclusive cycle end")


class UsageInfo(BaseModel):
    """First-scan usage against the plan ceiling"""

    used: int = Field(description="First-scanned shipments in the current cycle")
    limit: Optional[int] = Field(description="Plan ceiling (null = unlimited)")
    is_at_limit: bool = Field(description="No first scans left this cycle")
    remaining: Optional[int] = Field(description="First scans left (null = unlimited)")
    percent_used: float = Field(description="Share of the ceiling used, 0-100")
    billing_cycle: BillingCycle = Field(description="Current billing cycle")
