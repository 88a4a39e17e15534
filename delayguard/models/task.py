"""
Cloud Task payload and result models.

These models define the structure of task payloads sent by Cloud Tasks
to the worker service endpoints, and the results the endpoints return.
"""

from typing import Optional

from pydantic import BaseModel, Field


class CarrierPollTask(BaseModel):
    """Carrier poll task payload"""

    shipment_id: str = Field(description="Shipment to poll")
    priority: int = Field(default=3, description="Queue priority (1 = most urgent)")


class PollSchedulerTask(BaseModel):
    """Poll scheduler sweep payload (sent by Cloud Scheduler)"""

    batch_size: Optional[int] = Field(
        default=None, description="Override for the query batch size"
    )
    max_shipments: Optional[int] = Field(
        default=None, description="Override for the per-run shipment cap"
    )


class CarrierPollResult(BaseModel):
    """Outcome of a single carrier poll"""

    shipment_id: str = Field(description="Polled shipment")
    success: bool = Field(description="Poll completed without a carrier error")
    is_delayed: bool = Field(default=False, description="Shipment is now delayed")
    is_delivered: bool = Field(default=False, description="Shipment is now delivered")
    new_events_count: int = Field(default=0, description="Events inserted by this poll")
    duration_ms: int = Field(default=0, description="Wall time of the poll")
    error: Optional[str] = Field(default=None, description="CODE: message on failure")
    skipped: bool = Field(default=False, description="Poll skipped before any call")
    skip_reason: Optional[str] = Field(default=None, description="Why it was skipped")


class PollSchedulerResult(BaseModel):
    """Outcome of a poll scheduler sweep"""

    shipments_found: int = Field(default=0, description="Due shipments found")
    jobs_enqueued: int = Field(default=0, description="Poll tasks created")
    jobs_skipped: int = Field(default=0, description="Poll tasks already queued")
    polls_run: int = Field(default=0, description="Polls run inline (local mode)")
    polls_failed: int = Field(default=0, description="Inline polls that failed")
    duration_ms: int = Field(default=0, description="Wall time of the sweep")
