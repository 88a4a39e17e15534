"""
Due-shipment dispatch.

Finds shipments whose next poll time has passed and enqueues one carrier
poll task per shipment, most urgent first.
"""

import logging
import time
from datetime import datetime
from typing import Callable

from delayguard.config import POLL_SCHEDULER_BATCH_SIZE, POLL_SCHEDULER_MAX_SHIPMENTS
from delayguard.models.shipment import Shipment
from delayguard.models.task import PollSchedulerResult
from delayguard.services.poll_schedule import PollPriority, calculate_poll_priority

logger = logging.getLogger(__name__)

# enqueue(shipment_id, priority) returns False when the task already exists
EnqueueFn = Callable[[str, PollPriority], bool]


def find_due_shipments(
    uow_factory: Callable,
    now: datetime,
    batch_size: int = POLL_SCHEDULER_BATCH_SIZE,
    max_shipments: int = POLL_SCHEDULER_MAX_SHIPMENTS,
) -> list[Shipment]:
    """Read due shipments page by page, up to max_shipments."""
    due: list[Shipment] = []
    with uow_factory() as uow:
        while len(due) < max_shipments:
            limit = min(batch_size, max_shipments - len(due))
            page = uow.shipments.get_due_for_poll(now, limit=limit, offset=len(due))
            due.extend(page)
            if len(page) < limit:
                break
    return due


def dispatch_due_polls(
    uow_factory: Callable,
    enqueue: EnqueueFn,
    now: datetime,
    batch_size: int = POLL_SCHEDULER_BATCH_SIZE,
    max_shipments: int = POLL_SCHEDULER_MAX_SHIPMENTS,
) -> PollSchedulerResult:
    """
    Enqueue a poll task for every due shipment.

    Args:
        uow_factory: Unit of work factory
        enqueue: Creates one poll task; False means it was already queued
        now: Sweep time
        batch_size: Shipments read per query
        max_shipments: Cap on shipments handled per sweep

    Returns:
        PollSchedulerResult with found/enqueued/skipped counts
    """
    started = time.monotonic()

    due = find_due_shipments(uow_factory, now, batch_size, max_shipments)
    prioritized = sorted(
        ((calculate_poll_priority(shipment, now), shipment) for shipment in due),
        key=lambda item: item[0],
    )

    enqueued = 0
    skipped = 0
    for priority, shipment in prioritized:
        if enqueue(shipment.id, priority):
            enqueued += 1
        else:
            skipped += 1

    result = PollSchedulerResult(
        shipments_found=len(due),
        jobs_enqueued=enqueued,
        jobs_skipped=skipped,
        duration_ms=int((time.monotonic() - started) * 1000),
    )

    logger.info(
        "Poll scheduler found %d due shipments, enqueued %d, skipped %d",
        result.shipments_found,
        result.jobs_enqueued,
        result.jobs_skipped,
        extra={"json_fields": result.model_dump()},
    )
    return result
