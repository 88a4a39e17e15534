"""
Cloud Tasks and Cloud Scheduler endpoint handlers.

Any non-2xx response makes Cloud Tasks redeliver the task with the
queue's backoff, so retryable failures are answered with HTTP 500.
"""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Request

from delayguard.carriers.token_cache import utcnow
from delayguard.config import POLL_SCHEDULER_BATCH_SIZE, POLL_SCHEDULER_MAX_SHIPMENTS
from delayguard.db.unit_of_work import UnitOfWork
from delayguard.exceptions import RetryablePollError
from delayguard.models.task import (
    CarrierPollResult,
    CarrierPollTask,
    PollSchedulerResult,
    PollSchedulerTask,
)
from delayguard.services.carrier_poll import CarrierPollOrchestrator
from delayguard.services.poll_dispatch import EnqueueFn, dispatch_due_polls
from delayguard.services.poll_schedule import PollPriority
from delayguard.worker import cloud_tasks
from delayguard.worker.cloud_tasks import enqueue_carrier_poll
from delayguard.worker.pool import run_polls

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> CarrierPollOrchestrator:
    return request.app.state.orchestrator


def get_uow_factory() -> Callable:
    return UnitOfWork


def get_enqueue() -> EnqueueFn:
    return enqueue_carrier_poll


def get_inline_polling() -> bool:
    """Run due polls in-process when no Cloud Tasks project is configured."""
    return not cloud_tasks.PROJECT_ID


def _collect_into(queued: list[str]) -> EnqueueFn:
    def enqueue(shipment_id: str, priority: PollPriority) -> bool:
        queued.append(shipment_id)
        return True

    return enqueue


@router.post("/carrier-poll", response_model=CarrierPollResult)
def carrier_poll_task(
    task: CarrierPollTask,
    orchestrator: CarrierPollOrchestrator = Depends(get_orchestrator),
):
    """
    Poll the carrier for one shipment.

    Cloud Tasks triggers this endpoint for each queued poll.

    Flow:
        1. Skip delivered, archived, untracked or unknown-carrier shipments
        2. Fetch tracking from the carrier adapter
        3. Store new events, evaluate delay, schedule the next poll
    """
    try:
        print(f"🚚 Polling carrier for shipment {task.shipment_id}")
        result = orchestrator.poll(task.shipment_id)

        if result.skipped:
            print(f"⏭️  Poll skipped: {result.skip_reason}")
        elif result.success:
            print(
                f"✅ Poll completed: {result.new_events_count} new events, "
                f"delayed={result.is_delayed}, delivered={result.is_delivered}"
            )
        else:
            print(f"⚠️  Poll failed (not retried): {result.error}")

        return result

    except RetryablePollError as e:
        print(f"🔁 Poll failed, will retry: {e}")
        raise HTTPException(status_code=500, detail=f"Carrier poll failed: {e}")

    except Exception as e:
        logger.exception(
            "Carrier poll crashed",
            extra={"json_fields": {"shipment_id": task.shipment_id}},
        )
        print(f"❌ Carrier poll failed: {e}")
        raise HTTPException(status_code=500, detail=f"Carrier poll failed: {str(e)}")


@router.post("/poll-scheduler", response_model=PollSchedulerResult)
def poll_scheduler_task(
    task: PollSchedulerTask,
    uow_factory: Callable = Depends(get_uow_factory),
    enqueue: EnqueueFn = Depends(get_enqueue),
    inline: bool = Depends(get_inline_polling),
    orchestrator: CarrierPollOrchestrator = Depends(get_orchestrator),
):
    """
    Enqueue carrier polls for every shipment that is due.

    Cloud Scheduler triggers this endpoint every 15 minutes. Without a
    Cloud Tasks queue (local development) the due polls run inline on the
    bounded poll pool instead of being enqueued.
    """
    try:
        print("⏰ Running poll scheduler")
        queued: list[str] = []
        if inline:
            enqueue = _collect_into(queued)

        result = dispatch_due_polls(
            uow_factory,
            enqueue,
            utcnow(),
            batch_size=task.batch_size or POLL_SCHEDULER_BATCH_SIZE,
            max_shipments=task.max_shipments or POLL_SCHEDULER_MAX_SHIPMENTS,
        )

        if inline:
            polls = run_polls(orchestrator, queued)
            result.polls_run = len(polls)
            result.polls_failed = sum(1 for poll in polls if not poll.success)
            print(f"🏃 Ran {result.polls_run} polls inline, {result.polls_failed} failed")

        print(
            f"✅ Poll scheduler completed: {result.jobs_enqueued} enqueued, "
            f"{result.jobs_skipped} already queued"
        )
        return result

    except Exception as e:
        logger.exception("Poll scheduler failed")
        print(f"❌ Poll scheduler failed: {e}")
        raise HTTPException(status_code=500, detail=f"Poll scheduler failed: {str(e)}")
