"""
Bounded thread pool for polling many shipments inline.

Used when polls run in-process (local development, backfills) instead of
through Cloud Tasks. Each poll opens its own units of work, so the pool
size also bounds database connections in use.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from delayguard.config import CARRIER_POLL_CONCURRENCY
from delayguard.exceptions import RetryablePollError
from delayguard.models.task import CarrierPollResult
from delayguard.services.carrier_poll import CarrierPollOrchestrator

logger = logging.getLogger(__name__)


def _poll_one(orchestrator: CarrierPollOrchestrator, shipment_id: str) -> CarrierPollResult:
    try:
        return orchestrator.poll(shipment_id)
    except RetryablePollError as e:
        return CarrierPollResult(shipment_id=shipment_id, success=False, error=str(e))


def run_polls(
    orchestrator: CarrierPollOrchestrator,
    shipment_ids: list[str],
    max_workers: int = CARRIER_POLL_CONCURRENCY,
) -> list[CarrierPollResult]:
    """
    Poll shipments concurrently with at most max_workers in flight.

    Retryable carrier failures are returned as failed results; any other
    exception propagates.

    Returns:
        Results in the order of shipment_ids
    """
    if not shipment_ids:
        return []

    results: dict[str, CarrierPollResult] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(_poll_one, orchestrator, shipment_id): shipment_id
            for shipment_id in shipment_ids
        }
        for future in as_completed(futures):
            result = future.result()
            results[futures[future]] = result

    failed = sum(1 for result in results.values() if not result.success)
    logger.info(
        "Polled %d shipments, %d failed",
        len(results),
        failed,
        extra={"json_fields": {"polled": len(results), "failed": failed}},
    )
    return [results[shipment_id] for shipment_id in shipment_ids]
