"""
Carrier poll orchestrator.

Runs one poll of one shipment end to end:
    1. Load the shipment and its merchant and decide whether to poll
    2. Call the carrier adapter (no database session is held meanwhile)
    3. Ingest new tracking events
    4. Apply the usage gate to the shipment's first scan
    5. Evaluate delay and schedule the next poll
    6. Persist everything in one update
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable

from delayguard.carriers.registry import CarrierRegistry
from delayguard.carriers.token_cache import utcnow
from delayguard.db.unit_of_work import UnitOfWork
from delayguard.exceptions import RetryablePollError
from delayguard.models.merchant import BillingStatus, Merchant
from delayguard.models.shipment import Carrier, Shipment
from delayguard.models.task import CarrierPollResult
from delayguard.models.tracking import CarrierError, CarrierErrorCode, TrackingResult
from delayguard.services.delay_detection import evaluate_delay, get_delay_update_fields
from delayguard.services.poll_schedule import (
    MAX_POLL_ERROR_COUNT,
    RATE_LIMIT_BACKOFF,
    calculate_next_poll_at,
)
from delayguard.services.usage import can_record_first_scan

logger = logging.getLogger(__name__)

SKIP_NOT_FOUND = "Shipment not found"
SKIP_DELIVERED = "Already delivered"
SKIP_ARCHIVED = "Archived"
SKIP_NO_TRACKING_NUMBER = "No tracking number"
SKIP_UNKNOWN_CARRIER = "Unknown carrier - needs merchant review"
SKIP_MERCHANT_CANCELLED = "Merchant subscription cancelled"


def get_skip_reason(shipment: Shipment | None, merchant: Merchant | None) -> str | None:
    """Why a shipment must not be polled, or None if it should be."""
    if shipment is None or merchant is None:
        return SKIP_NOT_FOUND
    if shipment.is_delivered:
        return SKIP_DELIVERED
    if shipment.is_archived:
        return SKIP_ARCHIVED
    if not shipment.tracking_number:
        return SKIP_NO_TRACKING_NUMBER
    if shipment.carrier == Carrier.UNKNOWN:
        return SKIP_UNKNOWN_CARRIER
    if merchant.billing_status == BillingStatus.CANCELLED:
        return SKIP_MERCHANT_CANCELLED
    return None


def build_success_update(
    shipment: Shipment,
    merchant: Merchant,
    result: TrackingResult,
    record_first_scan: bool,
    now: datetime,
) -> dict[str, Any]:
    """Shipment columns to write after a successful carrier lookup."""
    evaluation = evaluate_delay(shipment, result, merchant.settings, now)
    rescheduled = result.rescheduled_delivery_date or shipment.rescheduled_delivery_date

    schedule_view = shipment.model_copy(
        update={
            "expected_delivery_date": evaluation.expected_delivery_date
            or shipment.expected_delivery_date,
            "rescheduled_delivery_date": rescheduled,
            "is_delivered": result.is_delivered,
        }
    )

    fields: dict[str, Any] = {
        "current_status": result.current_status,
        "last_carrier_status": result.current_status,
        "last_scan_location": result.last_scan_location,
        "last_scan_time": result.last_scan_time,
        "carrier_exception_code": result.exception_code,
        "carrier_exception_reason": result.exception_reason,
        "rescheduled_delivery_date": rescheduled,
        "poll_error_count": 0,
        "last_polled_at": now,
        "next_poll_at": calculate_next_poll_at(schedule_view, merchant, now),
    }

    if record_first_scan:
        fields["has_carrier_scan"] = True

    if result.is_delivered:
        fields.update(
            {
                "is_delivered": True,
                "delivered_at": result.delivered_at or now,
                "is_delayed": False,
                "delay_reason": None,
                "days_delayed": 0,
                "delay_flagged_at": None,
            }
        )
    else:
        fields.update(get_delay_update_fields(evaluation, shipment.is_delayed, now))

    return fields


class CarrierPollOrchestrator:
    """
    Polls one shipment per call.

    Usage:
        orchestrator = CarrierPollOrchestrator(registry)
        result = orchestrator.poll(shipment_id)
    """

    def __init__(
        self,
        registry: CarrierRegistry,
        uow_factory: Callable = UnitOfWork,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.uow_factory = uow_factory
        self.clock = clock

    def poll(self, shipment_id: str) -> CarrierPollResult:
        """
        Poll the carrier for one shipment and persist the outcome.

        Returns:
            CarrierPollResult (skipped, failed non-retryably, or successful)

        Raises:
            RetryablePollError: If the carrier failure should be retried
        """
        started = time.monotonic()
        now = self.clock()

        with self.uow_factory() as uow:
            shipment = uow.shipments.get_by_id(shipment_id)
            merchant = (
                uow.merchants.get_by_id(shipment.merchant_id) if shipment else None
            )

        skip_reason = get_skip_reason(shipment, merchant)
        if skip_reason is not None:
            logger.info(
                "Skipping poll of shipment %s: %s",
                shipment_id,
                skip_reason,
                extra={
                    "json_fields": {"shipment_id": shipment_id, "skip_reason": skip_reason}
                },
            )
            return CarrierPollResult(
                shipment_id=shipment_id,
                success=True,
                duration_ms=self._elapsed_ms(started),
                skipped=True,
                skip_reason=skip_reason,
            )

        result = self.registry.track_shipment(shipment.carrier, shipment.tracking_number)

        if isinstance(result, CarrierError):
            return self._handle_failure(shipment, merchant, result, now, started)

        return self._handle_success(shipment, merchant, result, now, started)

    def _handle_failure(
        self,
        shipment: Shipment,
        merchant: Merchant,
        error: CarrierError,
        now: datetime,
        started: float,
    ) -> CarrierPollResult:
        error_count = shipment.poll_error_count + 1

        next_poll_at = calculate_next_poll_at(shipment, merchant, now)
        if next_poll_at is not None and error.code == CarrierErrorCode.RATE_LIMITED:
            next_poll_at += RATE_LIMIT_BACKOFF

        with self.uow_factory() as uow:
            uow.shipments.update_fields(
                shipment.id,
                {
                    "poll_error_count": error_count,
                    "last_polled_at": now,
                    "next_poll_at": next_poll_at,
                },
            )
            uow.commit()

        log_fields = {
            "shipment_id": shipment.id,
            "carrier": str(shipment.carrier),
            "error_code": str(error.code),
            "retryable": error.retryable,
            "poll_error_count": error_count,
        }
        if error_count >= MAX_POLL_ERROR_COUNT:
            logger.warning(
                "Shipment %s has %d consecutive poll errors, flagged for review",
                shipment.id,
                error_count,
                extra={"json_fields": log_fields},
            )
        else:
            logger.info(
                "Poll of shipment %s failed: %s",
                shipment.id,
                error,
                extra={"json_fields": log_fields},
            )

        if error.retryable:
            raise RetryablePollError(error.code, error.message)

        return CarrierPollResult(
            shipment_id=shipment.id,
            success=False,
            duration_ms=self._elapsed_ms(started),
            error=str(error),
        )

    def _handle_success(
        self,
        shipment: Shipment,
        merchant: Merchant,
        result: TrackingResult,
        now: datetime,
        started: float,
    ) -> CarrierPollResult:
        with self.uow_factory() as uow:
            new_events_count = uow.tracking_events.insert_new(shipment.id, result.events)
            uow.commit()

            # Checked on every poll while unscanned, not only for new events
            record_first_scan = False
            if not shipment.has_carrier_scan and result.events:
                record_first_scan = can_record_first_scan(uow, merchant, now)

        fields = build_success_update(shipment, merchant, result, record_first_scan, now)

        with self.uow_factory() as uow:
            uow.shipments.update_fields(shipment.id, fields)
            uow.commit()

        is_delayed = bool(fields.get("is_delayed", False))
        logger.info(
            "Polled shipment %s: %s",
            shipment.id,
            result.current_status,
            extra={
                "json_fields": {
                    "shipment_id": shipment.id,
                    "carrier": str(shipment.carrier),
                    "new_events": new_events_count,
                    "is_delayed": is_delayed,
                    "is_delivered": result.is_delivered,
                    "first_scan_recorded": record_first_scan,
                }
            },
        )

        return CarrierPollResult(
            shipment_id=shipment.id,
            success=True,
            is_delayed=is_delayed,
            is_delivered=result.is_delivered,
            new_events_count=new_events_count,
            duration_ms=self._elapsed_ms(started),
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
