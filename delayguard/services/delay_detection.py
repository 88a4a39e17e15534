"""
Delay detection engine.

Decides whether a shipment is delayed from the latest carrier result and
what is stored on the shipment. A shipment is delayed when the carrier
reports an exception, or when the delivery deadline (end of the expected
delivery day plus the merchant's grace hours) has passed.

The expected delivery date is resolved from, in order:
    1. The date in the current carrier result (CARRIER)
    2. A previously stored carrier date (CARRIER)
    3. A merchant-entered date (MERCHANT_OVERRIDE)
    4. Ship date plus the service level's business-day window (DEFAULT)
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

from delayguard.carriers.identification import normalize_service_level
from delayguard.models.merchant import MerchantSettings
from delayguard.models.shipment import Carrier, DelayReason, DeliverySource, Shipment
from delayguard.models.tracking import TrackingResult
from delayguard.utils.business_days import (
    calculate_days_delayed,
    calculate_expected_delivery_date,
    is_past_deadline,
)

# Business days by normalized service level key
DEFAULT_DELIVERY_WINDOWS: dict[str, int] = {
    # UPS
    "ups_next_day_air": 1,
    "ups_next_day_air_early": 1,
    "ups_next_day_air_saver": 1,
    "ups_2nd_day_air": 2,
    "ups_2nd_day_air_am": 2,
    "ups_3_day_select": 3,
    "ups_ground": 5,
    "ups_standard": 5,
    # FedEx
    "fedex_first_overnight": 1,
    "fedex_priority_overnight": 1,
    "fedex_standard_overnight": 1,
    "fedex_overnight": 1,
    "fedex_2day": 2,
    "fedex_2day_am": 2,
    "fedex_express_saver": 3,
    "fedex_ground": 5,
    "fedex_home_delivery": 5,
    # USPS
    "usps_priority_mail_express": 2,
    "usps_priority_express": 2,
    "usps_priority_mail": 3,
    "usps_priority": 3,
    "usps_ground_advantage": 7,
    "usps_first_class": 5,
    "usps_parcel_select": 7,
    "usps_retail_ground": 7,
    # Generic
    "overnight": 1,
    "express": 2,
    "priority": 3,
    "standard": 5,
    "ground": 5,
    "economy": 7,
}

# Business days when the service level is unknown
DEFAULT_CARRIER_WINDOWS: dict[Carrier, int] = {
    Carrier.UPS: 5,
    Carrier.FEDEX: 5,
    Carrier.USPS: 7,
}

UNIVERSAL_DELIVERY_WINDOW = 7


class WindowSource(StrEnum):
    """Where a delivery window came from"""

    MERCHANT_OVERRIDE = "merchant_override"
    SERVICE_LEVEL = "service_level"
    GENERIC_SERVICE_LEVEL = "generic_service_level"
    CARRIER_DEFAULT = "carrier_default"
    UNIVERSAL_DEFAULT = "universal_default"


class DelayEvaluation(BaseModel):
    """Outcome of a delay evaluation"""

    is_delayed: bool = Field(description="Shipment should be flagged as delayed")
    delay_reason: Optional[DelayReason] = Field(
        default=None, description="Why it is delayed (null when on time)"
    )
    days_delayed: int = Field(default=0, description="Calendar days past expected")
    expected_delivery_date: Optional[datetime] = Field(
        default=None, description="Expected delivery date used for the evaluation"
    )
    expected_delivery_source: DeliverySource = Field(
        default=DeliverySource.DEFAULT, description="Source of the expected date"
    )


def _generic_key(normalized: str, carrier: Carrier) -> str:
    prefix = f"{carrier.value}_"
    if carrier != Carrier.UNKNOWN and normalized.startswith(prefix):
        return normalized[len(prefix):]
    return normalized


def get_delivery_window(
    service_level: str | None,
    carrier: Carrier,
    overrides: dict[str, int] | None = None,
) -> tuple[int, WindowSource]:
    """
    Business-day delivery window for a service level.

    Merchant overrides are matched on the raw service level, its normalized
    key and the key without the carrier prefix, before the built-in tables.

    Returns:
        (business_days, source)
    """
    overrides = overrides or {}
    normalized = normalize_service_level(service_level, carrier)
    generic = _generic_key(normalized, carrier) if normalized else None

    for key in (service_level, normalized, generic):
        if key and key in overrides:
            return overrides[key], WindowSource.MERCHANT_OVERRIDE

    if normalized and normalized in DEFAULT_DELIVERY_WINDOWS:
        return DEFAULT_DELIVERY_WINDOWS[normalized], WindowSource.SERVICE_LEVEL

    if generic and generic in DEFAULT_DELIVERY_WINDOWS:
        return DEFAULT_DELIVERY_WINDOWS[generic], WindowSource.GENERIC_SERVICE_LEVEL

    if carrier in DEFAULT_CARRIER_WINDOWS:
        return DEFAULT_CARRIER_WINDOWS[carrier], WindowSource.CARRIER_DEFAULT

    return UNIVERSAL_DELIVERY_WINDOW, WindowSource.UNIVERSAL_DEFAULT


def calculate_default_expected_delivery(
    shipment: Shipment, settings: MerchantSettings
) -> datetime | None:
    ship_date = shipment.ship_date or shipment.created_at
    if ship_date is None:
        return None

    business_days, _ = get_delivery_window(
        shipment.service_level, shipment.carrier, settings.delivery_windows
    )
    return calculate_expected_delivery_date(ship_date, business_days)


def resolve_expected_delivery(
    shipment: Shipment,
    result: TrackingResult | None,
    settings: MerchantSettings,
) -> tuple[datetime | None, DeliverySource]:
    if result is not None and result.expected_delivery_date:
        return result.expected_delivery_date, DeliverySource.CARRIER

    if shipment.expected_delivery_date and shipment.expected_delivery_source in (
        DeliverySource.CARRIER,
        DeliverySource.MERCHANT_OVERRIDE,
    ):
        return shipment.expected_delivery_date, shipment.expected_delivery_source

    return calculate_default_expected_delivery(shipment, settings), DeliverySource.DEFAULT


def evaluate_delay(
    shipment: Shipment,
    result: TrackingResult | None,
    settings: MerchantSettings,
    now: datetime,
) -> DelayEvaluation:
    """
    Evaluate whether a shipment is delayed.

    Args:
        shipment: Stored shipment state
        result: Latest carrier result, or None when evaluating without a poll
        settings: Merchant settings (grace hours and window overrides)
        now: Evaluation time

    Returns:
        DelayEvaluation with the resolved expected delivery date
    """
    if shipment.is_delivered or (result is not None and result.is_delivered):
        return DelayEvaluation(
            is_delayed=False,
            expected_delivery_date=shipment.expected_delivery_date,
            expected_delivery_source=shipment.expected_delivery_source,
        )

    expected, source = resolve_expected_delivery(shipment, result, settings)

    # A carrier exception flags the shipment even when no date resolves
    if result is not None and result.is_exception:
        return DelayEvaluation(
            is_delayed=True,
            delay_reason=DelayReason.CARRIER_EXCEPTION,
            days_delayed=calculate_days_delayed(expected, now) if expected else 0,
            expected_delivery_date=expected,
            expected_delivery_source=source,
        )

    if expected is None:
        return DelayEvaluation(is_delayed=False)

    # A later carrier reschedule moves the deadline, not the expected date
    rescheduled = (
        result.rescheduled_delivery_date if result is not None else None
    ) or shipment.rescheduled_delivery_date
    deadline_date = rescheduled if rescheduled and rescheduled > expected else expected

    if is_past_deadline(deadline_date, settings.delay_threshold_hours, now):
        return DelayEvaluation(
            is_delayed=True,
            delay_reason=DelayReason.PAST_EXPECTED_DELIVERY,
            days_delayed=calculate_days_delayed(expected, now),
            expected_delivery_date=expected,
            expected_delivery_source=source,
        )

    return DelayEvaluation(
        is_delayed=False,
        expected_delivery_date=expected,
        expected_delivery_source=source,
    )


def get_delay_update_fields(
    evaluation: DelayEvaluation, was_delayed: bool, now: datetime
) -> dict[str, Any]:
    """
    Shipment columns to write for an evaluation of a non-delivered shipment.

    delay_flagged_at is stamped on the transition into delayed and cleared
    when the shipment is back on time.
    """
    fields: dict[str, Any] = {
        "is_delayed": evaluation.is_delayed,
        "delay_reason": evaluation.delay_reason if evaluation.is_delayed else None,
        "days_delayed": evaluation.days_delayed,
    }

    if evaluation.expected_delivery_date is not None:
        fields["expected_delivery_date"] = evaluation.expected_delivery_date
        fields["expected_delivery_source"] = evaluation.expected_delivery_source

    if evaluation.is_delayed and not was_delayed:
        fields["delay_flagged_at"] = now
    elif not evaluation.is_delayed:
        fields["delay_flagged_at"] = None

    return fields


def get_carrier_service_levels(carrier: Carrier) -> list[str]:
    """Built-in service level keys for a carrier, for settings screens."""
    prefix = f"{carrier.value}_"
    return [key for key in DEFAULT_DELIVERY_WINDOWS if key.startswith(prefix)]


def get_service_level_label(key: str) -> str:
    """'ups_2nd_day_air' -> 'Ups 2nd Day Air'"""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("_"))
