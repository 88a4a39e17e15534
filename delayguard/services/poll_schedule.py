"""
Adaptive poll scheduling.

Shipments are polled more often as delivery gets closer and most often
once they are past due. Each merchant's fixed random offset is added to
the interval so merchants do not all poll at the same moment.
"""

import random
from datetime import datetime, timedelta
from enum import IntEnum

from delayguard.models.merchant import Merchant
from delayguard.models.shipment import Shipment
from delayguard.utils.business_days import calendar_days_between


class PollPriority(IntEnum):
    """Queue priority of a poll job (lower is more urgent)"""

    URGENT = 1  # Past expected delivery
    HIGH = 2  # Expected today or tomorrow
    NORMAL = 3  # Expected in 2-5 days, or unknown
    LOW = 4  # Expected in 6+ days


# Base poll intervals
PAST_DUE_INTERVAL = timedelta(hours=2)
RESCHEDULED_INTERVAL = timedelta(hours=4)
IMMINENT_INTERVAL = timedelta(hours=4)
UPCOMING_INTERVAL = timedelta(hours=6)
FUTURE_INTERVAL = timedelta(hours=8)
UNKNOWN_INTERVAL = timedelta(hours=6)

# Added to next_poll_at after a RATE_LIMITED response
RATE_LIMIT_BACKOFF = timedelta(minutes=30)

# Consecutive failures before a shipment is flagged for review
MAX_POLL_ERROR_COUNT = 2

# First poll after a shipment with a tracking number is created
INITIAL_POLL_DELAY = timedelta(minutes=30)

POLL_OFFSET_MINUTES = 240


def poll_job_id(shipment_id: str) -> str:
    """Stable job id so a shipment is never queued twice."""
    return f"poll-{shipment_id}"


def generate_random_poll_offset() -> int:
    """Per-merchant offset in minutes, assigned once at install."""
    return random.randrange(POLL_OFFSET_MINUTES)


def initial_next_poll_at(now: datetime) -> datetime:
    return now + INITIAL_POLL_DELAY


def _days_until_expected(shipment: Shipment, now: datetime) -> int | None:
    if shipment.expected_delivery_date is None:
        return None
    return calendar_days_between(now, shipment.expected_delivery_date)


def calculate_poll_interval(shipment: Shipment, now: datetime) -> timedelta:
    days_until = _days_until_expected(shipment, now)
    if days_until is None:
        return UNKNOWN_INTERVAL

    if days_until < 0:
        rescheduled = shipment.rescheduled_delivery_date
        if rescheduled is not None and rescheduled > now:
            return RESCHEDULED_INTERVAL
        return PAST_DUE_INTERVAL

    if days_until <= 1:
        return IMMINENT_INTERVAL
    if days_until <= 5:
        return UPCOMING_INTERVAL
    return FUTURE_INTERVAL


def calculate_next_poll_at(
    shipment: Shipment, merchant: Merchant, now: datetime
) -> datetime | None:
    """
    Next time a shipment should be polled.

    Returns:
        None when the shipment is delivered or archived, otherwise
        now + base interval + the merchant's random offset
    """
    if shipment.is_delivered or shipment.is_archived:
        return None

    interval = calculate_poll_interval(shipment, now)
    return now + interval + timedelta(minutes=merchant.random_poll_offset)


def calculate_poll_priority(shipment: Shipment, now: datetime) -> PollPriority:
    days_until = _days_until_expected(shipment, now)
    if days_until is None:
        return PollPriority.NORMAL
    if days_until < 0:
        return PollPriority.URGENT
    if days_until <= 1:
        return PollPriority.HIGH
    if days_until <= 5:
        return PollPriority.NORMAL
    return PollPriority.LOW
