"""
Carrier adapter contract and parsing helpers shared by all adapters.

Adapters do not inherit from a common class; they satisfy the
CarrierAdapter protocol and reuse the module-level helpers below.
"""

import re
import threading
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar, runtime_checkable

import requests
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from delayguard.models.shipment import Carrier
from delayguard.models.tracking import (
    CarrierError,
    CarrierErrorCode,
    TrackingEvent,
    TrackingResult,
)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

DATE_FORMATS = ("%m/%d/%Y", "%B %d, %Y", "%b %d, %Y")
_YYYYMMDD = re.compile(r"^\d{8}$")
_HHMMSS = re.compile(r"^\d{6}$")
_CLOCK_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([ap]\.?m\.?)?$", re.IGNORECASE)


class CarrierPayload(BaseModel):
    """
    Base for carrier response schemas.

    Carrier JSON uses camelCase keys; unknown fields are kept so the raw
    payload can be stored alongside normalized events.
    """

    model_config = ConfigDict(
        extra="allow", alias_generator=to_camel, populate_by_name=True
    )


@runtime_checkable
class CarrierAdapter(Protocol):
    """Uniform "track one shipment" contract implemented per carrier."""

    carrier: Carrier

    def track(self, tracking_number: str) -> TrackingResult | CarrierError:
        """Fetch and normalize tracking data for one tracking number."""
        ...

    def tracking_url(self, tracking_number: str) -> str:
        """Customer-facing tracking page for the tracking number."""
        ...


class ThreadLocalSession:
    """
    One requests.Session per thread, shared by the adapters.

    Polls run on FastAPI's worker threads and on the poll pool, and a
    requests.Session is not safe to use from several threads at once.
    """

    def __init__(self):
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._lock = threading.Lock()

    @property
    def current(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.current.get(url, **kwargs)

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.current.post(url, **kwargs)

    def close(self):
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()


# Anything with requests-style get/post
HttpSession = requests.Session | ThreadLocalSession


def carrier_error(
    code: CarrierErrorCode, message: str, retryable: bool, raw_error: Any = None
) -> CarrierError:
    return CarrierError(
        code=code, message=message, retryable=retryable, raw_error=raw_error
    )


def error_for_status(
    response: requests.Response, carrier_name: str, tracking_number: str
) -> CarrierError | None:
    """
    Map a non-success HTTP status to a CarrierError.

    Returns None for 2xx/3xx responses. The caller is responsible for
    evicting cached tokens on AUTH_FAILED.
    """
    status = response.status_code

    if status == 429:
        return carrier_error(
            CarrierErrorCode.RATE_LIMITED,
            f"{carrier_name} API rate limit exceeded",
            True,
        )

    if status == 401:
        return carrier_error(
            CarrierErrorCode.AUTH_FAILED,
            f"{carrier_name} authentication failed, token may have expired",
            True,
        )

    if status == 404:
        return carrier_error(
            CarrierErrorCode.TRACKING_NOT_FOUND,
            f"Tracking number {tracking_number} not found in {carrier_name} system",
            False,
        )

    if not response.ok:
        body = response.text[:1000]
        return carrier_error(
            CarrierErrorCode.API_ERROR,
            f"{carrier_name} API error: {status} {body}",
            status >= 500,
            {"status": status, "body": body},
        )

    return None


def decode_json(response: requests.Response, carrier_name: str) -> Any | CarrierError:
    try:
        return response.json()
    except ValueError:
        return carrier_error(
            CarrierErrorCode.PARSE_ERROR,
            f"Failed to parse {carrier_name} API response as JSON",
            False,
            {"body": response.text[:1000]},
        )


def validate_payload(
    schema: type[SchemaT], payload: Any, carrier_name: str
) -> SchemaT | CarrierError:
    """Validate a decoded body against the carrier schema, or reject it whole."""
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        return carrier_error(
            CarrierErrorCode.PARSE_ERROR,
            f"Invalid {carrier_name} API response format: {e.error_count()} error(s)",
            False,
            {"errors": e.errors(include_url=False)},
        )


def network_error(carrier_name: str, error: requests.RequestException) -> CarrierError:
    return carrier_error(
        CarrierErrorCode.NETWORK_ERROR,
        f"Network error connecting to {carrier_name} API: {error}",
        True,
    )


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_carrier_date(value: str | None) -> datetime | None:
    """
    Parse the date formats used by carrier APIs.

    Handles YYYYMMDD (UPS), ISO 8601 (FedEx), MM/DD/YYYY and
    "February 5, 2026" (USPS). Dates without an offset are taken as UTC.
    """
    if not value:
        return None

    value = value.strip()

    if _YYYYMMDD.match(value):
        try:
            return datetime.strptime(value, "%Y%m%d").replace(tzinfo=timezone.utc)
        except ValueError:
            return None

    try:
        return _to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    return None


def parse_carrier_datetime(date_value: str | None, time_value: str | None) -> datetime | None:
    """Combine a carrier date with an HHMMSS, HH:MM[:SS] or '10:30 am' time."""
    date = parse_carrier_date(date_value)
    if date is None or not time_value:
        return date

    time_value = time_value.strip()

    if _HHMMSS.match(time_value):
        hour, minute, second = (
            int(time_value[0:2]),
            int(time_value[2:4]),
            int(time_value[4:6]),
        )
    else:
        match = _CLOCK_TIME.match(time_value)
        if not match:
            return date
        hour, minute = int(match.group(1)), int(match.group(2))
        second = int(match.group(3) or 0)
        meridiem = (match.group(4) or "").lower().replace(".", "")
        if meridiem == "pm" and hour < 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0

    try:
        return date.replace(hour=hour, minute=minute, second=second)
    except ValueError:
        return date


def format_location(
    city: str | None, state: str | None, country: str | None
) -> str | None:
    parts = [part for part in (city, state, country) if part]
    return ", ".join(parts) if parts else None


def sort_events(events: list[TrackingEvent]) -> list[TrackingEvent]:
    """Most recent first."""
    return sorted(events, key=lambda event: event.timestamp, reverse=True)


def last_scan(events: list[TrackingEvent]) -> tuple[str | None, datetime | None]:
    """Location and time of the most recent event in a sorted list."""
    if not events:
        return None, None
    latest = events[0]
    return format_location(latest.city, latest.state, latest.country), latest.timestamp
