"""
USPS carrier adapter.

USPS Web Tools authenticates with a plain USERID attribute in the XML
request, so no token exchange or credential cache is involved.
"""

import logging
from datetime import datetime
from xml.etree import ElementTree

import requests

from delayguard.carriers.base import (
    HttpSession,
    ThreadLocalSession,
    carrier_error,
    error_for_status,
    last_scan,
    network_error,
    parse_carrier_date,
    parse_carrier_datetime,
    sort_events,
    validate_payload,
)
from delayguard.carriers.identification import build_tracking_url
from delayguard.carriers.usps_schemas import (
    UspsTrackEvent,
    UspsTrackInfo,
    UspsTrackingResponse,
    xml_to_dict,
)
from delayguard.config import CARRIER_REQUEST_TIMEOUT_SECONDS
from delayguard.models.shipment import Carrier
from delayguard.models.tracking import (
    CarrierError,
    CarrierErrorCode,
    TrackingEvent,
    TrackingResult,
)

logger = logging.getLogger(__name__)

USPS_API_URL = "https://secure.shippingapis.com/ShippingAPI.dll"
USPS_NOT_FOUND_ERROR = "-2147219302"

EXCEPTION_KEYWORDS = ("arriving late", "alert", "exception", "notice left")
DELIVERED_KEYWORDS = ("delivered", "available for pickup")


def _matches(value: str | None, keywords: tuple[str, ...]) -> bool:
    if not value:
        return False
    lowered = value.lower()
    return any(keyword in lowered for keyword in keywords)


def _summary_event(info: UspsTrackInfo) -> UspsTrackEvent | None:
    # Revision 0 responses carry the summary as a sentence instead of fields
    if isinstance(info.track_summary, UspsTrackEvent):
        return info.track_summary
    return None


def _to_event(entry: UspsTrackEvent) -> TrackingEvent | None:
    timestamp = parse_carrier_datetime(entry.event_date, entry.event_time)
    if timestamp is None:
        return None

    return TrackingEvent(
        timestamp=timestamp,
        type=entry.event_code or "UNKNOWN",
        description=entry.event or "Status update",
        city=entry.event_city,
        state=entry.event_state,
        country=entry.event_country,
        raw_data=entry.model_dump(mode="json", by_alias=True),
    )


def _parse_events(info: UspsTrackInfo) -> list[TrackingEvent]:
    entries = []
    summary = _summary_event(info)
    if summary is not None:
        entries.append(summary)
    entries.extend(info.track_detail or [])

    events = [event for event in map(_to_event, entries) if event is not None]
    return sort_events(events)


def _current_status(info: UspsTrackInfo) -> str:
    if info.status:
        return info.status
    if info.status_summary:
        return info.status_summary

    summary = _summary_event(info)
    if summary is not None and summary.event:
        return summary.event
    return "Unknown"


def _expected_delivery(info: UspsTrackInfo) -> datetime | None:
    if info.expected_delivery_date:
        return parse_carrier_datetime(
            info.expected_delivery_date, info.expected_delivery_time
        )
    return parse_carrier_date(info.guaranteed_delivery_date)


def _delivered_at(info: UspsTrackInfo, events: list[TrackingEvent]) -> datetime | None:
    if info.delivery_notification_date:
        return parse_carrier_date(info.delivery_notification_date)

    for event in events:
        if _matches(event.description, DELIVERED_KEYWORDS):
            return event.timestamp
    return None


def build_track_request(user_id: str, tracking_number: str, source_id: str) -> str:
    """Serialize a TrackFieldRequest (Revision 1) for one tracking number."""
    request = ElementTree.Element("TrackFieldRequest", USERID=user_id)
    ElementTree.SubElement(request, "Revision").text = "1"
    ElementTree.SubElement(request, "ClientIp").text = "127.0.0.1"
    ElementTree.SubElement(request, "SourceId").text = source_id
    ElementTree.SubElement(request, "TrackID", ID=tracking_number)
    return ElementTree.tostring(request, encoding="unicode")


class UspsAdapter:
    """Tracks USPS shipments."""

    carrier = Carrier.USPS

    def __init__(
        self,
        user_id: str | None,
        session: HttpSession | None = None,
        timeout: float = CARRIER_REQUEST_TIMEOUT_SECONDS,
        source_id: str = "DelayGuard",
    ):
        self.user_id = user_id
        self.session = session or ThreadLocalSession()
        self.timeout = timeout
        self.source_id = source_id

    def tracking_url(self, tracking_number: str) -> str:
        return build_tracking_url(self.carrier, tracking_number)

    def track(self, tracking_number: str) -> TrackingResult | CarrierError:
        if not self.user_id:
            return carrier_error(
                CarrierErrorCode.AUTH_FAILED,
                "USPS_USER_ID not configured",
                False,
            )

        try:
            response = self.session.get(
                USPS_API_URL,
                params={
                    "API": "TrackV2",
                    "XML": build_track_request(
                        self.user_id, tracking_number, self.source_id
                    ),
                },
                headers={"Accept": "application/xml"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return network_error("USPS", e)

        error = error_for_status(response, "USPS", tracking_number)
        if error is not None:
            return error

        try:
            payload = xml_to_dict(response.content)
        except ElementTree.ParseError as e:
            return carrier_error(
                CarrierErrorCode.PARSE_ERROR,
                "Failed to parse USPS XML response",
                False,
                {"body": response.text[:1000], "error": str(e)},
            )

        parsed = validate_payload(UspsTrackingResponse, payload, "USPS")
        if isinstance(parsed, CarrierError):
            return parsed

        return self._to_result(tracking_number, parsed, payload)

    def _to_result(
        self, tracking_number: str, response: UspsTrackingResponse, payload: dict
    ) -> TrackingResult | CarrierError:
        if response.error is not None:
            description = response.error.description or "Unknown error"
            if (
                response.error.number == USPS_NOT_FOUND_ERROR
                or "not found" in description.lower()
            ):
                return carrier_error(
                    CarrierErrorCode.TRACKING_NOT_FOUND,
                    f"Tracking number {tracking_number} not found: {description}",
                    False,
                    payload,
                )
            return carrier_error(
                CarrierErrorCode.API_ERROR,
                f"USPS API error: {description}",
                False,
                payload,
            )

        track_info = (
            response.track_response.track_info if response.track_response else None
        )
        if not track_info:
            return carrier_error(
                CarrierErrorCode.TRACKING_NOT_FOUND,
                f"No tracking data returned for {tracking_number}",
                False,
                payload,
            )

        info = track_info[0]
        if info.error is not None:
            return carrier_error(
                CarrierErrorCode.TRACKING_NOT_FOUND,
                info.error.description or "Tracking number not found",
                False,
                payload,
            )

        events = _parse_events(info)
        current_status = _current_status(info)

        is_exception = _matches(current_status, EXCEPTION_KEYWORDS) or _matches(
            info.status_category, EXCEPTION_KEYWORDS
        )
        is_delivered = (
            _matches(current_status, DELIVERED_KEYWORDS)
            or info.status_category == "Delivered"
        )

        location, scan_time = last_scan(events)

        return TrackingResult(
            tracking_number=tracking_number,
            carrier=self.carrier,
            current_status=current_status,
            is_exception=is_exception,
            exception_code=info.status_category if is_exception else None,
            exception_reason=current_status if is_exception else None,
            expected_delivery_date=_expected_delivery(info),
            rescheduled_delivery_date=None,
            is_delivered=is_delivered,
            delivered_at=_delivered_at(info, events) if is_delivered else None,
            last_scan_location=location,
            last_scan_time=scan_time,
            events=events,
        )
