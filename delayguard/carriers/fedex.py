"""
FedEx carrier adapter.

Authenticates with OAuth 2.0 client credentials through the shared
credential cache and reads FedEx Track API v1.
"""

import logging
from datetime import datetime

import requests

from delayguard.carriers.base import (
    HttpSession,
    ThreadLocalSession,
    carrier_error,
    decode_json,
    error_for_status,
    last_scan,
    network_error,
    parse_carrier_date,
    sort_events,
    validate_payload,
)
from delayguard.carriers.fedex_schemas import (
    FedexScanEvent,
    FedexTrackingResponse,
    FedexTrackResult,
)
from delayguard.carriers.identification import build_tracking_url
from delayguard.carriers.token_cache import CredentialCache
from delayguard.config import CARRIER_REQUEST_TIMEOUT_SECONDS
from delayguard.exceptions import TokenExchangeError
from delayguard.models.shipment import Carrier
from delayguard.models.tracking import (
    CarrierError,
    CarrierErrorCode,
    TokenGrant,
    TrackingEvent,
    TrackingResult,
)

logger = logging.getLogger(__name__)

FEDEX_BASE_URL = "https://apis.fedex.com"
FEDEX_TOKEN_URL = f"{FEDEX_BASE_URL}/oauth/token"
FEDEX_TRACK_URL = f"{FEDEX_BASE_URL}/track/v1/trackingnumbers"

FEDEX_DELIVERED_CODES = {"DL", "DE"}
FEDEX_ON_TIME_STATUSES = {"ON_TIME", "EARLY"}
FEDEX_NOT_FOUND_ALERT = "TRACKING.TRACKINGNUMBER.NOTFOUND"

EXCEPTION_KEYWORDS = (
    "exception",
    "delay",
    "undeliverable",
    "hold",
    "unable",
    "incorrect",
    "damaged",
    "customs",
)


def _date_of_type(result: FedexTrackResult, *types: str) -> datetime | None:
    for wanted in types:
        for entry in result.date_and_times or []:
            if entry.type == wanted and entry.date_time:
                return parse_carrier_date(entry.date_time)
    return None


def _parse_scan_events(scan_events: list[FedexScanEvent] | None) -> list[TrackingEvent]:
    events = []
    for scan in scan_events or []:
        timestamp = parse_carrier_date(scan.date)
        if timestamp is None:
            continue

        address = scan.scan_location.address if scan.scan_location else None
        events.append(
            TrackingEvent(
                timestamp=timestamp,
                type=scan.event_type or scan.derived_status_code or "UNKNOWN",
                description=scan.event_description
                or scan.derived_status
                or "Status update",
                city=address.city if address else None,
                state=address.state_or_province_code if address else None,
                country=address.country_code if address else None,
                raw_data=scan.model_dump(mode="json", by_alias=True),
            )
        )
    return sort_events(events)


def _is_exception_status(status_text: str, result: FedexTrackResult) -> bool:
    lowered = status_text.lower()
    if any(keyword in lowered for keyword in EXCEPTION_KEYWORDS):
        return True

    delay_status = result.delay_detail.status if result.delay_detail else None
    return bool(delay_status) and delay_status not in FEDEX_ON_TIME_STATUSES


def _exception_details(
    status_text: str, result: FedexTrackResult
) -> tuple[str | None, str | None]:
    status = result.latest_status_detail
    if status and status.ancillary_details:
        detail = status.ancillary_details[0]
        return detail.reason, detail.reason_description or detail.action_description

    if result.delay_detail:
        delay = result.delay_detail
        return delay.sub_type or delay.type, delay.status

    return None, status_text


def _expected_delivery(result: FedexTrackResult) -> datetime | None:
    for window in (
        result.estimated_delivery_time_window,
        result.standard_transit_time_window,
    ):
        if window and window.window and window.window.ends:
            parsed = parse_carrier_date(window.window.ends)
            if parsed is not None:
                return parsed

    return _date_of_type(result, "ESTIMATED_DELIVERY", "SCHEDULED_DELIVERY")


def _delivered_at(result: FedexTrackResult, events: list[TrackingEvent]) -> datetime | None:
    actual = _date_of_type(result, "ACTUAL_DELIVERY")
    if actual is not None:
        return actual

    for event in events:
        if event.type == "DL" or "delivered" in event.description.lower():
            return event.timestamp
    return None


class FedexAdapter:
    """Tracks FedEx shipments."""

    carrier = Carrier.FEDEX

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        token_cache: CredentialCache,
        session: HttpSession | None = None,
        timeout: float = CARRIER_REQUEST_TIMEOUT_SECONDS,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_cache = token_cache
        self.session = session or ThreadLocalSession()
        self.timeout = timeout

    def tracking_url(self, tracking_number: str) -> str:
        return build_tracking_url(self.carrier, tracking_number)

    def fetch_token(self) -> TokenGrant:
        """
        Exchange client credentials for a bearer token.

        Raises:
            TokenExchangeError: If credentials are missing or FedEx rejects them
            requests.RequestException: On transport failure
        """
        if not self.client_id or not self.client_secret:
            raise TokenExchangeError(
                "FEDEX_CLIENT_ID and FEDEX_CLIENT_SECRET environment variables are required"
            )

        response = self.session.post(
            FEDEX_TOKEN_URL,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
            timeout=self.timeout,
        )
        if not response.ok:
            raise TokenExchangeError(
                f"FedEx OAuth token request failed: {response.status_code} {response.text[:500]}"
            )

        try:
            return TokenGrant.model_validate(response.json())
        except ValueError as e:
            raise TokenExchangeError(f"Invalid FedEx OAuth token response: {e}") from e

    def track(self, tracking_number: str) -> TrackingResult | CarrierError:
        try:
            access_token = self.token_cache.get_token(self.carrier, self.fetch_token)
        except (TokenExchangeError, requests.RequestException) as e:
            logger.warning("FedEx token exchange failed: %s", e)
            return carrier_error(
                CarrierErrorCode.AUTH_FAILED,
                "Failed to obtain FedEx OAuth token",
                True,
                str(e),
            )

        try:
            response = self.session.post(
                FEDEX_TRACK_URL,
                json={
                    "includeDetailedScans": True,
                    "trackingInfo": [
                        {"trackingNumberInfo": {"trackingNumber": tracking_number}}
                    ],
                },
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                    "X-locale": "en_US",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return network_error("FedEx", e)

        error = error_for_status(response, "FedEx", tracking_number)
        if error is not None:
            if error.code == CarrierErrorCode.AUTH_FAILED:
                self.token_cache.evict(self.carrier, access_token)
            return error

        payload = decode_json(response, "FedEx")
        if isinstance(payload, CarrierError):
            return payload

        parsed = validate_payload(FedexTrackingResponse, payload, "FedEx")
        if isinstance(parsed, CarrierError):
            return parsed

        return self._to_result(tracking_number, parsed, payload)

    def _to_result(
        self, tracking_number: str, response: FedexTrackingResponse, payload: dict
    ) -> TrackingResult | CarrierError:
        for alert in response.alerts or []:
            if alert.alert_type == "ERROR" or alert.code == FEDEX_NOT_FOUND_ALERT:
                return carrier_error(
                    CarrierErrorCode.TRACKING_NOT_FOUND,
                    alert.message or f"Tracking number {tracking_number} not found",
                    False,
                    payload,
                )

        complete = (
            response.output.complete_track_results if response.output else None
        )
        track_results = complete[0].track_results if complete else None
        if not track_results:
            return carrier_error(
                CarrierErrorCode.TRACKING_NOT_FOUND,
                f"No tracking results for tracking number {tracking_number}",
                False,
                payload,
            )

        result = track_results[0]
        if result.error:
            return carrier_error(
                CarrierErrorCode.TRACKING_NOT_FOUND,
                result.error.message or f"Tracking number {tracking_number} not found",
                False,
                payload,
            )

        events = _parse_scan_events(result.scan_events)

        status = result.latest_status_detail
        status_code = status.code if status else None
        status_text = (
            (status.status_by_locale or status.description) if status else None
        ) or "Unknown"

        is_delivered = status_code in FEDEX_DELIVERED_CODES
        is_exception = _is_exception_status(status_text, result)

        exception_code, exception_reason = None, None
        if is_exception:
            exception_code, exception_reason = _exception_details(status_text, result)

        rescheduled = None
        delay_status = result.delay_detail.status if result.delay_detail else None
        if delay_status and delay_status != "ON_TIME":
            rescheduled = _date_of_type(result, "APPOINTMENT_DELIVERY", "ACTUAL_TENDER")

        location, scan_time = last_scan(events)

        return TrackingResult(
            tracking_number=tracking_number,
            carrier=self.carrier,
            current_status=status_text,
            is_exception=is_exception,
            exception_code=exception_code,
            exception_reason=exception_reason,
            expected_delivery_date=_expected_delivery(result),
            rescheduled_delivery_date=rescheduled,
            is_delivered=is_delivered,
            delivered_at=_delivered_at(result, events) if is_delivered else None,
            last_scan_location=location,
            last_scan_time=scan_time,
            events=events,
        )
