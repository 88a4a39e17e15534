"""
UPS carrier adapter.

Authenticates with OAuth 2.0 client credentials through the shared
credential cache and reads UPS Track API v1.
"""

import logging
import uuid
from urllib.parse import quote

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
    parse_carrier_datetime,
    sort_events,
    validate_payload,
)
from delayguard.carriers.identification import build_tracking_url
from delayguard.carriers.token_cache import CredentialCache
from delayguard.carriers.ups_schemas import (
    UpsActivity,
    UpsPackage,
    UpsTrackingResponse,
)
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

UPS_BASE_URL = "https://onlinetools.ups.com"
UPS_TOKEN_URL = f"{UPS_BASE_URL}/security/v1/oauth/token"
UPS_TRACK_URL = f"{UPS_BASE_URL}/api/track/v1/details"

# Package status types
UPS_STATUS_MANIFEST = "M"
UPS_STATUS_IN_TRANSIT = "I"
UPS_STATUS_DELIVERED = "D"
UPS_STATUS_EXCEPTION = "X"
UPS_STATUS_PICKUP = "P"

UPS_STATUS_LABELS = {
    UPS_STATUS_MANIFEST: "Label Created",
    UPS_STATUS_IN_TRANSIT: "In Transit",
    UPS_STATUS_DELIVERED: "Delivered",
    UPS_STATUS_EXCEPTION: "Exception",
    UPS_STATUS_PICKUP: "Picked Up",
}

UPS_NOT_FOUND_WARNING = "TW0001"


def _parse_activities(activities: list[UpsActivity] | None) -> list[TrackingEvent]:
    events = []
    for activity in activities or []:
        timestamp = parse_carrier_datetime(activity.date, activity.time)
        if timestamp is None:
            continue

        address = activity.location.address if activity.location else None
        status = activity.status
        events.append(
            TrackingEvent(
                timestamp=timestamp,
                type=(status.type if status else None) or "UNKNOWN",
                description=(status.description if status else None)
                or "Status update",
                city=address.city if address else None,
                state=address.state_province if address else None,
                country=address.country if address else None,
                raw_data=activity.model_dump(mode="json", by_alias=True),
            )
        )
    return sort_events(events)


def _expected_delivery(package: UpsPackage):
    if package.delivery_date:
        return parse_carrier_date(package.delivery_date[0].date)

    for package_address in package.package_address or []:
        if package_address.address and package_address.address.scheduled_delivery_date:
            return parse_carrier_date(package_address.address.scheduled_delivery_date)

    return None


def _rescheduled_delivery(package: UpsPackage):
    # Later entries in deliveryDate are reschedules of the first
    if package.delivery_date and len(package.delivery_date) > 1:
        return parse_carrier_date(package.delivery_date[-1].date)
    return None


class UpsAdapter:
    """Tracks UPS shipments."""

    carrier = Carrier.UPS

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
            TokenExchangeError: If credentials are missing or UPS rejects them
            requests.RequestException: On transport failure
        """
        if not self.client_id or not self.client_secret:
            raise TokenExchangeError(
                "UPS_CLIENT_ID and UPS_CLIENT_SECRET environment variables are required"
            )

        response = self.session.post(
            UPS_TOKEN_URL,
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
            timeout=self.timeout,
        )
        if not response.ok:
            raise TokenExchangeError(
                f"UPS OAuth token request failed: {response.status_code} {response.text[:500]}"
            )

        try:
            return TokenGrant.model_validate(response.json())
        except ValueError as e:
            raise TokenExchangeError(f"Invalid UPS OAuth token response: {e}") from e

    def track(self, tracking_number: str) -> TrackingResult | CarrierError:
        try:
            access_token = self.token_cache.get_token(self.carrier, self.fetch_token)
        except (TokenExchangeError, requests.RequestException) as e:
            logger.warning("UPS token exchange failed: %s", e)
            return carrier_error(
                CarrierErrorCode.AUTH_FAILED,
                "Failed to obtain UPS OAuth token",
                True,
                str(e),
            )

        try:
            response = self.session.get(
                f"{UPS_TRACK_URL}/{quote(tracking_number, safe='')}",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                    "transId": uuid.uuid4().hex,
                    "transactionSrc": "DelayGuard",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return network_error("UPS", e)

        error = error_for_status(response, "UPS", tracking_number)
        if error is not None:
            if error.code == CarrierErrorCode.AUTH_FAILED:
                self.token_cache.evict(self.carrier, access_token)
            return error

        payload = decode_json(response, "UPS")
        if isinstance(payload, CarrierError):
            return payload

        parsed = validate_payload(UpsTrackingResponse, payload, "UPS")
        if isinstance(parsed, CarrierError):
            return parsed

        return self._to_result(tracking_number, parsed, payload)

    def _to_result(
        self, tracking_number: str, response: UpsTrackingResponse, payload: dict
    ) -> TrackingResult | CarrierError:
        shipments = response.track_response.shipment if response.track_response else None
        if not shipments:
            return carrier_error(
                CarrierErrorCode.TRACKING_NOT_FOUND,
                f"No shipment data returned for tracking number {tracking_number}",
                False,
                payload,
            )

        shipment = shipments[0]
        if shipment.warnings:
            warning = shipment.warnings[0]
            if warning.code == UPS_NOT_FOUND_WARNING or "not found" in (
                warning.message or ""
            ).lower():
                return carrier_error(
                    CarrierErrorCode.TRACKING_NOT_FOUND,
                    warning.message or f"Tracking number {tracking_number} not found",
                    False,
                    payload,
                )

        if not shipment.package:
            return carrier_error(
                CarrierErrorCode.TRACKING_NOT_FOUND,
                f"No package data for tracking number {tracking_number}",
                False,
                payload,
            )

        package = shipment.package[0]
        events = _parse_activities(package.activity)

        current = package.current_status or (
            package.activity[0] if package.activity else None
        )
        status = current.status if current else None
        status_type = status.type if status else None
        status_description = (status.description if status else None) or "Unknown"

        is_exception = status_type == UPS_STATUS_EXCEPTION
        is_delivered = status_type == UPS_STATUS_DELIVERED
        delivered_at = None
        if is_delivered:
            delivered_at = next(
                (e.timestamp for e in events if e.type == UPS_STATUS_DELIVERED), None
            )

        location, scan_time = last_scan(events)

        return TrackingResult(
            tracking_number=tracking_number,
            carrier=self.carrier,
            current_status=UPS_STATUS_LABELS.get(status_type, status_description),
            is_exception=is_exception,
            exception_code=status.code if is_exception and status else None,
            exception_reason=status_description if is_exception else None,
            expected_delivery_date=_expected_delivery(package),
            rescheduled_delivery_date=_rescheduled_delivery(package),
            is_delivered=is_delivered,
            delivered_at=delivered_at,
            last_scan_location=location,
            last_scan_time=scan_time,
            events=events,
        )
