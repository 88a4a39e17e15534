"""
FedEx Track API v1 response schemas.

See https://developer.fedex.com/api/en-us/catalog/track/v1/docs.html
"""

from typing import Optional

from delayguard.carriers.base import CarrierPayload


class FedexAddress(CarrierPayload):
    city: Optional[str] = None
    state_or_province_code: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None


class FedexScanLocation(CarrierPayload):
    address: Optional[FedexAddress] = None


class FedexScanEvent(CarrierPayload):
    date: Optional[str] = None  # ISO 8601 with offset
    event_type: Optional[str] = None
    event_description: Optional[str] = None
    derived_status: Optional[str] = None
    derived_status_code: Optional[str] = None
    exception_code: Optional[str] = None
    exception_description: Optional[str] = None
    scan_location: Optional[FedexScanLocation] = None


class FedexAncillaryDetail(CarrierPayload):
    reason: Optional[str] = None
    reason_description: Optional[str] = None
    action: Optional[str] = None
    action_description: Optional[str] = None


class FedexStatusDetail(CarrierPayload):
    code: Optional[str] = None
    derived_code: Optional[str] = None
    status_by_locale: Optional[str] = None
    description: Optional[str] = None
    scan_location: Optional[FedexAddress] = None
    ancillary_details: Optional[list[FedexAncillaryDetail]] = None


class FedexWindow(CarrierPayload):
    begins: Optional[str] = None
    ends: Optional[str] = None


class FedexTimeWindow(CarrierPayload):
    type: Optional[str] = None
    window: Optional[FedexWindow] = None


class FedexDateAndTime(CarrierPayload):
    type: Optional[str] = None
    date_time: Optional[str] = None


class FedexDelayDetail(CarrierPayload):
    type: Optional[str] = None
    sub_type: Optional[str] = None
    status: Optional[str] = None  # ON_TIME, EARLY, DELAYED, ...


class FedexTrackError(CarrierPayload):
    code: Optional[str] = None
    message: Optional[str] = None


class FedexTrackResult(CarrierPayload):
    latest_status_detail: Optional[FedexStatusDetail] = None
    scan_events: Optional[list[FedexScanEvent]] = None
    date_and_times: Optional[list[FedexDateAndTime]] = None
    estimated_delivery_time_window: Optional[FedexTimeWindow] = None
    standard_transit_time_window: Optional[FedexTimeWindow] = None
    delay_detail: Optional[FedexDelayDetail] = None
    error: Optional[FedexTrackError] = None


class FedexCompleteTrackResult(CarrierPayload):
    tracking_number: Optional[str] = None
    track_results: Optional[list[FedexTrackResult]] = None


class FedexOutput(CarrierPayload):
    complete_track_results: Optional[list[FedexCompleteTrackResult]] = None


class FedexAlert(CarrierPayload):
    code: Optional[str] = None
    alert_type: Optional[str] = None
    message: Optional[str] = None


class FedexTrackingResponse(CarrierPayload):
    """Top-level body of POST /track/v1/trackingnumbers."""

    transaction_id: Optional[str] = None
    output: Optional[FedexOutput] = None
    alerts: Optional[list[FedexAlert]] = None
