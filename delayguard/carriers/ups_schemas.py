"""
UPS Track API v1 response schemas.

See https://developer.ups.com/api/reference/tracking
"""

from typing import Optional

from delayguard.carriers.base import CarrierPayload


class UpsAddress(CarrierPayload):
    city: Optional[str] = None
    state_province: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    scheduled_delivery_date: Optional[str] = None


class UpsLocation(CarrierPayload):
    address: Optional[UpsAddress] = None


class UpsStatus(CarrierPayload):
    type: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    status_code: Optional[str] = None


class UpsActivity(CarrierPayload):
    """One tracking activity (scan)."""

    date: Optional[str] = None  # YYYYMMDD
    time: Optional[str] = None  # HHMMSS
    location: Optional[UpsLocation] = None
    status: Optional[UpsStatus] = None


class UpsDeliveryDate(CarrierPayload):
    type: Optional[str] = None
    date: Optional[str] = None


class UpsDeliveryTime(CarrierPayload):
    type: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class UpsPackageAddress(CarrierPayload):
    type: Optional[str] = None
    address: Optional[UpsAddress] = None


class UpsService(CarrierPayload):
    code: Optional[str] = None
    description: Optional[str] = None


class UpsPackage(CarrierPayload):
    tracking_number: Optional[str] = None
    delivery_date: Optional[list[UpsDeliveryDate]] = None
    delivery_time: Optional[UpsDeliveryTime] = None
    activity: Optional[list[UpsActivity]] = None
    current_status: Optional[UpsActivity] = None
    package_address: Optional[list[UpsPackageAddress]] = None
    service: Optional[UpsService] = None
    package_count: Optional[int] = None


class UpsWarning(CarrierPayload):
    code: Optional[str] = None
    message: Optional[str] = None


class UpsShipment(CarrierPayload):
    inquiry_number: Optional[str] = None
    package: Optional[list[UpsPackage]] = None
    service: Optional[UpsService] = None
    pickup_date: Optional[str] = None
    warnings: Optional[list[UpsWarning]] = None


class UpsTrackResponse(CarrierPayload):
    shipment: Optional[list[UpsShipment]] = None


class UpsTrackingResponse(CarrierPayload):
    """Top-level body of GET /api/track/v1/details/{inquiryNumber}."""

    track_response: Optional[UpsTrackResponse] = None
