"""Tests for the FedEx carrier adapter."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from delayguard.carriers.fedex import FEDEX_TRACK_URL, FedexAdapter
from delayguard.carriers.token_cache import CredentialCache, InMemoryTokenStore
from delayguard.models.shipment import Carrier
from delayguard.models.tracking import CarrierError, CarrierErrorCode, TrackingResult

UTC = timezone.utc
TRACKING_NUMBER = "123456789012"


def _response(status_code: int = 200, body=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    response.json.return_value = body
    return response


def _track_body(track_result: dict) -> dict:
    return {
        "transactionId": "txn-1",
        "output": {
            "completeTrackResults": [
                {"trackingNumber": TRACKING_NUMBER, "trackResults": [track_result]}
            ]
        },
    }


def _scan(date: str, event_type: str, description: str, city: str | None = None):
    scan = {"date": date, "eventType": event_type, "eventDescription": description}
    if city:
        scan["scanLocation"] = {
            "address": {"city": city, "stateOrProvinceCode": "TN", "countryCode": "US"}
        }
    return scan


IN_TRANSIT_RESULT = {
    "latestStatusDetail": {
        "code": "IT",
        "statusByLocale": "In transit",
        "description": "In transit",
    },
    "scanEvents": [
        _scan("2026-02-03T09:10:00-06:00", "AR", "Arrived at FedEx location", "Memphis"),
        _scan("2026-02-04T02:30:00-06:00", "DP", "Departed FedEx location", "Memphis"),
    ],
    "estimatedDeliveryTimeWindow": {
        "window": {"begins": "2026-02-09T08:00:00", "ends": "2026-02-09T20:00:00"}
    },
}


@pytest.fixture
def session() -> MagicMock:
    session = MagicMock()
    token = _response(body={"access_token": "fedex-token", "expires_in": 3599})
    session.post.side_effect = lambda url, **kwargs: (
        token if url.endswith("/oauth/token") else session.track_response
    )
    return session


@pytest.fixture
def adapter(session: MagicMock) -> FedexAdapter:
    return FedexAdapter(
        "client-id",
        "client-secret",
        CredentialCache(InMemoryTokenStore()),
        session=session,
    )


class TestFedexTrack:
    def test_in_transit(self, adapter, session):
        session.track_response = _response(body=_track_body(IN_TRANSIT_RESULT))

        result = adapter.track(TRACKING_NUMBER)

        assert isinstance(result, TrackingResult)
        assert result.carrier == Carrier.FEDEX
        assert result.current_status == "In transit"
        assert not result.is_delivered
        assert not result.is_exception
        assert result.expected_delivery_date == datetime(2026, 2, 9, 20, tzinfo=UTC)
        assert [event.type for event in result.events] == ["DP", "AR"]
        assert result.last_scan_time == datetime(2026, 2, 4, 8, 30, tzinfo=UTC)
        assert result.last_scan_location == "Memphis, TN, US"

    def test_track_request(self, adapter, session):
        session.track_response = _response(body=_track_body(IN_TRANSIT_RESULT))

        adapter.track(TRACKING_NUMBER)

        track_call = session.post.call_args_list[-1]
        assert track_call.args[0] == FEDEX_TRACK_URL
        assert track_call.kwargs["headers"]["Authorization"] == "Bearer fedex-token"
        assert track_call.kwargs["json"]["trackingInfo"] == [
            {"trackingNumberInfo": {"trackingNumber": TRACKING_NUMBER}}
        ]

    def test_token_request_uses_form_credentials(self, adapter, session):
        session.track_response = _response(body=_track_body(IN_TRANSIT_RESULT))

        adapter.track(TRACKING_NUMBER)

        token_call = session.post.call_args_list[0]
        assert token_call.kwargs["data"] == {
            "grant_type": "client_credentials",
            "client_id": "client-id",
            "client_secret": "client-secret",
        }

    def test_expected_delivery_from_date_and_times(self, adapter, session):
        result_body = {
            "latestStatusDetail": {"code": "IT", "description": "In transit"},
            "dateAndTimes": [
                {"type": "SHIP", "dateTime": "2026-02-02T10:00:00Z"},
                {"type": "ESTIMATED_DELIVERY", "dateTime": "2026-02-10T00:00:00Z"},
            ],
        }
        session.track_response = _response(body=_track_body(result_body))

        result = adapter.track(TRACKING_NUMBER)

        assert result.expected_delivery_date == datetime(2026, 2, 10, tzinfo=UTC)

    def test_delivered(self, adapter, session):
        result_body = {
            "latestStatusDetail": {"code": "DL", "statusByLocale": "Delivered"},
            "dateAndTimes": [
                {"type": "ACTUAL_DELIVERY", "dateTime": "2026-02-06T15:45:00Z"}
            ],
            "scanEvents": [_scan("2026-02-06T15:45:00Z", "DL", "Delivered")],
        }
        session.track_response = _response(body=_track_body(result_body))

        result = adapter.track(TRACKING_NUMBER)

        assert result.is_delivered
        assert result.delivered_at == datetime(2026, 2, 6, 15, 45, tzinfo=UTC)

    def test_delivered_at_falls_back_to_scan(self, adapter, session):
        result_body = {
            "latestStatusDetail": {"code": "DL", "statusByLocale": "Delivered"},
            "scanEvents": [_scan("2026-02-06T15:45:00Z", "DL", "Delivered")],
        }
        session.track_response = _response(body=_track_body(result_body))

        result = adapter.track(TRACKING_NUMBER)

        assert result.delivered_at == datetime(2026, 2, 6, 15, 45, tzinfo=UTC)

    def test_exception_from_status_keyword(self, adapter, session):
        result_body = {
            "latestStatusDetail": {
                "code": "DY",
                "statusByLocale": "Delivery exception",
                "ancillaryDetails": [
                    {
                        "reason": "08",
                        "reasonDescription": "Recipient not available",
                    }
                ],
            },
        }
        session.track_response = _response(body=_track_body(result_body))

        result = adapter.track(TRACKING_NUMBER)

        assert result.is_exception
        assert result.exception_code == "08"
        assert result.exception_reason == "Recipient not available"

    def test_exception_from_delay_detail(self, adapter, session):
        result_body = {
            "latestStatusDetail": {"code": "IT", "statusByLocale": "In transit"},
            "delayDetail": {"type": "WEATHER", "status": "DELAYED"},
            "dateAndTimes": [
                {"type": "APPOINTMENT_DELIVERY", "dateTime": "2026-02-12T00:00:00Z"}
            ],
        }
        session.track_response = _response(body=_track_body(result_body))

        result = adapter.track(TRACKING_NUMBER)

        assert result.is_exception
        assert result.exception_code == "WEATHER"
        assert result.exception_reason == "DELAYED"
        assert result.rescheduled_delivery_date == datetime(2026, 2, 12, tzinfo=UTC)

    def test_on_time_delay_detail_is_not_exception(self, adapter, session):
        result_body = {
            "latestStatusDetail": {"code": "IT", "statusByLocale": "In transit"},
            "delayDetail": {"status": "ON_TIME"},
            "dateAndTimes": [
                {"type": "APPOINTMENT_DELIVERY", "dateTime": "2026-02-12T00:00:00Z"}
            ],
        }
        session.track_response = _response(body=_track_body(result_body))

        result = adapter.track(TRACKING_NUMBER)

        assert not result.is_exception
        assert result.rescheduled_delivery_date is None

    def test_exception_without_details_uses_status_text(self, adapter, session):
        result_body = {
            "latestStatusDetail": {"code": "SE", "statusByLocale": "Shipment exception"}
        }
        session.track_response = _response(body=_track_body(result_body))

        result = adapter.track(TRACKING_NUMBER)

        assert result.is_exception
        assert result.exception_code is None
        assert result.exception_reason == "Shipment exception"


class TestFedexErrors:
    def test_not_found_alert(self, adapter, session):
        body = {
            "alerts": [
                {
                    "code": "TRACKING.TRACKINGNUMBER.NOTFOUND",
                    "alertType": "WARNING",
                    "message": "Tracking number cannot be found",
                }
            ]
        }
        session.track_response = _response(body=body)

        result = adapter.track(TRACKING_NUMBER)

        assert isinstance(result, CarrierError)
        assert result.code == CarrierErrorCode.TRACKING_NOT_FOUND
        assert result.message == "Tracking number cannot be found"

    def test_result_level_error(self, adapter, session):
        body = _track_body(
            {"error": {"code": "TRACKING.TRACKINGNUMBER.NOTFOUND", "message": "Not found"}}
        )
        session.track_response = _response(body=body)

        result = adapter.track(TRACKING_NUMBER)

        assert result.code == CarrierErrorCode.TRACKING_NOT_FOUND

    def test_empty_output(self, adapter, session):
        session.track_response = _response(body={"output": {}})

        result = adapter.track(TRACKING_NUMBER)

        assert result.code == CarrierErrorCode.TRACKING_NOT_FOUND

    def test_unauthorized_evicts_token(self, adapter, session):
        session.track_response = _response(401)

        result = adapter.track(TRACKING_NUMBER)

        assert result.code == CarrierErrorCode.AUTH_FAILED
        assert adapter.token_cache.store.get(Carrier.FEDEX) is None

    def test_server_error_is_retryable(self, adapter, session):
        session.track_response = _response(502, text="Bad Gateway")

        result = adapter.track(TRACKING_NUMBER)

        assert result.code == CarrierErrorCode.API_ERROR
        assert result.retryable

    def test_invalid_json(self, adapter, session):
        session.track_response = _response(text="<html>")
        session.track_response.json.side_effect = ValueError("not json")

        result = adapter.track(TRACKING_NUMBER)

        assert result.code == CarrierErrorCode.PARSE_ERROR
