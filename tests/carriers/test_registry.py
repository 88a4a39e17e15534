"""Tests for the carrier registry."""

from unittest.mock import MagicMock, patch

import pytest

from delayguard.carriers.base import ThreadLocalSession
from delayguard.carriers.fedex import FedexAdapter
from delayguard.carriers.registry import CarrierRegistry, build_default_registry
from delayguard.carriers.token_cache import CredentialCache, InMemoryTokenStore
from delayguard.carriers.ups import UpsAdapter
from delayguard.carriers.usps import UspsAdapter
from delayguard.models.shipment import Carrier
from delayguard.models.tracking import CarrierError, CarrierErrorCode, TrackingResult


def _fake_adapter(carrier: Carrier, result) -> MagicMock:
    adapter = MagicMock(spec=["carrier", "track", "tracking_url"])
    adapter.carrier = carrier
    adapter.track.return_value = result
    return adapter


class TestCarrierRegistry:
    def test_dispatches_to_carrier_adapter(self):
        result = TrackingResult(
            tracking_number="1Z", carrier=Carrier.UPS, current_status="In Transit"
        )
        ups = _fake_adapter(Carrier.UPS, result)
        registry = CarrierRegistry([ups])

        assert registry.track_shipment(Carrier.UPS, "1Z") == result
        ups.track.assert_called_once_with("1Z")

    def test_unsupported_carrier(self):
        registry = CarrierRegistry()

        result = registry.track_shipment(Carrier.UNKNOWN, "ABC")

        assert isinstance(result, CarrierError)
        assert result.code == CarrierErrorCode.INVALID_TRACKING_NUMBER
        assert not result.retryable

    def test_adapter_errors_are_returned(self):
        error = CarrierError(
            code=CarrierErrorCode.RATE_LIMITED, message="slow down", retryable=True
        )
        registry = CarrierRegistry([_fake_adapter(Carrier.FEDEX, error)])

        assert registry.track_shipment(Carrier.FEDEX, "123") == error

    def test_register_rejects_non_adapter(self):
        with pytest.raises(TypeError):
            CarrierRegistry().register(object())

    def test_later_registration_replaces_adapter(self):
        first = _fake_adapter(Carrier.USPS, None)
        second = _fake_adapter(Carrier.USPS, None)

        registry = CarrierRegistry([first, second])

        assert registry.get(Carrier.USPS) is second
        assert registry.carriers == [Carrier.USPS]


class TestBuildDefaultRegistry:
    @patch("delayguard.carriers.registry.config")
    def test_builds_all_carriers(self, mock_config):
        mock_config.UPS_CLIENT_ID = "ups-id"
        mock_config.UPS_CLIENT_SECRET = "ups-secret"
        mock_config.FEDEX_CLIENT_ID = "fedex-id"
        mock_config.FEDEX_CLIENT_SECRET = "fedex-secret"
        mock_config.USPS_USER_ID = "usps-user"
        session = MagicMock()

        registry = build_default_registry(
            CredentialCache(InMemoryTokenStore()), session=session, timeout=5
        )

        assert set(registry.carriers) == {Carrier.UPS, Carrier.FEDEX, Carrier.USPS}
        assert isinstance(registry.get(Carrier.UPS), UpsAdapter)
        assert isinstance(registry.get(Carrier.FEDEX), FedexAdapter)
        assert isinstance(registry.get(Carrier.USPS), UspsAdapter)
        assert registry.get(Carrier.UPS).client_id == "ups-id"
        assert registry.get(Carrier.USPS).session is session
        assert registry.get(Carrier.FEDEX).timeout == 5

    @patch("delayguard.carriers.registry.config")
    def test_default_session_is_per_thread(self, mock_config):
        registry = build_default_registry(CredentialCache(InMemoryTokenStore()))

        session = registry.get(Carrier.UPS).session
        assert isinstance(session, ThreadLocalSession)
        assert registry.get(Carrier.FEDEX).session is session
        assert registry.get(Carrier.USPS).session is session
