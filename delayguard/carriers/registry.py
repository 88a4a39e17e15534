"""
Carrier registry: the dispatch point from a Carrier value to its adapter.
"""

import logging

from delayguard import config
from delayguard.carriers.base import (
    CarrierAdapter,
    HttpSession,
    ThreadLocalSession,
    carrier_error,
)
from delayguard.carriers.fedex import FedexAdapter
from delayguard.carriers.token_cache import CredentialCache
from delayguard.carriers.ups import UpsAdapter
from delayguard.carriers.usps import UspsAdapter
from delayguard.models.shipment import Carrier
from delayguard.models.tracking import CarrierError, CarrierErrorCode, TrackingResult

logger = logging.getLogger(__name__)


class CarrierRegistry:
    """Holds one adapter per supported carrier."""

    def __init__(self, adapters: list[CarrierAdapter] | None = None):
        self._adapters: dict[Carrier, CarrierAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: CarrierAdapter) -> None:
        if not isinstance(adapter, CarrierAdapter):
            raise TypeError(f"{adapter!r} does not implement CarrierAdapter")
        self._adapters[adapter.carrier] = adapter

    def get(self, carrier: Carrier) -> CarrierAdapter | None:
        return self._adapters.get(carrier)

    @property
    def carriers(self) -> list[Carrier]:
        return list(self._adapters)

    def track_shipment(
        self, carrier: Carrier, tracking_number: str
    ) -> TrackingResult | CarrierError:
        """Look up one tracking number with the adapter for its carrier."""
        adapter = self.get(carrier)
        if adapter is None:
            return carrier_error(
                CarrierErrorCode.INVALID_TRACKING_NUMBER,
                f"Unsupported carrier: {carrier}",
                False,
            )

        result = adapter.track(tracking_number)
        if isinstance(result, CarrierError):
            logger.info(
                "Carrier lookup failed for %s %s: %s",
                carrier,
                tracking_number,
                result,
                extra={
                    "json_fields": {
                        "carrier": str(carrier),
                        "tracking_number": tracking_number,
                        "error_code": str(result.code),
                        "retryable": result.retryable,
                    }
                },
            )
        return result


def build_default_registry(
    token_cache: CredentialCache,
    session: HttpSession | None = None,
    timeout: float = config.CARRIER_REQUEST_TIMEOUT_SECONDS,
) -> CarrierRegistry:
    """Build UPS, FedEx and USPS adapters from environment configuration."""
    session = session or ThreadLocalSession()
    return CarrierRegistry(
        [
            UpsAdapter(
                config.UPS_CLIENT_ID,
                config.UPS_CLIENT_SECRET,
                token_cache,
                session=session,
                timeout=timeout,
            ),
            FedexAdapter(
                config.FEDEX_CLIENT_ID,
                config.FEDEX_CLIENT_SECRET,
                token_cache,
                session=session,
                timeout=timeout,
            ),
            UspsAdapter(config.USPS_USER_ID, session=session, timeout=timeout),
        ]
    )
