"""
pytest configuration and shared fixtures.

Loads environment variables from .env file for all tests and provides
merchant/shipment factories used across the service and worker tests.
"""

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from delayguard.models.merchant import BillingStatus, Merchant, PlanTier
from delayguard.models.shipment import Carrier, Shipment


def pytest_configure(config):
    """Load .env file before running tests"""
    project_root = Path(__file__).parent.parent
    env_file = project_root / ".env"

    if env_file.exists():
        print(f"Loading environment from {env_file}")
        load_dotenv(env_file)
    else:
        print(f"Warning: .env file not found at {env_file}")


def _utc(year, month, day, hour=0, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def merchant() -> Merchant:
    """Active starter merchant installed on 2026-01-01."""
    return Merchant(
        id="merchant-1",
        shop_domain="teststore.example.com",
        plan_tier=PlanTier.STARTER,
        billing_status=BillingStatus.ACTIVE,
        installed_at=_utc(2026, 1, 1),
        random_poll_offset=0,
    )


@pytest.fixture
def make_shipment():
    """Factory for UPS Ground shipments shipped Monday 2026-02-02."""

    def _make(**overrides) -> Shipment:
        fields = {
            "id": "shipment-1",
            "merchant_id": "merchant-1",
            "order_number": "#1001",
            "tracking_number": "1Z999AA10123456784",
            "carrier": Carrier.UPS,
            "service_level": "Ground",
            "ship_date": _utc(2026, 2, 2, 15),
            "created_at": _utc(2026, 2, 2, 15),
        }
        fields.update(overrides)
        return Shipment(**fields)

    return _make


@pytest.fixture
def mock_uow() -> MagicMock:
    """Unit of work mock usable as a context manager."""
    uow = MagicMock()
    uow.__enter__.return_value = uow
    uow.__exit__.return_value = False
    return uow


@pytest.fixture
def uow_factory(mock_uow: MagicMock) -> MagicMock:
    """Factory returning the same mock unit of work on every call."""
    return MagicMock(return_value=mock_uow)
