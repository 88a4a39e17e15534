"""
Tests for the delay detection engine.

Most cases use a UPS Ground shipment shipped Monday 2026-02-02, whose
default expected delivery is Monday 2026-02-09 (5 business days).
"""

from datetime import datetime, timezone

import pytest

from delayguard.models.merchant import MerchantSettings
from delayguard.models.shipment import Carrier, DelayReason, DeliverySource
from delayguard.models.tracking import TrackingResult
from delayguard.services.delay_detection import (
    DelayEvaluation,
    WindowSource,
    evaluate_delay,
    get_carrier_service_levels,
    get_delay_update_fields,
    get_delivery_window,
    get_service_level_label,
)

UTC = timezone.utc
EXPECTED = datetime(2026, 2, 9, tzinfo=UTC)
THURSDAY = datetime(2026, 2, 5, 12, 0, tzinfo=UTC)
TUESDAY_EVENING = datetime(2026, 2, 10, 20, 0, tzinfo=UTC)


@pytest.fixture
def settings() -> MerchantSettings:
    return MerchantSettings()


def _result(**overrides) -> TrackingResult:
    fields = {
        "tracking_number": "1Z999AA10123456784",
        "carrier": Carrier.UPS,
        "current_status": "In Transit",
    }
    fields.update(overrides)
    return TrackingResult(**fields)


class TestGetDeliveryWindow:
    def test_carrier_service_level(self):
        assert get_delivery_window("Ground", Carrier.UPS) == (
            5,
            WindowSource.SERVICE_LEVEL,
        )

    def test_express_service_level(self):
        assert get_delivery_window("Next Day Air", Carrier.UPS) == (
            1,
            WindowSource.SERVICE_LEVEL,
        )

    def test_generic_service_level(self):
        assert get_delivery_window("Standard", Carrier.USPS) == (
            5,
            WindowSource.GENERIC_SERVICE_LEVEL,
        )

    def test_unknown_service_level_uses_carrier_default(self):
        assert get_delivery_window("Mystery Service", Carrier.FEDEX) == (
            5,
            WindowSource.CARRIER_DEFAULT,
        )

    def test_missing_service_level_uses_carrier_default(self):
        assert get_delivery_window(None, Carrier.USPS) == (
            7,
            WindowSource.CARRIER_DEFAULT,
        )

    def test_unknown_carrier_uses_universal_default(self):
        assert get_delivery_window(None, Carrier.UNKNOWN) == (
            7,
            WindowSource.UNIVERSAL_DEFAULT,
        )

    def test_override_by_normalized_key(self):
        assert get_delivery_window("Ground", Carrier.UPS, {"ups_ground": 3}) == (
            3,
            WindowSource.MERCHANT_OVERRIDE,
        )

    def test_override_by_raw_service_level(self):
        assert get_delivery_window("Ground", Carrier.UPS, {"Ground": 2}) == (
            2,
            WindowSource.MERCHANT_OVERRIDE,
        )

    def test_override_by_generic_key(self):
        assert get_delivery_window("Ground", Carrier.UPS, {"ground": 4}) == (
            4,
            WindowSource.MERCHANT_OVERRIDE,
        )


class TestEvaluateDelay:
    def test_on_time_before_expected(self, make_shipment, settings):
        evaluation = evaluate_delay(make_shipment(), _result(), settings, THURSDAY)

        assert not evaluation.is_delayed
        assert evaluation.delay_reason is None
        assert evaluation.expected_delivery_date == EXPECTED
        assert evaluation.expected_delivery_source == DeliverySource.DEFAULT

    def test_delayed_past_deadline(self, make_shipment, settings):
        evaluation = evaluate_delay(
            make_shipment(), _result(), settings, TUESDAY_EVENING
        )

        assert evaluation.is_delayed
        assert evaluation.delay_reason == DelayReason.PAST_EXPECTED_DELIVERY
        assert evaluation.days_delayed == 1

    def test_grace_period_boundary(self, make_shipment, settings):
        """Deadline is end of the expected day plus 8 grace hours."""
        shipment = make_shipment()

        just_before = datetime(2026, 2, 10, 7, 59, 59, tzinfo=UTC)
        just_after = datetime(2026, 2, 10, 8, 0, 0, tzinfo=UTC)

        assert not evaluate_delay(shipment, _result(), settings, just_before).is_delayed
        assert evaluate_delay(shipment, _result(), settings, just_after).is_delayed

    def test_zero_grace_hours(self, make_shipment):
        settings = MerchantSettings(delay_threshold_hours=0)
        now = datetime(2026, 2, 10, 0, 0, 1, tzinfo=UTC)

        assert evaluate_delay(make_shipment(), _result(), settings, now).is_delayed

    def test_carrier_date_takes_precedence(self, make_shipment, settings):
        carrier_date = datetime(2026, 2, 12, tzinfo=UTC)

        evaluation = evaluate_delay(
            make_shipment(),
            _result(expected_delivery_date=carrier_date),
            settings,
            TUESDAY_EVENING,
        )

        assert not evaluation.is_delayed
        assert evaluation.expected_delivery_date == carrier_date
        assert evaluation.expected_delivery_source == DeliverySource.CARRIER

    def test_merchant_override_is_kept(self, make_shipment, settings):
        shipment = make_shipment(
            expected_delivery_date=datetime(2026, 2, 6, tzinfo=UTC),
            expected_delivery_source=DeliverySource.MERCHANT_OVERRIDE,
        )
        now = datetime(2026, 2, 9, 12, 0, tzinfo=UTC)

        evaluation = evaluate_delay(shipment, _result(), settings, now)

        assert evaluation.is_delayed
        assert evaluation.days_delayed == 3
        assert evaluation.expected_delivery_source == DeliverySource.MERCHANT_OVERRIDE

    def test_stored_default_date_is_recalculated(self, make_shipment, settings):
        shipment = make_shipment(
            expected_delivery_date=datetime(2026, 2, 20, tzinfo=UTC),
            expected_delivery_source=DeliverySource.DEFAULT,
        )

        evaluation = evaluate_delay(shipment, _result(), settings, THURSDAY)

        assert evaluation.expected_delivery_date == EXPECTED

    def test_carrier_exception_is_delayed_immediately(self, make_shipment, settings):
        evaluation = evaluate_delay(
            make_shipment(),
            _result(is_exception=True, exception_reason="Weather"),
            settings,
            THURSDAY,
        )

        assert evaluation.is_delayed
        assert evaluation.delay_reason == DelayReason.CARRIER_EXCEPTION
        assert evaluation.days_delayed == 0

    def test_reschedule_moves_deadline(self, make_shipment, settings):
        evaluation = evaluate_delay(
            make_shipment(),
            _result(rescheduled_delivery_date=datetime(2026, 2, 12, tzinfo=UTC)),
            settings,
            TUESDAY_EVENING,
        )

        assert not evaluation.is_delayed
        assert evaluation.expected_delivery_date == EXPECTED

    def test_earlier_reschedule_is_ignored(self, make_shipment, settings):
        evaluation = evaluate_delay(
            make_shipment(),
            _result(rescheduled_delivery_date=datetime(2026, 2, 6, tzinfo=UTC)),
            settings,
            TUESDAY_EVENING,
        )

        assert evaluation.is_delayed

    def test_delivered_is_never_delayed(self, make_shipment, settings):
        evaluation = evaluate_delay(
            make_shipment(),
            _result(is_delivered=True, is_exception=True),
            settings,
            TUESDAY_EVENING,
        )

        assert not evaluation.is_delayed

    def test_no_dates_at_all(self, make_shipment, settings):
        shipment = make_shipment(ship_date=None, created_at=None)

        evaluation = evaluate_delay(shipment, _result(), settings, TUESDAY_EVENING)

        assert not evaluation.is_delayed
        assert evaluation.expected_delivery_date is None

    def test_carrier_exception_without_any_date(self, make_shipment, settings):
        shipment = make_shipment(ship_date=None, created_at=None)

        evaluation = evaluate_delay(
            shipment,
            _result(is_exception=True, exception_code="X1"),
            settings,
            THURSDAY,
        )

        assert evaluation.is_delayed
        assert evaluation.delay_reason == DelayReason.CARRIER_EXCEPTION
        assert evaluation.days_delayed == 0
        assert evaluation.expected_delivery_date is None

    def test_created_at_used_without_ship_date(self, make_shipment, settings):
        shipment = make_shipment(ship_date=None)

        evaluation = evaluate_delay(shipment, None, settings, THURSDAY)

        assert evaluation.expected_delivery_date == EXPECTED

    def test_merchant_window_override(self, make_shipment):
        settings = MerchantSettings(delivery_windows={"ups_ground": 2})

        evaluation = evaluate_delay(make_shipment(), _result(), settings, THURSDAY)

        assert evaluation.expected_delivery_date == datetime(2026, 2, 4, tzinfo=UTC)
        assert evaluation.is_delayed


class TestGetDelayUpdateFields:
    def _delayed(self) -> DelayEvaluation:
        return DelayEvaluation(
            is_delayed=True,
            delay_reason=DelayReason.PAST_EXPECTED_DELIVERY,
            days_delayed=1,
            expected_delivery_date=EXPECTED,
            expected_delivery_source=DeliverySource.DEFAULT,
        )

    def test_newly_delayed_is_stamped(self):
        fields = get_delay_update_fields(self._delayed(), False, TUESDAY_EVENING)

        assert fields["is_delayed"] is True
        assert fields["delay_reason"] == DelayReason.PAST_EXPECTED_DELIVERY
        assert fields["days_delayed"] == 1
        assert fields["delay_flagged_at"] == TUESDAY_EVENING
        assert fields["expected_delivery_date"] == EXPECTED

    def test_still_delayed_keeps_original_stamp(self):
        fields = get_delay_update_fields(self._delayed(), True, TUESDAY_EVENING)

        assert "delay_flagged_at" not in fields

    def test_back_on_time_clears_flag(self):
        evaluation = DelayEvaluation(is_delayed=False, expected_delivery_date=EXPECTED)

        fields = get_delay_update_fields(evaluation, True, THURSDAY)

        assert fields["is_delayed"] is False
        assert fields["delay_reason"] is None
        assert fields["delay_flagged_at"] is None

    def test_no_expected_date_leaves_it_untouched(self):
        fields = get_delay_update_fields(
            DelayEvaluation(is_delayed=False), False, THURSDAY
        )

        assert "expected_delivery_date" not in fields


class TestServiceLevelHelpers:
    def test_carrier_service_levels(self):
        levels = get_carrier_service_levels(Carrier.UPS)

        assert "ups_ground" in levels
        assert all(level.startswith("ups_") for level in levels)

    def test_service_level_label(self):
        assert get_service_level_label("ups_2nd_day_air") == "Ups 2nd Day Air"
