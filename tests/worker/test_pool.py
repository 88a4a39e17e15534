"""Tests for the in-process poll pool."""

from unittest.mock import MagicMock

import pytest

from delayguard.exceptions import RetryablePollError
from delayguard.models.task import CarrierPollResult
from delayguard.models.tracking import CarrierErrorCode
from delayguard.worker.pool import run_polls


def _poll(shipment_id: str) -> CarrierPollResult:
    if shipment_id == "flaky":
        raise RetryablePollError(CarrierErrorCode.NETWORK_ERROR, "UPS request timed out")
    if shipment_id == "broken":
        raise RuntimeError("database unavailable")
    return CarrierPollResult(shipment_id=shipment_id, success=True)


@pytest.fixture
def orchestrator() -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.poll.side_effect = _poll
    return orchestrator


class TestRunPolls:
    def test_results_follow_input_order(self, orchestrator):
        ids = [f"s{i}" for i in range(10)]

        results = run_polls(orchestrator, ids, max_workers=4)

        assert [result.shipment_id for result in results] == ids
        assert all(result.success for result in results)
        assert orchestrator.poll.call_count == 10

    def test_retryable_error_becomes_failed_result(self, orchestrator):
        results = run_polls(orchestrator, ["s1", "flaky"], max_workers=2)

        assert results[0].success
        assert not results[1].success
        assert results[1].error == "NETWORK_ERROR: UPS request timed out"

    def test_unexpected_error_propagates(self, orchestrator):
        with pytest.raises(RuntimeError, match="database unavailable"):
            run_polls(orchestrator, ["s1", "broken"], max_workers=2)

    def test_empty_input(self, orchestrator):
        assert run_polls(orchestrator, []) == []
        orchestrator.poll.assert_not_called()
