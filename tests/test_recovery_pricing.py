"""
Tests for restore cost estimation.
"""

import pytest

from exceptions import PreconditionError
from recovery.pricing import (
    BYTES_PER_GB,
    RestoreCostEstimator,
    RestoreTier,
    estimate_cost,
)


class TestRestoreTier:
    """Test tier parsing."""

    @pytest.mark.parametrize("name", ["bulk", "Bulk", " BULK "])
    def test_from_name(self, name: str) -> None:
        assert RestoreTier.from_name(name) is RestoreTier.BULK

    def test_unknown_tier(self) -> None:
        with pytest.raises(PreconditionError, match="expected one of"):
            RestoreTier.from_name("overnight")


class TestRestoreCostEstimator:
    """Test cost and availability per tier."""

    @pytest.fixture
    def estimator(self) -> RestoreCostEstimator:
        return RestoreCostEstimator()

    def test_cost_per_gb(self, estimator: RestoreCostEstimator) -> None:
        assert estimator.estimate_cost(BYTES_PER_GB, RestoreTier.EXPEDITED) == pytest.approx(0.10)
        assert estimator.estimate_cost(BYTES_PER_GB, RestoreTier.STANDARD) == pytest.approx(0.02)
        assert estimator.estimate_cost(BYTES_PER_GB, RestoreTier.BULK) == pytest.approx(0.0025)

    def test_cost_is_proportional(self, estimator: RestoreCostEstimator) -> None:
        assert estimator.estimate_cost(10 * BYTES_PER_GB, RestoreTier.STANDARD) == pytest.approx(0.2)
        assert estimator.estimate_cost(BYTES_PER_GB // 2, RestoreTier.BULK) == pytest.approx(0.00125)
        assert estimator.estimate_cost(0, RestoreTier.EXPEDITED) == 0

    def test_estimate_all_tiers(self, estimator: RestoreCostEstimator) -> None:
        costs = estimator.estimate_all_tiers(5 * BYTES_PER_GB)

        assert costs == pytest.approx({"Expedited": 0.5, "Standard": 0.1, "Bulk": 0.0125})

    def test_module_shortcut(self) -> None:
        assert estimate_cost(2 * BYTES_PER_GB, RestoreTier.STANDARD) == pytest.approx(0.04)

    def test_deep_archive_has_no_expedited(self, estimator: RestoreCostEstimator) -> None:
        assert estimator.is_supported("GLACIER", RestoreTier.EXPEDITED)
        assert not estimator.is_supported("DEEP_ARCHIVE", RestoreTier.EXPEDITED)
        assert estimator.is_supported("DEEP_ARCHIVE", RestoreTier.BULK)
        assert estimator.retrieval_time("DEEP_ARCHIVE", RestoreTier.EXPEDITED) is None
        assert estimator.retrieval_time("GLACIER", RestoreTier.STANDARD) == "3-5 hours"

    def test_check_supported(self, estimator: RestoreCostEstimator) -> None:
        estimator.check_supported(["GLACIER", "STANDARD"], RestoreTier.EXPEDITED)

        with pytest.raises(PreconditionError, match="DEEP_ARCHIVE"):
            estimator.check_supported(["GLACIER", "DEEP_ARCHIVE"], RestoreTier.EXPEDITED)
