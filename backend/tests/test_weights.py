"""Tests for the weight ledger's pure checks and mutations."""

import pytest

from growledger.middleware.exceptions import (
    InsufficientAvailableWeight,
    InvalidWeight,
    LedgerValidationError,
)
from growledger.models.harvest import Harvest
from growledger.services import weights

pytestmark = pytest.mark.unit


def make_harvest(**kwargs) -> Harvest:
    values = {
        "control_number": "H-MT-2025-00001",
        "wet_weight_grams": 100.0,
        "dry_weight_grams": None,
        "final_weight_grams": None,
        "distributed_grams": 0.0,
        "extracted_grams": 0.0,
        "status": "fresh",
    }
    values.update(kwargs)
    return Harvest(**values)


class TestBestAvailable:
    def test_prefers_most_refined_weight(self):
        assert weights.best_available_weight(make_harvest()) == 100.0
        assert weights.best_available_weight(make_harvest(dry_weight_grams=80.0)) == 80.0
        assert weights.best_available_weight(
            make_harvest(dry_weight_grams=80.0, final_weight_grams=60.0)
        ) == 60.0

    def test_available_subtracts_both_consumers(self):
        harvest = make_harvest(dry_weight_grams=80.0, distributed_grams=20.0, extracted_grams=5.5)
        assert weights.available_weight(harvest) == 54.5


class TestApplyWeight:
    def test_dry_weight_advances_status(self):
        harvest = weights.apply_weight(make_harvest(), "dry", 80)
        assert harvest.dry_weight_grams == 80.0
        assert harvest.status == "drying"

    def test_final_weight_advances_status(self):
        harvest = make_harvest(dry_weight_grams=80.0, status="drying")
        weights.apply_weight(harvest, "final", 60)
        assert harvest.final_weight_grams == 60.0
        assert harvest.status == "curing"

    def test_dry_above_wet_rejected(self):
        with pytest.raises(InvalidWeight) as exc_info:
            weights.apply_weight(make_harvest(), "dry", 120)
        assert "120g" in exc_info.value.message
        assert "100g" in exc_info.value.message

    def test_final_above_dry_rejected(self):
        with pytest.raises(InvalidWeight):
            weights.apply_weight(make_harvest(dry_weight_grams=80.0), "final", 81)

    def test_final_without_dry_is_bounded_by_wet(self):
        harvest = weights.apply_weight(make_harvest(), "final", 70)
        assert harvest.final_weight_grams == 70.0
        assert harvest.status == "fresh"

    @pytest.mark.parametrize("grams", [0, -5])
    def test_non_positive_rejected(self, grams):
        with pytest.raises(InvalidWeight):
            weights.apply_weight(make_harvest(), "dry", grams)

    def test_unknown_stage_rejected(self):
        with pytest.raises(LedgerValidationError) as exc_info:
            weights.apply_weight(make_harvest(), "wet", 50)
        assert exc_info.value.error_code == "INVALID_STAGE"

    def test_cannot_shrink_below_consumption(self):
        harvest = make_harvest(dry_weight_grams=80.0, distributed_grams=50.0, status="drying")
        with pytest.raises(InvalidWeight) as exc_info:
            weights.apply_weight(harvest, "final", 40)
        assert exc_info.value.details["consumed_grams"] == 50.0
        assert harvest.final_weight_grams is None


class TestAllocation:
    def test_allocation_within_available(self):
        harvest = make_harvest(final_weight_grams=18.0)
        weights.apply_allocation(harvest, "distribution", 10)
        weights.apply_allocation(harvest, "extraction", 8)
        assert harvest.distributed_grams == 10.0
        assert harvest.extracted_grams == 8.0
        assert weights.available_weight(harvest) == 0.0

    def test_over_allocation_rejected_with_numbers(self):
        harvest = make_harvest(final_weight_grams=18.0)
        with pytest.raises(InsufficientAvailableWeight) as exc_info:
            weights.apply_allocation(harvest, "distribution", 25)
        error = exc_info.value
        assert error.message == "Cannot distribute 25g from H-MT-2025-00001, only 18g available"
        assert error.requested == 25.0
        assert error.available == 18.0
        assert harvest.distributed_grams == 0.0

    def test_unknown_consumer_kind(self):
        with pytest.raises(LedgerValidationError):
            weights.apply_allocation(make_harvest(), "gift", 1)

    def test_release_returns_grams(self):
        harvest = make_harvest(distributed_grams=30.0)
        weights.apply_release(harvest, "distribution", 12.5)
        assert harvest.distributed_grams == 17.5

    def test_release_clamps_at_zero(self, caplog):
        harvest = make_harvest(extracted_grams=5.0)
        weights.apply_release(harvest, "extraction", 8)
        assert harvest.extracted_grams == 0.0
        assert "only 5.0g recorded" in caplog.text


class TestSplitEvenly:
    def test_shares_sum_to_total(self):
        shares = weights.split_evenly(10, 3)
        assert shares == [3.333, 3.333, 3.334]
        assert round(sum(shares), 3) == 10.0

    def test_single_part(self):
        assert weights.split_evenly(42.5, 1) == [42.5]

    def test_zero_parts_rejected(self):
        with pytest.raises(LedgerValidationError):
            weights.split_evenly(10, 0)

    @pytest.mark.parametrize("total", [0.002, 0.001])
    def test_total_too_small_to_split(self, total):
        with pytest.raises(InvalidWeight, match="too small to split across 3 harvests"):
            weights.split_evenly(total, 3)


class TestApplyStatus:
    def test_change_reported(self):
        harvest = make_harvest(status="curing")
        assert weights.apply_status(harvest, "processed") is True
        assert harvest.status == "processed"

    def test_same_status_is_not_a_change(self):
        harvest = make_harvest(status="curing")
        assert weights.apply_status(harvest, "curing") is False
