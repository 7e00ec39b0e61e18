"""
Tests for VarianceDetector against a real database.

Covers:
- Non-zero variances returned, matches excluded
- Location and variation filters
- Records without ledger history
- Per-record failure isolation
- Cooperative cancellation
"""

from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal

import pytest

from stock_engines.variance import VarianceType
from stock_kernel.domain.cancellation import CancellationToken
from stock_kernel.domain.ledger import StockRecord
from stock_kernel.domain.repositories import MaterializedStockRepository, UnitOfWork
from stock_kernel.exceptions import ReconciliationCancelledError
from stock_services import VarianceDetector
from tests.conftest import BUSINESS_ID


@pytest.fixture
def detector(unit_of_work, deterministic_clock) -> VarianceDetector:
    return VarianceDetector(unit_of_work, deterministic_clock)


@pytest.fixture
def two_locations(seed):
    """
    Location A: widget over by 2, gadget in balance.
    Location B: widget short by 3.
    """
    loc_a = seed.location("A")
    loc_b = seed.location("B")
    widget = seed.product("Widget", "WID-001")
    gadget = seed.product("Gadget", "GAD-001")

    seed.entry(*widget, loc_a, delta="10", balance="10", unit_cost="5")
    seed.stock(*widget, loc_a, "12")
    seed.entry(*gadget, loc_a, delta="4", balance="4", unit_cost="2")
    seed.stock(*gadget, loc_a, "4")
    seed.entry(*widget, loc_b, delta="20", balance="20", unit_cost="5")
    seed.stock(*widget, loc_b, "17")
    return {"a": loc_a, "b": loc_b, "widget": widget, "gadget": gadget}


class TestDetect:

    def test_returns_only_non_zero_variances(self, detector, two_locations):
        result = detector.detect(BUSINESS_ID)

        assert result.records_scanned == 3
        assert len(result.variances) == 2
        assert all(v.variance != 0 for v in result.variances)
        assert result.failures == ()

    def test_variance_values(self, detector, two_locations):
        _, widget_variation = two_locations["widget"]

        result = detector.detect(BUSINESS_ID)
        over = result.find(widget_variation, two_locations["a"])
        short = result.find(widget_variation, two_locations["b"])

        assert over.variance == Decimal("2")
        assert over.variance_type == VarianceType.OVERAGE
        assert over.variance_value == Decimal("10")
        assert over.location_name == "A"
        assert short.variance == Decimal("-3")
        assert short.variance_type == VarianceType.SHORTAGE

    def test_location_filter(self, detector, two_locations):
        result = detector.detect(BUSINESS_ID, location_id=two_locations["b"])

        assert result.records_scanned == 1
        assert [v.location_id for v in result.variances] == [two_locations["b"]]

    def test_variation_filter(self, detector, two_locations):
        _, gadget_variation = two_locations["gadget"]

        result = detector.detect(BUSINESS_ID, variation_ids={gadget_variation})

        assert result.records_scanned == 1
        assert result.variances == ()

    def test_other_business_is_invisible(self, detector, two_locations):
        assert detector.detect(BUSINESS_ID + 1).records_scanned == 0

    def test_latest_entry_wins(self, detector, seed):
        loc = seed.location()
        product = seed.product()
        seed.entry(*product, loc, delta="10", balance="10")
        seed.entry(*product, loc, delta="-4", balance="6")
        seed.stock(*product, loc, "6")

        assert detector.detect(BUSINESS_ID).variances == ()

    def test_stock_without_ledger_history(self, detector, seed):
        loc = seed.location()
        product = seed.product(sku=None, variation=None)
        seed.stock(*product, loc, "5")

        (variance,) = detector.detect(BUSINESS_ID).variances

        assert variance.ledger_balance == Decimal("0")
        assert variance.variance == Decimal("5")
        assert variance.product_sku == "N/A"
        assert variance.variation_name == "Default"
        assert variance.metadata.total_transactions == 0
        assert variance.metadata.suspicious_activity is True

    def test_detection_is_logged(self, detector, two_locations, captured_logs):
        detector.detect(BUSINESS_ID)

        completed = [r for r in captured_logs() if r["message"] == "variance_detection_completed"]
        assert completed[0]["records_scanned"] == 3
        assert completed[0]["variance_count"] == 2


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------


class _WithBrokenRecord(MaterializedStockRepository):
    """Real stock records plus one whose quantity cannot be subtracted."""

    def __init__(self, inner: MaterializedStockRepository, broken: StockRecord):
        self._inner = inner
        self._broken = broken

    def list_stock_records(self, business_id, location_id=None, variation_ids=None):
        return [self._broken] + self._inner.list_stock_records(
            business_id, location_id, variation_ids,
        )

    def get_stock_record(self, business_id, variation_id, location_id, for_update=False):
        return self._inner.get_stock_record(business_id, variation_id, location_id, for_update)


class _BrokenRecordUnitOfWork(UnitOfWork):

    def __init__(self, inner: UnitOfWork, broken: StockRecord):
        self._inner = inner
        self._broken = broken

    @contextmanager
    def transaction(self):
        with self._inner.transaction() as repos:
            yield replace(repos, stock=_WithBrokenRecord(repos.stock, self._broken))


class TestFailureIsolation:

    def test_failing_record_is_reported_and_sweep_continues(
        self, unit_of_work, deterministic_clock, two_locations, captured_logs,
    ):
        broken = StockRecord(
            business_id=BUSINESS_ID,
            product_id=999,
            variation_id=999,
            location_id=two_locations["a"],
            quantity=None,
            product_name="Broken",
            product_sku=None,
            variation_name=None,
            location_name="A",
        )
        detector = VarianceDetector(
            _BrokenRecordUnitOfWork(unit_of_work, broken), deterministic_clock,
        )

        result = detector.detect(BUSINESS_ID)

        assert len(result.variances) == 2
        assert len(result.failures) == 1
        assert result.failures[0].variation_id == 999
        assert result.records_scanned == 4
        assert any(
            r["message"] == "variance_detection_record_failed" for r in captured_logs()
        )


class TestCancellation:

    def test_cancelled_token_stops_sweep(self, detector, two_locations):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ReconciliationCancelledError) as exc_info:
            detector.detect(BUSINESS_ID, cancellation=token)

        assert exc_info.value.code == "RECONCILIATION_CANCELLED"
        assert exc_info.value.processed == 0

    def test_uncancelled_token_is_harmless(self, detector, two_locations):
        result = detector.detect(BUSINESS_ID, cancellation=CancellationToken())
        assert len(result.variances) == 2
