"""
Tests for InventoryValuationService over seeded ledger history.

History used by most tests (one variation, one location):
    day 1  purchase  +10 @ 100
    day 2  purchase  +10 @ 110
    day 3  sale       -5
    day 4  purchase  +10 @ 120
    day 5  sale      -10
Materialized quantity 15.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from stock_engines.valuation import CostMethod
from stock_kernel.domain.ledger import MovementType
from stock_kernel.exceptions import UnsupportedValuationMethodError
from stock_services import InventoryValuationService
from tests.conftest import BUSINESS_ID, CLOCK_START

CENT = Decimal("0.01")


@pytest.fixture
def valuation(unit_of_work, deterministic_clock) -> InventoryValuationService:
    return InventoryValuationService(unit_of_work, deterministic_clock)


def _day(n: int):
    return CLOCK_START - timedelta(days=30 - n)


@pytest.fixture
def history(seed):
    loc = seed.location()
    product = seed.product(purchase_price=Decimal("95"))
    seed.entry(*product, loc, "10", "10", unit_cost="100", created_at=_day(1))
    seed.entry(*product, loc, "10", "20", unit_cost="110", created_at=_day(2))
    seed.entry(*product, loc, "-5", "15", MovementType.SALE, created_at=_day(3))
    seed.entry(*product, loc, "10", "25", unit_cost="120", created_at=_day(4))
    seed.entry(*product, loc, "-10", "15", MovementType.SALE, created_at=_day(5))
    seed.stock(*product, loc, "15")
    return {"location": loc, "product": product}


class TestValuate:

    def test_fifo(self, valuation, history):
        _, variation_id = history["product"]

        v = valuation.valuate(BUSINESS_ID, variation_id, history["location"], CostMethod.FIFO)

        assert v.method == CostMethod.FIFO
        assert v.current_quantity == Decimal("15")
        assert v.total_value == Decimal("1750")
        assert v.unit_cost.quantize(CENT) == Decimal("116.67")
        assert [(layer.quantity, layer.unit_cost) for layer in v.cost_layers] == [
            (Decimal("5"), Decimal("110")),
            (Decimal("10"), Decimal("120")),
        ]
        assert v.valuation_date == CLOCK_START

    def test_lifo(self, valuation, history):
        _, variation_id = history["product"]

        v = valuation.valuate(BUSINESS_ID, variation_id, history["location"], "lifo")

        assert v.method == CostMethod.LIFO
        assert v.current_quantity == Decimal("15")
        assert v.total_value == Decimal("1550")

    def test_weighted_average_is_default(self, valuation, history):
        _, variation_id = history["product"]

        v = valuation.valuate(BUSINESS_ID, variation_id, history["location"])

        assert v.method == CostMethod.WEIGHTED_AVG
        assert v.unit_cost == Decimal("110")
        assert v.current_quantity == Decimal("15")
        assert v.total_value == Decimal("1650")

    def test_method_string_is_case_insensitive(self, valuation, history):
        _, variation_id = history["product"]

        v = valuation.valuate(BUSINESS_ID, variation_id, history["location"], "FIFO")

        assert v.method == CostMethod.FIFO

    def test_unsupported_method(self, valuation, history):
        _, variation_id = history["product"]

        with pytest.raises(UnsupportedValuationMethodError) as exc_info:
            valuation.valuate(BUSINESS_ID, variation_id, history["location"], "specific_id")

        assert exc_info.value.code == "UNSUPPORTED_VALUATION_METHOD"
        assert exc_info.value.method == "specific_id"

    def test_corrections_and_adjustments_do_not_create_layers(self, valuation, seed):
        loc = seed.location()
        product = seed.product()
        seed.entry(*product, loc, "4", "4", unit_cost="10", created_at=_day(1))
        seed.entry(*product, loc, "6", "10", MovementType.CORRECTION, unit_cost="999",
                   created_at=_day(2))
        seed.stock(*product, loc, "10")

        v = valuation.valuate(BUSINESS_ID, product[1], loc, CostMethod.FIFO)

        assert v.current_quantity == Decimal("4")
        assert v.total_value == Decimal("40")

    def test_configured_acquisition_types(self, unit_of_work, deterministic_clock, seed):
        service = InventoryValuationService(
            unit_of_work,
            deterministic_clock,
            acquisition_movement_types={"purchase", "adjustment"},
        )
        loc = seed.location()
        product = seed.product()
        seed.entry(*product, loc, "4", "4", unit_cost="10", created_at=_day(1))
        seed.entry(*product, loc, "2", "6", MovementType.ADJUSTMENT, unit_cost="13",
                   created_at=_day(2))
        seed.stock(*product, loc, "6")

        v = service.valuate(BUSINESS_ID, product[1], loc, CostMethod.FIFO)

        assert v.total_value == Decimal("66")


class TestPurchasePriceFallback:

    def test_weighted_average_without_layers(self, valuation, seed):
        loc = seed.location()
        product = seed.product(purchase_price=Decimal("7.50"))
        seed.stock(*product, loc, "4")

        v = valuation.valuate(BUSINESS_ID, product[1], loc)

        assert v.unit_cost == Decimal("7.50")
        assert v.total_value == Decimal("30")

    def test_fifo_without_layers_values_on_hand(self, valuation, seed):
        loc = seed.location()
        product = seed.product(purchase_price=Decimal("3"))
        seed.stock(*product, loc, "5")

        v = valuation.valuate(BUSINESS_ID, product[1], loc, CostMethod.FIFO)

        assert v.current_quantity == Decimal("5")
        assert v.total_value == Decimal("15")
        assert v.cost_layers == ()

    def test_no_purchase_price_is_zero(self, valuation, seed):
        loc = seed.location()
        product = seed.product()
        seed.stock(*product, loc, "5")

        v = valuation.valuate(BUSINESS_ID, product[1], loc)

        assert v.total_value == Decimal("0")


class TestValuateLocation:

    def test_sums_items_with_stock(self, valuation, history, seed):
        loc = history["location"]
        empty = seed.product("Empty", "EMP-001")
        seed.stock(*empty, loc, "0")

        result = valuation.valuate_location(BUSINESS_ID, loc, CostMethod.FIFO)

        assert len(result.items) == 1
        assert result.total_value == Decimal("1750")
        assert result.total_quantity == Decimal("15")
        assert result.method == CostMethod.FIFO

    def test_items_do_not_share_layers(self, valuation, history, seed):
        loc = history["location"]
        other = seed.product("Other", "OTH-001")
        seed.entry(*other, loc, "2", "2", unit_cost="1000", created_at=_day(1))
        seed.stock(*other, loc, "2")

        result = valuation.valuate_location(BUSINESS_ID, loc, CostMethod.FIFO)

        values = {item.variation_id: item.total_value for item in result.items}
        assert values[history["product"][1]] == Decimal("1750")
        assert values[other[1]] == Decimal("2000")

    def test_empty_location(self, valuation, seed):
        loc = seed.location()

        result = valuation.valuate_location(BUSINESS_ID, loc)

        assert result.items == ()
        assert result.total_value == Decimal("0")
