"""
Property-based tests for the cost layer calculator.

For any layer set and any non-negative sold quantity:
- remaining quantity == max(0, total - sold)
- consumed + remaining cost == original cost
- the caller's layer order never changes the result
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

pytest.importorskip("hypothesis")

from hypothesis import given, settings  # noqa: E402
from hypothesis import strategies as st  # noqa: E402

from stock_engines.valuation import CostLayer, fifo_consume, lifo_consume, weighted_average_cost  # noqa: E402

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)

quantities = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000"), places=2)
costs = st.decimals(min_value=Decimal("0"), max_value=Decimal("500"), places=2)

layer_lists = st.lists(
    st.tuples(st.integers(min_value=0, max_value=365), quantities, costs),
    max_size=12,
).map(lambda specs: [
    CostLayer(T0 + timedelta(days=day), qty, cost) for day, qty, cost in specs
])

consumers = st.sampled_from([fifo_consume, lifo_consume])


@settings(max_examples=200, deadline=None)
@given(layers=layer_lists, sold=quantities, consume=consumers)
def test_quantity_is_conserved(layers, sold, consume):
    total = sum((layer.quantity for layer in layers), Decimal("0"))

    result = consume(layers, sold)

    assert result.total_quantity == max(Decimal("0"), total - sold)
    assert result.consumed_quantity == min(total, sold)
    assert all(layer.quantity > 0 for layer in result.remaining_layers)


@settings(max_examples=200, deadline=None)
@given(layers=layer_lists, sold=quantities, consume=consumers)
def test_cost_is_conserved(layers, sold, consume):
    original = sum((layer.quantity * layer.unit_cost for layer in layers), Decimal("0"))

    result = consume(layers, sold)

    assert result.consumed_cost + result.total_cost == original


@settings(max_examples=100, deadline=None)
@given(layers=layer_lists, sold=quantities, consume=consumers, data=st.data())
def test_input_order_is_irrelevant(layers, sold, consume, data):
    shuffled = data.draw(st.permutations(layers))

    assert consume(shuffled, sold) == consume(layers, sold)


@settings(max_examples=100, deadline=None)
@given(layers=layer_lists)
def test_weighted_average_within_cost_range(layers):
    avg = weighted_average_cost(layers)
    priced = [layer.unit_cost for layer in layers if layer.quantity > 0]

    if not priced:
        assert avg == Decimal("0")
    else:
        slack = Decimal("0.0001")
        assert min(priced) - slack <= avg <= max(priced) + slack
