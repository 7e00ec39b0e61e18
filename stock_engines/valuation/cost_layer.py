"""
stock_engines.valuation.cost_layer -- FIFO / LIFO consumption and weighted-average cost.

Responsibility:
    Value inventory from a set of acquisition batches (cost layers):
    consume sold quantity oldest-first (FIFO) or newest-first (LIFO) and
    report what remains, or compute the quantity-weighted mean unit cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel.exceptions and stock_kernel.logging_config.
    Cost layers are reconstructed from ledger entries by
    stock_services.valuation_service.

Invariants enforced:
    - Order independence: layers are re-sorted on a total key (acquisition
      time, unit cost, quantity, source id), so the caller's order never
      changes the result.
    - Conservation: for 0 <= sold <= available, consumed quantity == sold
      and remaining quantity == available - sold.
    - Excess absorption: sold quantity beyond what the layers hold empties
      every layer and is otherwise ignored (no error).
    - Non-negative layers: CostLayer rejects negative quantity or cost.

Failure modes:
    - InvalidArgumentError from fifo_consume / lifo_consume when
      sold_quantity < 0, before any computation.
    - InvalidArgumentError from CostLayer when quantity or unit_cost < 0.
    - Division-by-zero safe: average_cost and weighted_average_cost return
      Decimal("0") when the quantity total is zero.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_engines.tracer import traced_engine
from stock_kernel.exceptions import InvalidArgumentError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.valuation.cost_layer")

_ZERO = Decimal("0")


class CostMethod(str, Enum):
    """Cost valuation methods."""

    FIFO = "fifo"                  # First-in, first-out
    LIFO = "lifo"                  # Last-in, first-out
    WEIGHTED_AVG = "weighted_avg"  # Quantity-weighted mean unit cost


@dataclass(frozen=True, slots=True)
class CostLayer:
    """
    One acquisition batch: when it arrived, how much, at what unit cost.

    Derived on demand from purchase-type ledger entries; never persisted.
    """

    acquired_at: datetime
    quantity: Decimal
    unit_cost: Decimal
    source_entry_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise InvalidArgumentError(
                "quantity", self.quantity, "cost layer quantity cannot be negative"
            )
        if self.unit_cost < 0:
            raise InvalidArgumentError(
                "unit_cost", self.unit_cost, "cost layer unit cost cannot be negative"
            )

    @property
    def total_value(self) -> Decimal:
        return self.quantity * self.unit_cost

    def with_quantity(self, quantity: Decimal) -> CostLayer:
        return replace(self, quantity=quantity)


@dataclass(frozen=True, slots=True)
class LayerConsumptionResult:
    """
    What is left after consuming sold quantity from a set of layers.

    ``remaining_layers`` holds only layers with quantity > 0, in
    chronological order regardless of the consumption direction.
    """

    method: CostMethod
    remaining_layers: tuple[CostLayer, ...]
    consumed_quantity: Decimal
    consumed_cost: Decimal
    total_quantity: Decimal
    total_cost: Decimal

    @property
    def average_cost(self) -> Decimal:
        """Average unit cost of what remains (0 when nothing remains)."""
        if self.total_quantity == 0:
            return _ZERO
        return self.total_cost / self.total_quantity


def _layer_sort_key(layer: CostLayer) -> tuple:
    return (
        layer.acquired_at,
        layer.unit_cost,
        layer.quantity,
        str(layer.source_entry_id) if layer.source_entry_id is not None else "",
    )


def _validate_sold_quantity(sold_quantity: Decimal) -> None:
    if sold_quantity < 0:
        logger.error("cost_layer_negative_sold_quantity", extra={
            "sold_quantity": str(sold_quantity),
        })
        raise InvalidArgumentError(
            "sold_quantity", sold_quantity, "Sold quantity cannot be negative"
        )


def _consume(
    method: CostMethod,
    ordered: Sequence[CostLayer],
    sold_quantity: Decimal,
) -> LayerConsumptionResult:
    remaining_to_consume = Decimal(sold_quantity)
    consumed_quantity = _ZERO
    consumed_cost = _ZERO
    after: list[CostLayer] = []

    for layer in ordered:
        if remaining_to_consume == 0:
            after.append(layer)
            continue
        take = min(layer.quantity, remaining_to_consume)
        remaining_to_consume -= take
        consumed_quantity += take
        consumed_cost += take * layer.unit_cost
        after.append(layer.with_quantity(layer.quantity - take))

    remaining = tuple(
        sorted((layer for layer in after if layer.quantity > 0), key=_layer_sort_key)
    )
    total_quantity = sum((layer.quantity for layer in remaining), _ZERO)
    total_cost = sum((layer.total_value for layer in remaining), _ZERO)

    if remaining_to_consume > 0:
        # Sold more than the layers hold: absorbed, layers fully consumed
        logger.warning("cost_layer_sold_exceeds_available", extra={
            "method": method.value,
            "sold_quantity": str(sold_quantity),
            "unabsorbed_quantity": str(remaining_to_consume),
        })

    return LayerConsumptionResult(
        method=method,
        remaining_layers=remaining,
        consumed_quantity=consumed_quantity,
        consumed_cost=consumed_cost,
        total_quantity=total_quantity,
        total_cost=total_cost,
    )


@traced_engine("cost_layer", "1.0", fingerprint_fields=("layers", "sold_quantity"))
def fifo_consume(
    layers: Iterable[CostLayer],
    sold_quantity: Decimal,
) -> LayerConsumptionResult:
    """
    Consume ``sold_quantity`` from the oldest layers first.

    Preconditions:
        sold_quantity >= 0.

    Postconditions:
        total_cost == sum(qty * unit_cost) over remaining layers and
        average_cost == total_cost / total_quantity (0 when empty).

    Raises:
        InvalidArgumentError: If sold_quantity < 0.
    """
    _validate_sold_quantity(sold_quantity)
    ordered = sorted(layers, key=_layer_sort_key)
    return _consume(CostMethod.FIFO, ordered, sold_quantity)


@traced_engine("cost_layer", "1.0", fingerprint_fields=("layers", "sold_quantity"))
def lifo_consume(
    layers: Iterable[CostLayer],
    sold_quantity: Decimal,
) -> LayerConsumptionResult:
    """Consume ``sold_quantity`` from the newest layers first.

    Same contract as :func:`fifo_consume` with the direction reversed.
    """
    _validate_sold_quantity(sold_quantity)
    ordered = sorted(layers, key=_layer_sort_key, reverse=True)
    return _consume(CostMethod.LIFO, ordered, sold_quantity)


@traced_engine("cost_layer", "1.0", fingerprint_fields=("layers",))
def weighted_average_cost(layers: Iterable[CostLayer]) -> Decimal:
    """sum(qty * unit_cost) / sum(qty); 0 for empty or all-zero input."""
    total_quantity = _ZERO
    total_cost = _ZERO
    for layer in layers:
        total_quantity += layer.quantity
        total_cost += layer.total_value
    if total_quantity == 0:
        return _ZERO
    return total_cost / total_quantity
