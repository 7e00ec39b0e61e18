"""
stock_services.valuation_service -- Inventory value from ledger cost layers.

Responsibility:
    Rebuild cost layers for a (variation, location) pair from its ledger
    history and value what is on hand by FIFO, LIFO or weighted average.

Architecture position:
    Services -- orchestration over the repository interfaces.  Read-only.
    The arithmetic is ``stock_engines.valuation``.

Invariants enforced:
    - Cost layers come from entries with a positive quantity delta whose
      movement type is an acquisition type (configurable).
    - Sold quantity is the absolute sum of every negative delta.
    - FIFO / LIFO value the layers left after consuming the sold quantity;
      weighted average multiplies the materialized quantity by the mean
      acquisition cost.
    - With no cost history the variation's purchase price (else 0) is the
      unit cost and the materialized quantity is valued at it.
    - Location-wide valuation reads every entry for the location in one
      query and only values records with quantity > 0.

Failure modes:
    - UnsupportedValuationMethodError for an unknown method string.
    - InvalidArgumentError when a ledger entry carries a negative unit cost.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from stock_engines.valuation import (
    CostLayer,
    CostMethod,
    fifo_consume,
    lifo_consume,
    weighted_average_cost,
)
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.ledger import LedgerEntry, MovementType, StockRecord
from stock_kernel.domain.repositories import UnitOfWork
from stock_kernel.exceptions import UnsupportedValuationMethodError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.valuation")

_ZERO = Decimal("0")

DEFAULT_ACQUISITION_TYPES = frozenset({
    MovementType.OPENING_STOCK.value,
    MovementType.PURCHASE.value,
    MovementType.TRANSFER_IN.value,
    MovementType.CUSTOMER_RETURN.value,
})


@dataclass(frozen=True)
class InventoryValuation:
    """Value of one (variation, location) pair on the valuation date."""

    product_id: int
    variation_id: int
    location_id: int
    method: CostMethod
    current_quantity: Decimal
    unit_cost: Decimal
    total_value: Decimal
    valuation_date: datetime
    cost_layers: tuple[CostLayer, ...] = ()


@dataclass(frozen=True)
class LocationValuation:
    location_id: int
    method: CostMethod
    valuation_date: datetime
    items: tuple[InventoryValuation, ...] = field(default=())

    @property
    def total_value(self) -> Decimal:
        return sum((item.total_value for item in self.items), _ZERO)

    @property
    def total_quantity(self) -> Decimal:
        return sum((item.current_quantity for item in self.items), _ZERO)


def resolve_method(method: CostMethod | str | None, default: CostMethod) -> CostMethod:
    if method is None:
        return default
    if isinstance(method, CostMethod):
        return method
    try:
        return CostMethod(str(method).lower())
    except ValueError:
        raise UnsupportedValuationMethodError(str(method)) from None


class InventoryValuationService:
    """Values on-hand stock from the acquisition history in the ledger."""

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        clock: Clock | None = None,
        default_method: CostMethod = CostMethod.WEIGHTED_AVG,
        acquisition_movement_types: Collection[str] = DEFAULT_ACQUISITION_TYPES,
    ):
        self._uow = unit_of_work
        self._clock = clock or SystemClock()
        self._default_method = default_method
        self._acquisition_types = frozenset(acquisition_movement_types)

    def valuate(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        method: CostMethod | str | None = None,
    ) -> InventoryValuation:
        resolved = resolve_method(method, self._default_method)
        with self._uow.transaction() as repos:
            record = repos.stock.get_stock_record(business_id, variation_id, location_id)
            entries = repos.ledger.list_entries_for_valuation(
                business_id, location_id, [variation_id],
            )

        product_id = record.product_id if record is not None else (
            entries[0].product_id if entries else 0
        )
        valuation = self._value_pair(
            resolved, product_id, variation_id, location_id, entries, record,
        )
        logger.info("inventory_valuated", extra={
            "business_id": business_id,
            "variation_id": variation_id,
            "location_id": location_id,
            "method": resolved.value,
            "current_quantity": str(valuation.current_quantity),
            "total_value": str(valuation.total_value),
        })
        return valuation

    def valuate_location(
        self,
        business_id: int,
        location_id: int,
        method: CostMethod | str | None = None,
    ) -> LocationValuation:
        resolved = resolve_method(method, self._default_method)
        with self._uow.transaction() as repos:
            records = [
                r for r in repos.stock.list_stock_records(business_id, location_id)
                if r.quantity > 0
            ]
            entries = (
                repos.ledger.list_entries_for_valuation(
                    business_id, location_id, [r.variation_id for r in records],
                )
                if records else []
            )

        by_variation: dict[int, list[LedgerEntry]] = defaultdict(list)
        for entry in entries:
            by_variation[entry.variation_id].append(entry)

        items = tuple(
            self._value_pair(
                resolved, r.product_id, r.variation_id, location_id,
                by_variation.get(r.variation_id, []), r,
            )
            for r in records
        )
        result = LocationValuation(
            location_id=location_id,
            method=resolved,
            valuation_date=self._clock.now(),
            items=items,
        )
        logger.info("location_valuated", extra={
            "business_id": business_id,
            "location_id": location_id,
            "method": resolved.value,
            "item_count": len(items),
            "total_value": str(result.total_value),
        })
        return result

    def _value_pair(
        self,
        method: CostMethod,
        product_id: int,
        variation_id: int,
        location_id: int,
        entries: Sequence[LedgerEntry],
        record: StockRecord | None,
    ) -> InventoryValuation:
        layers = [
            CostLayer(
                acquired_at=e.created_at,
                quantity=e.quantity_delta,
                unit_cost=e.unit_cost,
                source_entry_id=e.id,
            )
            for e in entries
            if e.quantity_delta > 0 and e.movement_type in self._acquisition_types
        ]
        sold = sum((-e.quantity_delta for e in entries if e.quantity_delta < 0), _ZERO)
        on_hand = record.quantity if record is not None else _ZERO
        fallback_cost = (
            record.purchase_price
            if record is not None and record.purchase_price is not None
            else _ZERO
        )

        remaining: tuple[CostLayer, ...] = ()
        if method == CostMethod.WEIGHTED_AVG:
            unit_cost = weighted_average_cost(layers=layers)
            if unit_cost == 0 and on_hand > 0:
                unit_cost = fallback_cost
            quantity = on_hand
            total = quantity * unit_cost
        elif not layers:
            quantity = on_hand if on_hand > 0 else _ZERO
            unit_cost = fallback_cost
            total = quantity * unit_cost
        else:
            consume = fifo_consume if method == CostMethod.FIFO else lifo_consume
            result = consume(layers=layers, sold_quantity=sold)
            quantity = result.total_quantity
            unit_cost = result.average_cost
            total = result.total_cost
            remaining = result.remaining_layers

        return InventoryValuation(
            product_id=product_id,
            variation_id=variation_id,
            location_id=location_id,
            method=method,
            current_quantity=quantity,
            unit_cost=unit_cost,
            total_value=total,
            valuation_date=self._clock.now(),
            cost_layers=remaining,
        )
