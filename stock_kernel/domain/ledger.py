"""
Ledger DTOs -- immutable value objects crossing the repository boundary.

Responsibility:
    Define the frozen dataclasses that repositories return and accept:
    ledger entries, materialized stock records, per-pair ledger snapshots,
    audit records and the acting user.  Nothing here knows about storage.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by engines, services and
    the SQLAlchemy repository implementations alike.

Invariants enforced:
    - Ledger entries are append-only: there is no DTO for an update.
    - ``balance_after`` is the running balance of the (variation, location)
      chain after the entry is applied.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class MovementType(str, Enum):
    """Known stock movement types written to the ledger."""

    OPENING_STOCK = "opening_stock"
    PURCHASE = "purchase"
    SALE = "sale"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    CUSTOMER_RETURN = "customer_return"
    SUPPLIER_RETURN = "supplier_return"
    ADJUSTMENT = "adjustment"
    CORRECTION = "correction"


# Reference type stamped on every correction written by a reconciliation run
RECONCILIATION_REFERENCE_TYPE = "Reconciliation"

PairKey = tuple[int, int]  # (variation_id, location_id)


@dataclass(frozen=True, slots=True)
class Actor:
    """The user (or job) on whose behalf a write happens."""

    user_id: int
    username: str


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """One immutable stock movement with its running-balance snapshot."""

    id: UUID
    business_id: int
    product_id: int
    variation_id: int
    location_id: int
    movement_type: str
    quantity_delta: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    balance_after: Decimal
    created_at: datetime
    sequence: int = 0
    reference_type: str | None = None
    reference_id: str | None = None
    actor_id: int | None = None
    actor_name: str | None = None
    notes: str | None = None

    @property
    def pair_key(self) -> PairKey:
        return (self.variation_id, self.location_id)

    @property
    def is_correction(self) -> bool:
        return self.movement_type == MovementType.CORRECTION.value


@dataclass(frozen=True, slots=True)
class NewLedgerEntry:
    """An entry to be appended; the repository assigns id and sequence."""

    business_id: int
    product_id: int
    variation_id: int
    location_id: int
    movement_type: str
    quantity_delta: Decimal
    balance_after: Decimal
    created_at: datetime
    unit_cost: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    reference_type: str | None = None
    reference_id: str | None = None
    actor_id: int | None = None
    actor_name: str | None = None
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class StockRecord:
    """Materialized on-hand quantity for one (variation, location) pair."""

    business_id: int
    product_id: int
    variation_id: int
    location_id: int
    quantity: Decimal
    product_name: str
    product_sku: str | None
    variation_name: str | None
    location_name: str
    purchase_price: Decimal | None = None

    @property
    def pair_key(self) -> PairKey:
        return (self.variation_id, self.location_id)


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Latest entry plus activity counts for one pair, read in one batch."""

    latest_entry: LedgerEntry | None
    total_count: int
    recent_count: int

    @classmethod
    def empty(cls) -> LedgerSnapshot:
        return cls(latest_entry=None, total_count=0, recent_count=0)


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """One audit-log write: who did what to which entities."""

    business_id: int
    actor: Actor
    action: str
    entity_type: str
    entity_ids: tuple[str, ...]
    description: str
    created_at: datetime
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CorrectionHistoryEntry:
    """A reconciliation correction as shown in the per-product history."""

    id: UUID
    date: datetime
    product_name: str
    variation_name: str
    location_name: str
    quantity: Decimal
    balance: Decimal
    notes: str | None
    performed_by: str
    reference_id: str | None
