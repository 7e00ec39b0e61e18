"""
stock_engines.variance -- Ledger-vs-system variance computation and classification.

Responsibility:
    Turn one materialized stock record plus its ledger snapshot into a
    VarianceRecord: signed variance, value, percentage, overage/shortage/
    match classification, investigation / auto-fix flags and suspicious-
    activity diagnostics.  The flag decision is a separate pure policy
    (``classify_variance``) driven by named, overridable thresholds.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel.domain DTOs and stock_kernel.exceptions.
    Consumed by stock_services.detector.

Invariants enforced:
    - variance = system_balance - ledger_balance.
    - variance_percentage = |variance / ledger_balance| * 100, and 0 when
      ledger_balance == 0 (the percentage trigger is silent for pairs that
      never had a ledger balance; quantity and value triggers still apply).
    - requires_investigation uses OR over strict ">" comparisons;
      auto_fixable uses AND over inclusive "<=" comparisons.  With the same
      thresholds the two are exact complements.
    - suspicious_activity is diagnostic only; it never changes eligibility.

Failure modes:
    - InvalidArgumentError from VarianceThresholds when a threshold is
      negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from stock_kernel.domain.ledger import LedgerSnapshot, StockRecord
from stock_kernel.exceptions import InvalidArgumentError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.variance")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

# Placeholders the host application shows for missing catalog fields
DEFAULT_SKU = "N/A"
DEFAULT_VARIATION_NAME = "Default"


class VarianceType(str, Enum):
    """Direction of a ledger-vs-system variance."""

    OVERAGE = "overage"    # system holds more than the ledger says
    SHORTAGE = "shortage"  # system holds less than the ledger says
    MATCH = "match"


@dataclass(frozen=True)
class VarianceThresholds:
    """
    Named limits separating auto-fixable drift from drift needing review.

    Defaults: 5 percent of ledger balance, 10 units, 1000 in value.
    """

    percent: Decimal = Decimal("5")
    absolute_quantity: Decimal = Decimal("10")
    value: Decimal = Decimal("1000")

    def __post_init__(self):
        for name in ("percent", "absolute_quantity", "value"):
            if getattr(self, name) < 0:
                raise InvalidArgumentError(
                    name, getattr(self, name), "threshold cannot be negative"
                )


DEFAULT_THRESHOLDS = VarianceThresholds()


@dataclass(frozen=True)
class VarianceClassification:
    requires_investigation: bool
    auto_fixable: bool


@dataclass(frozen=True)
class VarianceMetadata:
    """Diagnostics collected alongside a variance."""

    total_transactions: int
    recent_transaction_count: int
    suspicious_activity: bool


@dataclass(frozen=True)
class VarianceRecord:
    """
    Ledger-vs-system comparison for one (variation, location) pair.

    Computed per reconciliation call and never persisted.
    """

    variation_id: int
    location_id: int
    product_id: int
    product_name: str
    product_sku: str
    variation_name: str
    location_name: str

    ledger_balance: Decimal
    system_balance: Decimal
    variance: Decimal
    variance_percentage: Decimal
    variance_type: VarianceType

    last_transaction_date: datetime | None
    last_transaction_type: str | None

    unit_cost: Decimal
    variance_value: Decimal

    requires_investigation: bool
    auto_fixable: bool
    metadata: VarianceMetadata

    @property
    def pair_key(self) -> tuple[int, int]:
        return (self.variation_id, self.location_id)

    @property
    def is_match(self) -> bool:
        return self.variance == 0


def format_quantity(value: Decimal) -> str:
    """Plain decimal text without trailing zeros; normalize() alone would render 100 as 1E+2."""
    return format(value.normalize(), "f")


def variance_type_for(variance: Decimal) -> VarianceType:
    if variance > 0:
        return VarianceType.OVERAGE
    if variance < 0:
        return VarianceType.SHORTAGE
    return VarianceType.MATCH


def variance_percentage(variance: Decimal, ledger_balance: Decimal) -> Decimal:
    """|variance / ledger_balance| * 100, or 0 when the ledger balance is 0."""
    if ledger_balance == 0:
        return _ZERO
    return abs(variance / ledger_balance * _HUNDRED)


def classify_variance(
    variance: Decimal,
    variance_value: Decimal,
    variance_percentage: Decimal,
    thresholds: VarianceThresholds = DEFAULT_THRESHOLDS,
) -> VarianceClassification:
    """
    Decide the investigation and auto-fix flags for a computed variance.

    requires_investigation: any limit strictly exceeded.
    auto_fixable: every limit respected, boundaries inclusive.
    """
    abs_variance = abs(variance)
    abs_value = abs(variance_value)

    requires_investigation = (
        variance_percentage > thresholds.percent
        or abs_variance > thresholds.absolute_quantity
        or abs_value > thresholds.value
    )
    auto_fixable = (
        variance_percentage <= thresholds.percent
        and abs_variance <= thresholds.absolute_quantity
        and abs_value <= thresholds.value
    )
    return VarianceClassification(
        requires_investigation=requires_investigation,
        auto_fixable=auto_fixable,
    )


def is_suspicious(
    total_transactions: int,
    recent_transaction_count: int,
    ledger_balance: Decimal,
    system_balance: Decimal,
    suspicious_recent_count: int = 100,
) -> bool:
    """Stock without history, very high recent activity, or a negative ledger."""
    return (
        (total_transactions == 0 and system_balance > 0)
        or recent_transaction_count > suspicious_recent_count
        or ledger_balance < 0
    )


def compute_variance(
    record: StockRecord,
    snapshot: LedgerSnapshot,
    thresholds: VarianceThresholds = DEFAULT_THRESHOLDS,
    suspicious_recent_count: int = 100,
) -> VarianceRecord:
    """Compare one materialized record with the latest ledger entry for its pair."""
    latest = snapshot.latest_entry
    ledger_balance = latest.balance_after if latest is not None else _ZERO
    unit_cost = latest.unit_cost if latest is not None else _ZERO
    system_balance = record.quantity

    variance = system_balance - ledger_balance
    variance_value = variance * unit_cost
    percentage = variance_percentage(variance, ledger_balance)
    classification = classify_variance(variance, variance_value, percentage, thresholds)

    metadata = VarianceMetadata(
        total_transactions=snapshot.total_count,
        recent_transaction_count=snapshot.recent_count,
        suspicious_activity=is_suspicious(
            snapshot.total_count,
            snapshot.recent_count,
            ledger_balance,
            system_balance,
            suspicious_recent_count,
        ),
    )

    return VarianceRecord(
        variation_id=record.variation_id,
        location_id=record.location_id,
        product_id=record.product_id,
        product_name=record.product_name,
        product_sku=record.product_sku or DEFAULT_SKU,
        variation_name=record.variation_name or DEFAULT_VARIATION_NAME,
        location_name=record.location_name,
        ledger_balance=ledger_balance,
        system_balance=system_balance,
        variance=variance,
        variance_percentage=percentage,
        variance_type=variance_type_for(variance),
        last_transaction_date=latest.created_at if latest is not None else None,
        last_transaction_type=latest.movement_type if latest is not None else None,
        unit_cost=unit_cost,
        variance_value=variance_value,
        requires_investigation=classification.requires_investigation,
        auto_fixable=classification.auto_fixable,
        metadata=metadata,
    )
