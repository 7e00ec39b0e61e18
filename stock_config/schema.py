"""
Reconciliation configuration schema.

Frozen dataclasses the YAML loader produces.  Each section validates its
own values in ``__post_init__`` and raises InvalidArgumentError, so an
invalid file fails at load time rather than halfway through a sweep.

Variance thresholds reuse the engine's own ``VarianceThresholds`` type so
the policy receives exactly what was configured.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from stock_engines.valuation import CostMethod
from stock_engines.variance import VarianceThresholds
from stock_kernel.domain.ledger import MovementType
from stock_kernel.exceptions import InvalidArgumentError


def _require_positive(name: str, value: int) -> None:
    if value <= 0:
        raise InvalidArgumentError(name, value, "must be a positive integer")


@dataclass(frozen=True)
class DetectionSettings:
    """Window and limit for the suspicious-activity diagnostic."""

    recent_activity_days: int = 30
    suspicious_recent_count: int = 100

    def __post_init__(self):
        _require_positive("recent_activity_days", self.recent_activity_days)
        if self.suspicious_recent_count < 0:
            raise InvalidArgumentError(
                "suspicious_recent_count", self.suspicious_recent_count,
                "cannot be negative",
            )


@dataclass(frozen=True)
class InvestigationSettings:
    """Knobs for the single-pair investigation rules."""

    lookback_days: int = 90
    transaction_limit: int = 100
    gap_days: int = 30
    balance_tolerance: Decimal = Decimal("0.01")
    max_corrections: int = 5

    def __post_init__(self):
        _require_positive("lookback_days", self.lookback_days)
        _require_positive("transaction_limit", self.transaction_limit)
        _require_positive("gap_days", self.gap_days)
        if self.balance_tolerance < 0:
            raise InvalidArgumentError(
                "balance_tolerance", self.balance_tolerance, "cannot be negative"
            )
        if self.max_corrections < 0:
            raise InvalidArgumentError(
                "max_corrections", self.max_corrections, "cannot be negative"
            )


@dataclass(frozen=True)
class ValuationSettings:
    """Default costing method and which movements create cost layers."""

    default_method: CostMethod = CostMethod.WEIGHTED_AVG
    acquisition_movement_types: frozenset[str] = field(
        default_factory=lambda: frozenset({
            MovementType.OPENING_STOCK.value,
            MovementType.PURCHASE.value,
            MovementType.TRANSFER_IN.value,
            MovementType.CUSTOMER_RETURN.value,
        })
    )

    def __post_init__(self):
        if not self.acquisition_movement_types:
            raise InvalidArgumentError(
                "acquisition_movement_types", self.acquisition_movement_types,
                "at least one movement type is required",
            )


@dataclass(frozen=True)
class ReconciliationConfig:
    """The whole reconciliation configuration, as loaded."""

    config_id: str = "stock-reconciliation-defaults"
    version: int = 1
    thresholds: VarianceThresholds = field(default_factory=VarianceThresholds)
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    investigation: InvestigationSettings = field(default_factory=InvestigationSettings)
    valuation: ValuationSettings = field(default_factory=ValuationSettings)
    history_limit: int = 50
    checksum: str = ""

    def __post_init__(self):
        _require_positive("history_limit", self.history_limit)
