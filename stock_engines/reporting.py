"""
stock_engines.reporting -- Reconciliation report aggregation and CSV export.

Responsibility:
    Aggregate a list of VarianceRecords into summary statistics and render
    a report as CSV for operators and spreadsheets.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The report is assembled
    by stock_services.reconciliation_service; the CSV string is written to
    disk (if at all) by the caller.

Invariants enforced:
    - Summary counts always add up: overages + shortages + matches == total.
    - total_variance_value is the sum of absolute values;
      total_shortage_value is reported as a positive magnitude.
    - CSV: every field is double-quoted, rows are joined by a bare newline
      with no trailing newline, and monetary / percentage columns carry
      exactly two decimals (half-up rounding).
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from stock_engines.variance import VarianceRecord, VarianceType, format_quantity
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.reporting")

_ZERO = Decimal("0")
_CENT = Decimal("0.01")

MISSING_VALUE = "N/A"

CSV_COLUMNS: tuple[str, ...] = (
    "Product Name",
    "SKU",
    "Variation",
    "Location",
    "Ledger Balance",
    "System Balance",
    "Variance",
    "Variance %",
    "Variance Type",
    "Unit Cost",
    "Variance Value",
    "Last Transaction Date",
    "Last Transaction Type",
    "Requires Investigation",
    "Auto Fixable",
)


class ReconciliationType(str, Enum):
    """Which two stock sources a report compares."""

    LEDGER_VS_SYSTEM = "LEDGER_VS_SYSTEM"


@dataclass(frozen=True)
class DetectionFailure:
    """A stock record whose variance could not be computed."""

    variation_id: int
    location_id: int
    error: str


@dataclass(frozen=True)
class ReconciliationSummary:
    total_variances: int = 0
    overages: int = 0
    shortages: int = 0
    matches: int = 0
    total_variance_value: Decimal = _ZERO
    total_overage_value: Decimal = _ZERO
    total_shortage_value: Decimal = _ZERO
    requires_investigation: int = 0
    auto_fixable: int = 0


@dataclass(frozen=True)
class ReconciliationReport:
    """
    One reconciliation run for a business (optionally one location).

    ``failures`` lists records skipped because their computation raised;
    an empty variance list with no failures means everything reconciles.
    """

    report_date: datetime
    business_id: int
    location_id: int | None
    reconciliation_type: ReconciliationType
    variances: tuple[VarianceRecord, ...]
    summary: ReconciliationSummary
    failures: tuple[DetectionFailure, ...] = field(default=())

    @property
    def is_clean(self) -> bool:
        return not self.variances and not self.failures


def summarize_variances(variances: Sequence[VarianceRecord]) -> ReconciliationSummary:
    """Counts and value totals over a variance list."""
    overages = [v for v in variances if v.variance_type == VarianceType.OVERAGE]
    shortages = [v for v in variances if v.variance_type == VarianceType.SHORTAGE]
    matches = [v for v in variances if v.variance_type == VarianceType.MATCH]

    return ReconciliationSummary(
        total_variances=len(variances),
        overages=len(overages),
        shortages=len(shortages),
        matches=len(matches),
        total_variance_value=sum((abs(v.variance_value) for v in variances), _ZERO),
        total_overage_value=sum((v.variance_value for v in overages), _ZERO),
        total_shortage_value=sum((abs(v.variance_value) for v in shortages), _ZERO),
        requires_investigation=sum(1 for v in variances if v.requires_investigation),
        auto_fixable=sum(1 for v in variances if v.auto_fixable),
    )


def _two_places(value: Decimal) -> str:
    return str(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def _flag(value: bool) -> str:
    return "YES" if value else "NO"


def _row(v: VarianceRecord) -> list[str]:
    return [
        v.product_name,
        v.product_sku,
        v.variation_name,
        v.location_name,
        format_quantity(v.ledger_balance),
        format_quantity(v.system_balance),
        format_quantity(v.variance),
        _two_places(v.variance_percentage),
        v.variance_type.value,
        _two_places(v.unit_cost),
        _two_places(v.variance_value),
        v.last_transaction_date.isoformat() if v.last_transaction_date else MISSING_VALUE,
        v.last_transaction_type or MISSING_VALUE,
        _flag(v.requires_investigation),
        _flag(v.auto_fixable),
    ]


def export_reconciliation_csv(report: ReconciliationReport) -> str:
    """Render the report's variances as CSV, header row first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for variance in report.variances:
        writer.writerow(_row(variance))

    logger.info("reconciliation_csv_exported", extra={
        "business_id": report.business_id,
        "location_id": report.location_id,
        "row_count": len(report.variances),
    })
    return buffer.getvalue().rstrip("\n")
