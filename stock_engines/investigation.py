"""
stock_engines.investigation -- Heuristic root-cause rules for a single variance.

Responsibility:
    Inspect a window of ledger entries for one (variation, location) pair
    and produce human-readable unusual patterns, suspected causes and
    recommendations.  Each rule is evaluated independently; none
    short-circuits another.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by stock_services.investigation_service, which fetches the
    entries and the current variance.

Rules:
    1. Missing transactions: no entries while the system holds stock.
    2. Balance chain: for adjacent entries (older, newer) the newer balance
       must equal older.balance_after + newer.quantity_delta within the
       configured tolerance.
    3. Time gaps: consecutive entries further apart than ``gap_days``.
    4. Negative balances: any entry with balance_after < 0.
    5. Correction frequency: more than ``max_corrections`` corrections.
    6. Direction advice for shortage / overage, after the rule advice.
    7. No findings: neither rule 1 nor any pattern fired; its generic
       advice comes after the direction advice.

Failure modes:
    None -- the rules accept any entry list, including an empty one.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from stock_engines.tracer import traced_engine
from stock_engines.variance import VarianceType, format_quantity
from stock_kernel.domain.ledger import LedgerEntry
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.investigation")

_SECONDS_PER_DAY = 86400

# Suspected causes
CAUSE_MISSING_TRANSACTIONS = "Stock exists but no transactions found"
CAUSE_NEGATIVE_BALANCE = "Sales occurred without sufficient stock"
CAUSE_FREQUENT_CORRECTIONS = "Frequent manual adjustments may indicate underlying issue"
CAUSE_NO_ANOMALIES = "No obvious transaction anomalies detected"
CAUSE_NO_VARIANCE = "No variance detected"

# Recommendations
RECOMMEND_BEGINNING_INVENTORY = "Review beginning inventory setup"
RECOMMEND_STOCK_VALIDATION = "Review sales transactions and enable stock validation"
RECOMMEND_PROCESS_REVIEW = "Review inventory management process"
RECOMMEND_PHYSICAL_COUNT = "Perform physical count verification"
RECOMMEND_NO_ACTION = "No action required"

_DIRECTION_ADVICE: dict[VarianceType, tuple[str, ...]] = {
    VarianceType.SHORTAGE: (
        "Check for unrecorded sales or wastage",
        "Review shrinkage policies",
    ),
    VarianceType.OVERAGE: (
        "Check for unrecorded purchases or returns",
        "Verify physical count accuracy",
    ),
}


@dataclass(frozen=True)
class BalanceMismatch:
    """A break in the running-balance chain between two adjacent entries."""

    older_at: datetime
    newer_at: datetime
    expected_balance: Decimal
    found_balance: Decimal

    def describe(self) -> str:
        return (
            f"Balance mismatch at {self.newer_at.isoformat()} "
            f"(previous entry {self.older_at.isoformat()}): "
            f"Expected {format_quantity(self.expected_balance)}, "
            f"Found {format_quantity(self.found_balance)}"
        )


@dataclass(frozen=True)
class InvestigationAnalysis:
    """Findings of one investigation run."""

    missing_transactions: bool = False
    unusual_patterns: tuple[str, ...] = ()
    suspected_causes: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    balance_mismatches: tuple[BalanceMismatch, ...] = field(default=())

    @property
    def has_findings(self) -> bool:
        return self.missing_transactions or bool(self.unusual_patterns)


def no_variance_analysis() -> InvestigationAnalysis:
    """The benign result returned when the pair currently reconciles."""
    return InvestigationAnalysis(
        suspected_causes=(CAUSE_NO_VARIANCE,),
        recommendations=(RECOMMEND_NO_ACTION,),
    )


def find_balance_mismatches(
    entries_newest_first: Sequence[LedgerEntry],
    tolerance: Decimal,
) -> list[BalanceMismatch]:
    """
    Adjacent pairs whose balances do not follow from the quantity delta.

    Continuity check: newer.balance_after == older.balance_after +
    newer.quantity_delta.  This intentionally differs from the
    ``older - newer.delta`` form, which flags consistent chains whenever
    the delta is non-zero.
    """
    chronological = list(reversed(entries_newest_first))
    mismatches: list[BalanceMismatch] = []
    for older, newer in zip(chronological, chronological[1:]):
        expected = older.balance_after + newer.quantity_delta
        if abs(expected - newer.balance_after) > tolerance:
            mismatches.append(BalanceMismatch(
                older_at=older.created_at,
                newer_at=newer.created_at,
                expected_balance=expected,
                found_balance=newer.balance_after,
            ))
    return mismatches


def find_time_gaps(
    entries_newest_first: Sequence[LedgerEntry],
    gap_days: int,
) -> list[str]:
    patterns: list[str] = []
    for current, previous in zip(entries_newest_first, entries_newest_first[1:]):
        days = abs((current.created_at - previous.created_at).total_seconds()) / _SECONDS_PER_DAY
        if days > gap_days:
            patterns.append(
                f"Large time gap: {days:.0f} days between "
                f"{previous.created_at.isoformat()} and {current.created_at.isoformat()}"
            )
    return patterns


@traced_engine(
    "investigation", "1.0",
    fingerprint_fields=("system_balance", "variance_type", "gap_days"),
)
def analyze_transactions(
    entries: Sequence[LedgerEntry],
    system_balance: Decimal,
    variance_type: VarianceType,
    gap_days: int = 30,
    balance_tolerance: Decimal = Decimal("0.01"),
    max_corrections: int = 5,
) -> InvestigationAnalysis:
    """
    Run every investigation rule over ``entries`` (newest first).

    Args:
        entries: Ledger entries in the lookback window, newest first.
        system_balance: Current materialized quantity for the pair.
        variance_type: Direction of the variance under investigation.
        gap_days: Days between consecutive entries that count as a gap.
        balance_tolerance: Allowed drift in the balance chain.
        max_corrections: Correction count above which the pair is flagged.
    """
    missing = False
    patterns: list[str] = []
    causes: list[str] = []
    recommendations: list[str] = []

    if not entries and system_balance > 0:
        missing = True
        causes.append(CAUSE_MISSING_TRANSACTIONS)
        recommendations.append(RECOMMEND_BEGINNING_INVENTORY)

    mismatches = find_balance_mismatches(entries, balance_tolerance)
    patterns.extend(m.describe() for m in mismatches)

    patterns.extend(find_time_gaps(entries, gap_days))

    negative = [e for e in entries if e.balance_after < 0]
    if negative:
        patterns.append(f"{len(negative)} transactions with negative balance")
        causes.append(CAUSE_NEGATIVE_BALANCE)
        recommendations.append(RECOMMEND_STOCK_VALIDATION)

    corrections = [e for e in entries if e.is_correction]
    if len(corrections) > max_corrections:
        patterns.append(f"High number of corrections: {len(corrections)}")
        causes.append(CAUSE_FREQUENT_CORRECTIONS)
        recommendations.append(RECOMMEND_PROCESS_REVIEW)

    recommendations.extend(_DIRECTION_ADVICE.get(variance_type, ()))

    if not missing and not patterns:
        causes.append(CAUSE_NO_ANOMALIES)
        recommendations.append(RECOMMEND_PHYSICAL_COUNT)
        recommendations.append(RECOMMEND_BEGINNING_INVENTORY)

    logger.debug("investigation_rules_evaluated", extra={
        "entry_count": len(entries),
        "pattern_count": len(patterns),
        "balance_mismatch_count": len(mismatches),
        "missing_transactions": missing,
    })

    return InvestigationAnalysis(
        missing_transactions=missing,
        unusual_patterns=tuple(patterns),
        suspected_causes=tuple(causes),
        recommendations=tuple(recommendations),
        balance_mismatches=tuple(mismatches),
    )
