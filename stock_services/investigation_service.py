"""
stock_services.investigation_service -- Root-cause analysis for one pair.

Responsibility:
    Recompute the variance of a single (variation, location) pair, fetch
    its recent ledger entries and run the investigation rules in
    ``stock_engines.investigation``.

Architecture position:
    Services -- orchestration over the repository interfaces.  Read-only.

Invariants enforced:
    - A pair without variance yields a benign result (variance None, no
      transactions, "No variance detected" / "No action required").
    - A pair whose variance could not be computed raises
      VarianceComputationError instead of reporting a benign result.
    - At most ``transaction_limit`` entries newer than ``days_back`` days
      are analysed, newest first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from stock_engines.investigation import (
    InvestigationAnalysis,
    analyze_transactions,
    no_variance_analysis,
)
from stock_engines.variance import VarianceRecord
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.ledger import LedgerEntry
from stock_kernel.domain.repositories import UnitOfWork
from stock_kernel.exceptions import InvalidArgumentError, VarianceComputationError
from stock_kernel.logging_config import get_logger
from stock_services.detector import VarianceDetector

logger = get_logger("services.investigation")


@dataclass(frozen=True)
class InvestigationResult:
    variance: VarianceRecord | None
    transactions: tuple[LedgerEntry, ...] = ()
    analysis: InvestigationAnalysis = field(default_factory=no_variance_analysis)


class VarianceInvestigator:
    """Explains why one pair's ledger and materialized balances disagree."""

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        detector: VarianceDetector,
        clock: Clock | None = None,
        transaction_limit: int = 100,
        gap_days: int = 30,
        balance_tolerance: Decimal = Decimal("0.01"),
        max_corrections: int = 5,
    ):
        self._uow = unit_of_work
        self._detector = detector
        self._clock = clock or SystemClock()
        self._transaction_limit = transaction_limit
        self._gap_days = gap_days
        self._balance_tolerance = balance_tolerance
        self._max_corrections = max_corrections

    def investigate(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        days_back: int = 90,
    ) -> InvestigationResult:
        if days_back <= 0:
            raise InvalidArgumentError("days_back", days_back, "must be a positive integer")

        with self._uow.transaction() as repos:
            detection = self._detector.detect_in(
                repos, business_id, location_id, {variation_id},
            )
            for failure in detection.failures:
                if (failure.variation_id, failure.location_id) == (variation_id, location_id):
                    raise VarianceComputationError(variation_id, location_id, failure.error)

            variance = detection.find(variation_id, location_id)
            if variance is None:
                logger.info("investigation_no_variance", extra={
                    "business_id": business_id,
                    "variation_id": variation_id,
                    "location_id": location_id,
                })
                return InvestigationResult(variance=None)

            since = self._clock.now() - timedelta(days=days_back)
            entries = repos.ledger.list_recent_entries(
                business_id, variation_id, location_id,
                limit=self._transaction_limit, since=since,
            )

        analysis = analyze_transactions(
            entries,
            variance.system_balance,
            variance.variance_type,
            gap_days=self._gap_days,
            balance_tolerance=self._balance_tolerance,
            max_corrections=self._max_corrections,
        )

        logger.info("investigation_completed", extra={
            "business_id": business_id,
            "variation_id": variation_id,
            "location_id": location_id,
            "variance": str(variance.variance),
            "entry_count": len(entries),
            "missing_transactions": analysis.missing_transactions,
            "pattern_count": len(analysis.unusual_patterns),
        })
        return InvestigationResult(
            variance=variance,
            transactions=tuple(entries),
            analysis=analysis,
        )
