"""
stock_services.detector -- Ledger-vs-system variance sweep.

Responsibility:
    For every materialized stock record in scope (business, optional
    location, optional variation ids) compute the ledger-vs-system
    variance and return the non-zero ones.  Ledger lookups for the whole
    sweep are served by one batched ``LedgerRepository.get_snapshots``
    call; the per-record maths is ``stock_engines.variance.compute_variance``.

Architecture position:
    Services -- orchestration over the repository interfaces.  Reads only;
    the sweep runs inside one ``UnitOfWork.transaction()`` so every pair is
    read from one consistent snapshot.

Invariants enforced:
    - Output excludes records with variance == 0.
    - A record whose computation raises is reported as a DetectionFailure
      and the sweep continues.
    - The cancellation token is checked before each record.

Failure modes:
    - ReconciliationCancelledError when the token is cancelled mid-sweep.
    - Store errors while listing records or loading snapshots propagate.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from datetime import timedelta

from stock_engines.reporting import DetectionFailure
from stock_engines.variance import (
    DEFAULT_THRESHOLDS,
    VarianceRecord,
    VarianceThresholds,
    compute_variance,
)
from stock_kernel.domain.cancellation import CancellationToken
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.ledger import LedgerSnapshot
from stock_kernel.domain.repositories import RepositoryBundle, UnitOfWork, iter_pair_keys
from stock_kernel.logging_config import get_logger

logger = get_logger("services.detector")


@dataclass(frozen=True)
class DetectionResult:
    """Variances found by one sweep plus the records that could not be computed."""

    variances: tuple[VarianceRecord, ...] = ()
    failures: tuple[DetectionFailure, ...] = field(default=())
    records_scanned: int = 0

    def find(self, variation_id: int, location_id: int) -> VarianceRecord | None:
        for variance in self.variances:
            if variance.pair_key == (variation_id, location_id):
                return variance
        return None


class VarianceDetector:
    """
    Compares every materialized stock record with its ledger balance.

    Contract:
        ``detect`` never writes.  Passing a RepositoryBundle to
        ``detect_in`` reuses a caller's transaction instead of opening one.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        clock: Clock | None = None,
        thresholds: VarianceThresholds = DEFAULT_THRESHOLDS,
        recent_activity_days: int = 30,
        suspicious_recent_count: int = 100,
    ):
        self._uow = unit_of_work
        self._clock = clock or SystemClock()
        self._thresholds = thresholds
        self._recent_activity_days = recent_activity_days
        self._suspicious_recent_count = suspicious_recent_count

    @property
    def thresholds(self) -> VarianceThresholds:
        return self._thresholds

    def detect(
        self,
        business_id: int,
        location_id: int | None = None,
        variation_ids: Collection[int] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> DetectionResult:
        with self._uow.transaction() as repos:
            return self.detect_in(
                repos, business_id, location_id, variation_ids, cancellation,
            )

    def detect_in(
        self,
        repos: RepositoryBundle,
        business_id: int,
        location_id: int | None = None,
        variation_ids: Collection[int] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> DetectionResult:
        logger.info("variance_detection_started", extra={
            "business_id": business_id,
            "location_id": location_id,
            "variation_filter": sorted(variation_ids) if variation_ids is not None else None,
        })

        records = repos.stock.list_stock_records(business_id, location_id, variation_ids)
        recent_since = self._clock.now() - timedelta(days=self._recent_activity_days)
        snapshots = repos.ledger.get_snapshots(
            business_id, list(iter_pair_keys(records)), recent_since,
        )

        variances: list[VarianceRecord] = []
        failures: list[DetectionFailure] = []
        for processed, record in enumerate(records):
            if cancellation is not None:
                cancellation.raise_if_cancelled(business_id, processed)
            try:
                variance = compute_variance(
                    record,
                    snapshots.get(record.pair_key, LedgerSnapshot.empty()),
                    self._thresholds,
                    self._suspicious_recent_count,
                )
            except Exception as exc:
                logger.warning("variance_detection_record_failed", extra={
                    "business_id": business_id,
                    "variation_id": record.variation_id,
                    "location_id": record.location_id,
                    "error": str(exc),
                }, exc_info=True)
                failures.append(DetectionFailure(
                    variation_id=record.variation_id,
                    location_id=record.location_id,
                    error=str(exc),
                ))
                continue
            if variance.variance != 0:
                variances.append(variance)

        logger.info("variance_detection_completed", extra={
            "business_id": business_id,
            "location_id": location_id,
            "records_scanned": len(records),
            "variance_count": len(variances),
            "failure_count": len(failures),
        })
        return DetectionResult(
            variances=tuple(variances),
            failures=tuple(failures),
            records_scanned=len(records),
        )
