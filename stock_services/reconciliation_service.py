"""
stock_services.reconciliation_service -- Public facade of the reconciliation engine.

Responsibility:
    Wire the detector, auto-fix executor, investigator and valuation
    service from one ReconciliationConfig and expose the operations a
    host application calls: run a report, auto-fix, investigate a pair,
    list correction history, export CSV, lock products that need review,
    and value inventory.

Architecture position:
    Services -- the canonical entrypoint for consumers.  Receives an
    abstract UnitOfWork; the SQLAlchemy one lives in stock_kernel.db.

Invariants enforced:
    - Every component built here shares the same clock, thresholds and
      writer-lock registry.
    - Report summaries are computed from the report's own variance list.

Usage:
    from stock_kernel.db.engine import get_session_factory
    from stock_kernel.db.unit_of_work import SqlAlchemyUnitOfWork
    from stock_services import StockReconciliationService

    service = StockReconciliationService(SqlAlchemyUnitOfWork(get_session_factory()))
    report = service.run_reconciliation(business_id=1)
    result = service.auto_fix(1, Actor(user_id=7, username="ops"))
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from uuid import uuid4

from stock_config import ReconciliationConfig, get_active_config
from stock_engines.reporting import (
    ReconciliationReport,
    ReconciliationType,
    export_reconciliation_csv,
    summarize_variances,
)
from stock_engines.valuation import CostMethod
from stock_kernel.domain.cancellation import CancellationToken
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.ledger import Actor, AuditRecord, CorrectionHistoryEntry
from stock_kernel.domain.repositories import UnitOfWork
from stock_kernel.logging_config import LogContext, get_logger
from stock_services.auto_fix_service import AutoFixExecutor, AutoFixResult, BusinessLockRegistry
from stock_services.detector import VarianceDetector
from stock_services.investigation_service import InvestigationResult, VarianceInvestigator
from stock_services.valuation_service import (
    InventoryValuation,
    InventoryValuationService,
    LocationValuation,
)

logger = get_logger("services.reconciliation")

PRODUCT_LOCK_ACTION = "PRODUCT_LOCKED_FOR_INVESTIGATION"
PRODUCT_ENTITY = "PRODUCT"


@dataclass(frozen=True)
class ProductLockResult:
    locked: int
    product_ids: tuple[int, ...]


class StockReconciliationService:
    """
    Ledger-vs-system reconciliation for one store.

    Contract:
        Reads and writes only through the injected UnitOfWork.  Writes
        (auto-fix, product locks) commit per item.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        clock: Clock | None = None,
        config: ReconciliationConfig | None = None,
        lock_registry: BusinessLockRegistry | None = None,
    ):
        self._uow = unit_of_work
        self._clock = clock or SystemClock()
        self._config = config if config is not None else get_active_config()

        self.detector = VarianceDetector(
            unit_of_work,
            self._clock,
            thresholds=self._config.thresholds,
            recent_activity_days=self._config.detection.recent_activity_days,
            suspicious_recent_count=self._config.detection.suspicious_recent_count,
        )
        self.auto_fixer = AutoFixExecutor(
            unit_of_work, self.detector, self._clock, lock_registry,
        )
        investigation = self._config.investigation
        self.investigator = VarianceInvestigator(
            unit_of_work,
            self.detector,
            self._clock,
            transaction_limit=investigation.transaction_limit,
            gap_days=investigation.gap_days,
            balance_tolerance=investigation.balance_tolerance,
            max_corrections=investigation.max_corrections,
        )
        self.valuation = InventoryValuationService(
            unit_of_work,
            self._clock,
            default_method=self._config.valuation.default_method,
            acquisition_movement_types=self._config.valuation.acquisition_movement_types,
        )

    @property
    def config(self) -> ReconciliationConfig:
        return self._config

    def run_reconciliation(
        self,
        business_id: int,
        location_id: int | None = None,
        cancellation: CancellationToken | None = None,
    ) -> ReconciliationReport:
        """Detect every ledger-vs-system variance in scope and summarise it."""
        with LogContext.bind(business_id=business_id, run_id=str(uuid4())):
            detection = self.detector.detect(
                business_id, location_id, cancellation=cancellation,
            )
            report = ReconciliationReport(
                report_date=self._clock.now(),
                business_id=business_id,
                location_id=location_id,
                reconciliation_type=ReconciliationType.LEDGER_VS_SYSTEM,
                variances=detection.variances,
                summary=summarize_variances(detection.variances),
                failures=detection.failures,
            )
            logger.info("reconciliation_report_built", extra={
                "business_id": business_id,
                "location_id": location_id,
                "total_variances": report.summary.total_variances,
                "requires_investigation": report.summary.requires_investigation,
                "auto_fixable": report.summary.auto_fixable,
                "total_variance_value": str(report.summary.total_variance_value),
                "failure_count": len(report.failures),
            })
            return report

    def auto_fix(
        self,
        business_id: int,
        actor: Actor,
        location_id: int | None = None,
        target_variation_ids: Collection[int] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AutoFixResult:
        with LogContext.bind(run_id=str(uuid4())):
            return self.auto_fixer.execute(
                business_id, actor, location_id, target_variation_ids, cancellation,
            )

    def investigate(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        days_back: int | None = None,
    ) -> InvestigationResult:
        if days_back is None:
            days_back = self._config.investigation.lookback_days
        with LogContext.bind(business_id=business_id):
            return self.investigator.investigate(
                business_id, variation_id, location_id, days_back,
            )

    def history(
        self,
        business_id: int,
        variation_id: int,
        location_id: int | None = None,
        limit: int | None = None,
    ) -> list[CorrectionHistoryEntry]:
        """Reconciliation corrections for a variation, newest first."""
        if limit is None:
            limit = self._config.history_limit
        with self._uow.transaction() as repos:
            return repos.ledger.list_corrections(
                business_id, variation_id, location_id, limit,
            )

    def export_csv(self, report: ReconciliationReport) -> str:
        return export_reconciliation_csv(report)

    def lock_products_requiring_investigation(
        self,
        business_id: int,
        actor: Actor,
        location_id: int | None = None,
    ) -> ProductLockResult:
        """
        Deactivate every product with a variance that needs investigation.

        Each product is locked and audited in its own transaction.
        """
        with LogContext.bind(business_id=business_id, actor_id=actor.user_id):
            detection = self.detector.detect(business_id, location_id)
            product_ids: list[int] = []
            for variance in detection.variances:
                if variance.requires_investigation and variance.product_id not in product_ids:
                    product_ids.append(variance.product_id)

            for product_id in product_ids:
                with self._uow.transaction() as repos:
                    repos.product_locks.lock_product(business_id, product_id)
                    repos.audit.record(AuditRecord(
                        business_id=business_id,
                        actor=actor,
                        action=PRODUCT_LOCK_ACTION,
                        entity_type=PRODUCT_ENTITY,
                        entity_ids=(str(product_id),),
                        description=(
                            "Product locked due to stock variance requiring investigation"
                        ),
                        created_at=self._clock.now(),
                        metadata={
                            "reason": "Stock variance investigation",
                            "location_id": location_id,
                        },
                    ))

            logger.info("products_locked_for_investigation", extra={
                "business_id": business_id,
                "location_id": location_id,
                "product_ids": product_ids,
            })
            return ProductLockResult(locked=len(product_ids), product_ids=tuple(product_ids))

    def valuate(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        method: CostMethod | str | None = None,
    ) -> InventoryValuation:
        return self.valuation.valuate(business_id, variation_id, location_id, method)

    def valuate_location(
        self,
        business_id: int,
        location_id: int,
        method: CostMethod | str | None = None,
    ) -> LocationValuation:
        return self.valuation.valuate_location(business_id, location_id, method)
