"""
stock_services.auto_fix_service -- Writes correction entries for small variances.

Responsibility:
    Re-run detection, keep the variances the policy marks auto-fixable
    (optionally narrowed to target variation ids) and, per variance, append
    one correction ledger entry plus one audit record in a single
    transaction.  Corrections bring the ledger into line with the
    materialized quantity; the materialized record is never changed.

Architecture position:
    Services -- orchestration over the repository interfaces.  Uses the
    VarianceDetector for the read side and UnitOfWork transactions for
    each write.

Invariants enforced:
    - Correction entry: movement type ``correction``, quantity_delta ==
      variance, balance_after == system balance, unit and total cost 0,
      reference type ``Reconciliation``, one ``AUTO-RECON-<millis>``
      reference shared by every correction of the run.  The correction is
      stamped no earlier than the entry it corrects, so it becomes the
      latest entry even when another writer's clock runs ahead.
    - Re-check-then-write: inside the per-pair transaction the stock record
      is re-read FOR UPDATE and the latest ledger entry re-read; if either
      balance moved since detection the item fails with VarianceChangedError
      and nothing is written for it.
    - Per-item isolation: one failing item never aborts the others.
    - Single writer per business: a second concurrent run for the same
      business raises ReconciliationInProgressError immediately.

Failure modes:
    - ReconciliationInProgressError -- lock held by another run.
    - ReconciliationCancelledError -- token cancelled during detection,
      before anything is written.  A token cancelled between items stops
      the run and returns the partial AutoFixResult with ``cancelled`` set;
      corrections already committed stay committed and listed.
    - Per-item errors (including VarianceChangedError and store failures)
      are reported on AutoFixResult, not raised.
"""

from __future__ import annotations

import threading
from collections.abc import Collection, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from stock_engines.variance import VarianceRecord, format_quantity
from stock_kernel.domain.cancellation import CancellationToken
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.ledger import (
    RECONCILIATION_REFERENCE_TYPE,
    Actor,
    AuditRecord,
    LedgerEntry,
    MovementType,
    NewLedgerEntry,
)
from stock_kernel.domain.repositories import UnitOfWork
from stock_kernel.exceptions import ReconciliationInProgressError, VarianceChangedError
from stock_kernel.logging_config import LogContext, get_logger
from stock_services.detector import VarianceDetector

logger = get_logger("services.auto_fix")

AUTO_FIX_ACTION = "INVENTORY_RECONCILIATION_AUTO_FIX"
STOCK_TRANSACTION_ENTITY = "STOCK_TRANSACTION"

_ZERO = Decimal("0")


class BusinessLockRegistry:
    """
    In-process writer lock per business.

    Acquisition never blocks: a held lock means another run is writing
    corrections for the same business, and waiting would only re-apply
    work that run is already doing.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def _lock_for(self, business_id: int) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(business_id, threading.Lock())

    def is_locked(self, business_id: int) -> bool:
        return self._lock_for(business_id).locked()

    @contextmanager
    def hold(self, business_id: int) -> Iterator[None]:
        lock = self._lock_for(business_id)
        if not lock.acquire(blocking=False):
            raise ReconciliationInProgressError(business_id)
        try:
            yield
        finally:
            lock.release()


_DEFAULT_LOCKS = BusinessLockRegistry()


@dataclass(frozen=True)
class AutoFixDetail:
    """Outcome for one attempted variance."""

    variation_id: int
    location_id: int
    product_name: str
    variance: Decimal
    success: bool
    correction_id: UUID | None = None
    error: str | None = None


@dataclass(frozen=True)
class AutoFixResult:
    fixed: int = 0
    errors: tuple[str, ...] = ()
    details: tuple[AutoFixDetail, ...] = field(default=())
    reference_id: str | None = None
    cancelled: bool = False  # stopped by the cancellation token before every item ran

    @property
    def attempted(self) -> int:
        return len(self.details)


def correction_notes(variance: VarianceRecord) -> str:
    return (
        f"Auto-reconciliation: Ledger {format_quantity(variance.ledger_balance)} -> "
        f"System {format_quantity(variance.system_balance)} "
        f"(Variance: {format_quantity(variance.variance)})"
    )


class AutoFixExecutor:
    """Applies correction entries for auto-fixable variances."""

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        detector: VarianceDetector,
        clock: Clock | None = None,
        lock_registry: BusinessLockRegistry | None = None,
    ):
        self._uow = unit_of_work
        self._detector = detector
        self._clock = clock or SystemClock()
        self._locks = lock_registry or _DEFAULT_LOCKS

    def execute(
        self,
        business_id: int,
        actor: Actor,
        location_id: int | None = None,
        target_variation_ids: Collection[int] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AutoFixResult:
        """
        Correct every auto-fixable variance in scope.

        An empty or omitted ``target_variation_ids`` means every variation.
        """
        with self._locks.hold(business_id), LogContext.bind(
            business_id=business_id, actor_id=actor.user_id,
        ):
            targets = set(target_variation_ids) if target_variation_ids else None
            detection = self._detector.detect(
                business_id, location_id, targets, cancellation,
            )
            fixable = [
                v for v in detection.variances
                if v.auto_fixable and v.variance != 0
            ]

            started_at = self._clock.now()
            reference_id = f"AUTO-RECON-{int(started_at.timestamp() * 1000)}"

            logger.info("auto_fix_started", extra={
                "business_id": business_id,
                "location_id": location_id,
                "candidate_count": len(fixable),
                "reference_id": reference_id,
            })

            fixed = 0
            cancelled = False
            errors: list[str] = []
            details: list[AutoFixDetail] = []
            for processed, variance in enumerate(fixable):
                if cancellation is not None and cancellation.cancelled:
                    cancelled = True
                    logger.warning("auto_fix_cancelled", extra={
                        "business_id": business_id,
                        "reference_id": reference_id,
                        "processed": processed,
                        "remaining": len(fixable) - processed,
                    })
                    break
                try:
                    correction = self._fix_one(business_id, actor, variance, reference_id)
                except Exception as exc:
                    logger.warning("auto_fix_item_failed", extra={
                        "business_id": business_id,
                        "variation_id": variance.variation_id,
                        "location_id": variance.location_id,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                        "error": str(exc),
                    })
                    errors.append(
                        f"{variance.product_name} ({variance.variation_name}): {exc}"
                    )
                    details.append(AutoFixDetail(
                        variation_id=variance.variation_id,
                        location_id=variance.location_id,
                        product_name=variance.product_name,
                        variance=variance.variance,
                        success=False,
                        error=str(exc),
                    ))
                    continue

                fixed += 1
                details.append(AutoFixDetail(
                    variation_id=variance.variation_id,
                    location_id=variance.location_id,
                    product_name=variance.product_name,
                    variance=variance.variance,
                    success=True,
                    correction_id=correction.id,
                ))

            logger.info("auto_fix_completed", extra={
                "business_id": business_id,
                "reference_id": reference_id,
                "fixed": fixed,
                "error_count": len(errors),
                "cancelled": cancelled,
            })
            return AutoFixResult(
                fixed=fixed,
                errors=tuple(errors),
                details=tuple(details),
                reference_id=reference_id,
                cancelled=cancelled,
            )

    def _fix_one(
        self,
        business_id: int,
        actor: Actor,
        variance: VarianceRecord,
        reference_id: str,
    ) -> LedgerEntry:
        with self._uow.transaction() as repos:
            stock = repos.stock.get_stock_record(
                business_id, variance.variation_id, variance.location_id, for_update=True,
            )
            latest = repos.ledger.get_latest_entry(
                business_id, variance.variation_id, variance.location_id,
            )
            current_system = stock.quantity if stock is not None else _ZERO
            current_ledger = latest.balance_after if latest is not None else _ZERO
            if (
                current_system != variance.system_balance
                or current_ledger != variance.ledger_balance
            ):
                raise VarianceChangedError(
                    variance.variation_id,
                    variance.location_id,
                    detected_ledger=variance.ledger_balance,
                    detected_system=variance.system_balance,
                    current_ledger=current_ledger,
                    current_system=current_system,
                )

            now = self._clock.now()
            # Latest is decided by created_at; never stamp before the entry being corrected
            entry_at = max(now, latest.created_at) if latest is not None else now
            correction = repos.ledger.append_entry(NewLedgerEntry(
                business_id=business_id,
                product_id=variance.product_id,
                variation_id=variance.variation_id,
                location_id=variance.location_id,
                movement_type=MovementType.CORRECTION.value,
                quantity_delta=variance.variance,
                balance_after=variance.system_balance,
                created_at=entry_at,
                reference_type=RECONCILIATION_REFERENCE_TYPE,
                reference_id=reference_id,
                actor_id=actor.user_id,
                actor_name=actor.username,
                notes=correction_notes(variance),
            ))

            repos.audit.record(AuditRecord(
                business_id=business_id,
                actor=actor,
                action=AUTO_FIX_ACTION,
                entity_type=STOCK_TRANSACTION_ENTITY,
                entity_ids=(str(correction.id),),
                description=(
                    f"Auto-reconciled variance for {variance.product_name} "
                    f"({variance.variation_name}) at {variance.location_name}"
                ),
                created_at=now,
                metadata={
                    "variation_id": variance.variation_id,
                    "location_id": variance.location_id,
                    "product_name": variance.product_name,
                    "ledger_balance": variance.ledger_balance,
                    "system_balance": variance.system_balance,
                    "variance": variance.variance,
                    "variance_value": variance.variance_value,
                    "fixed": True,
                    "correction_id": correction.id,
                },
            ))
            return correction
