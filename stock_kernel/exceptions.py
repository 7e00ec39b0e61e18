"""
Typed exception hierarchy for the stock kernel.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe), and carries its context as
attributes rather than only inside the message string.

    StockKernelError (base)
    |
    +-- InvalidArgumentError
    |
    +-- ReconciliationError
    |   +-- VarianceChangedError
    |   +-- VarianceComputationError
    |   +-- ReconciliationInProgressError
    |   +-- ReconciliationCancelledError
    |
    +-- ValuationError
        +-- UnsupportedValuationMethodError

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Argument        | INVALID_ARGUMENT              | Negative sold quantity, bad config value
----------------|-------------------------------|---------------------------------------
Reconciliation  | VARIANCE_CHANGED              | Balances moved between detection and fix
                | VARIANCE_COMPUTATION_FAILED   | Pair under investigation could not be computed
                | RECONCILIATION_IN_PROGRESS    | Second auto-fix run for the same business
                | RECONCILIATION_CANCELLED      | Cancellation token tripped mid-sweep
----------------|-------------------------------|---------------------------------------
Valuation       | UNSUPPORTED_VALUATION_METHOD  | Unknown costing method requested

Absence of a problem is never an error: an investigation with no variance
and a report with zero variances are normal results.
"""

from decimal import Decimal


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


class InvalidArgumentError(StockKernelError):
    """An argument violates a documented precondition."""

    code: str = "INVALID_ARGUMENT"

    def __init__(self, argument: str, value: object, reason: str):
        self.argument = argument
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {argument}={value!r}: {reason}")


# Reconciliation exceptions


class ReconciliationError(StockKernelError):
    """Base exception for reconciliation run errors."""

    code: str = "RECONCILIATION_ERROR"


class VarianceChangedError(ReconciliationError):
    """
    The ledger or materialized balance moved between detection and fix.

    Raised inside the per-pair transaction so the correction is never
    written against a stale reading.
    """

    code: str = "VARIANCE_CHANGED"

    def __init__(
        self,
        variation_id: int,
        location_id: int,
        detected_ledger: Decimal,
        detected_system: Decimal,
        current_ledger: Decimal,
        current_system: Decimal,
    ):
        self.variation_id = variation_id
        self.location_id = location_id
        self.detected_ledger = detected_ledger
        self.detected_system = detected_system
        self.current_ledger = current_ledger
        self.current_system = current_system
        super().__init__(
            f"Balances changed for variation {variation_id} at location "
            f"{location_id}: ledger {detected_ledger} -> {current_ledger}, "
            f"system {detected_system} -> {current_system}"
        )


class VarianceComputationError(ReconciliationError):
    """The variance of a pair could not be computed from its stock and ledger rows."""

    code: str = "VARIANCE_COMPUTATION_FAILED"

    def __init__(self, variation_id: int, location_id: int, reason: str):
        self.variation_id = variation_id
        self.location_id = location_id
        self.reason = reason
        super().__init__(
            f"Variance for variation {variation_id} at location "
            f"{location_id} could not be computed: {reason}"
        )


class ReconciliationInProgressError(ReconciliationError):
    """Another auto-fix run holds the writer lock for this business."""

    code: str = "RECONCILIATION_IN_PROGRESS"

    def __init__(self, business_id: int):
        self.business_id = business_id
        super().__init__(
            f"Auto-fix already running for business {business_id}"
        )


class ReconciliationCancelledError(ReconciliationError):
    """The caller cancelled a sweep between records."""

    code: str = "RECONCILIATION_CANCELLED"

    def __init__(self, business_id: int, processed: int):
        self.business_id = business_id
        self.processed = processed
        super().__init__(
            f"Reconciliation for business {business_id} cancelled after "
            f"{processed} record(s)"
        )


# Valuation exceptions


class ValuationError(StockKernelError):
    """Base exception for inventory valuation errors."""

    code: str = "VALUATION_ERROR"


class UnsupportedValuationMethodError(ValuationError):
    """The requested costing method is not implemented."""

    code: str = "UNSUPPORTED_VALUATION_METHOD"

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unsupported valuation method: {method}")
