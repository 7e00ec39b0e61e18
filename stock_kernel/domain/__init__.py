"""
Pure domain layer.

Immutable DTOs, repository interfaces, the clock abstraction and the
cancellation token.  NO dependencies on SQLAlchemy, the database or I/O.
"""

from stock_kernel.domain.cancellation import CancellationToken
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.ledger import (
    RECONCILIATION_REFERENCE_TYPE,
    Actor,
    AuditRecord,
    CorrectionHistoryEntry,
    LedgerEntry,
    LedgerSnapshot,
    MovementType,
    NewLedgerEntry,
    PairKey,
    StockRecord,
)
from stock_kernel.domain.repositories import (
    AuditLogWriter,
    LedgerRepository,
    MaterializedStockRepository,
    ProductLockGateway,
    RepositoryBundle,
    UnitOfWork,
)

__all__ = [
    "Actor",
    "AuditLogWriter",
    "AuditRecord",
    "CancellationToken",
    "Clock",
    "CorrectionHistoryEntry",
    "DeterministicClock",
    "LedgerEntry",
    "LedgerRepository",
    "LedgerSnapshot",
    "MaterializedStockRepository",
    "MovementType",
    "NewLedgerEntry",
    "PairKey",
    "ProductLockGateway",
    "RECONCILIATION_REFERENCE_TYPE",
    "RepositoryBundle",
    "StockRecord",
    "SystemClock",
    "UnitOfWork",
]
