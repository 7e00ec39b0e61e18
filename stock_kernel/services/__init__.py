"""SQLAlchemy write services implementing the kernel repository interfaces."""

from stock_kernel.services.auditor_service import AuditorService
from stock_kernel.services.ledger_service import LedgerService
from stock_kernel.services.product_lock_service import ProductLockService

__all__ = ["AuditorService", "LedgerService", "ProductLockService"]
