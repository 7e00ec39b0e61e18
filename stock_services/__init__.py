"""
stock_services -- Package init and public API.

Responsibility:
    Orchestration services that compose the pure engines
    (stock_engines/) with the repository interfaces of stock_kernel.
    This is the only layer that opens transactions or reads the clock.

Architecture position:
    Services -- orchestration over engines + kernel domain.

    Dependency direction (checked by tests/architecture/test_layer_boundaries.py):
        stock_services/ -> stock_engines/  (allowed)
        stock_services/ -> stock_kernel/domain, exceptions, logging (allowed)
        stock_services/ -> sqlalchemy      (FORBIDDEN)
        stock_engines/  -> stock_services/ (FORBIDDEN)
        stock_kernel/   -> stock_services/ (FORBIDDEN)
"""

from stock_kernel.logging_config import get_logger

logger = get_logger("services")

from stock_services.auto_fix_service import (
    AutoFixDetail,
    AutoFixExecutor,
    AutoFixResult,
    BusinessLockRegistry,
)
from stock_services.detector import DetectionResult, VarianceDetector
from stock_services.investigation_service import InvestigationResult, VarianceInvestigator
from stock_services.reconciliation_service import ProductLockResult, StockReconciliationService
from stock_services.valuation_service import (
    InventoryValuation,
    InventoryValuationService,
    LocationValuation,
)

__all__ = [
    "AutoFixDetail",
    "AutoFixExecutor",
    "AutoFixResult",
    "BusinessLockRegistry",
    "DetectionResult",
    "InventoryValuation",
    "InventoryValuationService",
    "InvestigationResult",
    "LocationValuation",
    "ProductLockResult",
    "StockReconciliationService",
    "VarianceDetector",
    "VarianceInvestigator",
]
