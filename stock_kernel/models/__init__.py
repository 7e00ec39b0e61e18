"""ORM models for the stock reconciliation kernel."""

from stock_kernel.models.audit_event import AuditAction, AuditEntityType, AuditEventModel
from stock_kernel.models.catalog import (
    PRODUCT_STATUS_ACTIVE,
    PRODUCT_STATUS_INACTIVE,
    LocationModel,
    ProductModel,
    ProductVariationModel,
)
from stock_kernel.models.ledger_entry import StockLedgerEntryModel
from stock_kernel.models.stock_record import VariationLocationStockModel


def import_all_models() -> tuple[type, ...]:
    """Return every model class; importing this package registers their tables."""
    return (
        LocationModel,
        ProductModel,
        ProductVariationModel,
        VariationLocationStockModel,
        StockLedgerEntryModel,
        AuditEventModel,
    )


__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditEventModel",
    "LocationModel",
    "PRODUCT_STATUS_ACTIVE",
    "PRODUCT_STATUS_INACTIVE",
    "ProductModel",
    "ProductVariationModel",
    "StockLedgerEntryModel",
    "VariationLocationStockModel",
    "import_all_models",
]
