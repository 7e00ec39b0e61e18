"""Read-only SQLAlchemy selectors returning domain DTOs."""

from stock_kernel.selectors.stock_selector import StockRecordSelector

__all__ = ["StockRecordSelector"]
