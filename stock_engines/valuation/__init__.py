"""
Valuation - Pure cost layer functions for FIFO/LIFO/weighted-average costing.

Pure domain types only. The ledger-backed InventoryValuationService lives in
stock_services.valuation_service.
"""

from stock_engines.valuation.cost_layer import (
    CostLayer,
    CostMethod,
    LayerConsumptionResult,
    fifo_consume,
    lifo_consume,
    weighted_average_cost,
)

__all__ = [
    "CostLayer",
    "CostMethod",
    "LayerConsumptionResult",
    "fifo_consume",
    "lifo_consume",
    "weighted_average_cost",
]
