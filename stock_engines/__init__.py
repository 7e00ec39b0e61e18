"""
Module: stock_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    stock_services and scripts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel.domain, stock_kernel.exceptions and
    stock_kernel.logging_config (and sibling engine modules).
    MUST NOT import stock_services, stock_config or anything SQLAlchemy.

Invariants enforced:
    - Purity: engines never read the clock.  Report dates and windows are
      passed in by the services.
    - Decimal-only arithmetic for quantities, costs and percentages.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from stock_engines.valuation import CostLayer, fifo_consume
    from stock_engines.variance import VarianceThresholds, classify_variance
    from stock_engines.investigation import analyze_transactions
    from stock_engines.reporting import export_reconciliation_csv
"""

from stock_kernel.logging_config import get_logger

logger = get_logger("engines")

from stock_engines.investigation import (
    BalanceMismatch,
    InvestigationAnalysis,
    analyze_transactions,
    no_variance_analysis,
)
from stock_engines.reporting import (
    CSV_COLUMNS,
    DetectionFailure,
    ReconciliationReport,
    ReconciliationSummary,
    ReconciliationType,
    export_reconciliation_csv,
    summarize_variances,
)
from stock_engines.valuation import (
    CostLayer,
    CostMethod,
    LayerConsumptionResult,
    fifo_consume,
    lifo_consume,
    weighted_average_cost,
)
from stock_engines.variance import (
    DEFAULT_THRESHOLDS,
    VarianceClassification,
    VarianceMetadata,
    VarianceRecord,
    VarianceThresholds,
    VarianceType,
    classify_variance,
    compute_variance,
    format_quantity,
    variance_percentage,
)

__all__ = [
    "BalanceMismatch",
    "CSV_COLUMNS",
    "CostLayer",
    "CostMethod",
    "DEFAULT_THRESHOLDS",
    "DetectionFailure",
    "InvestigationAnalysis",
    "LayerConsumptionResult",
    "ReconciliationReport",
    "ReconciliationSummary",
    "ReconciliationType",
    "VarianceClassification",
    "VarianceMetadata",
    "VarianceRecord",
    "VarianceThresholds",
    "VarianceType",
    "analyze_transactions",
    "classify_variance",
    "compute_variance",
    "export_reconciliation_csv",
    "fifo_consume",
    "format_quantity",
    "lifo_consume",
    "no_variance_analysis",
    "summarize_variances",
    "variance_percentage",
    "weighted_average_cost",
]
