"""
Stock Kernel - ledger reconciliation foundation

Append-only stock movement ledger with:
- Materialized balance cache reconciled against the ledger
- Typed, coded exceptions
- Structured JSON logging
- Storage behind injectable repository interfaces
"""

__version__ = "0.1.0"
