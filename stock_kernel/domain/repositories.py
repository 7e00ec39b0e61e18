"""
Repository interfaces -- the only storage seam the reconciliation core sees.

Responsibility:
    Declare the abstract read/write capabilities that the detector, the
    auto-fix executor, the investigator and the valuation service need.
    Implementations (SQLAlchemy in ``stock_kernel.selectors`` and
    ``stock_kernel.services``; in-memory fakes in tests) are injected.

Architecture position:
    Kernel > Domain -- zero storage imports.  ``stock_engines`` and
    ``stock_services`` depend on these ABCs only.

Invariants enforced:
    - Ledger is append-only: ``LedgerRepository`` has no update or delete.
    - ``UnitOfWork.transaction()`` commits on normal exit and rolls back
      on exception; every write in a block is atomic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterator, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime

from stock_kernel.domain.ledger import (
    AuditRecord,
    CorrectionHistoryEntry,
    LedgerEntry,
    LedgerSnapshot,
    NewLedgerEntry,
    PairKey,
    StockRecord,
)


class MaterializedStockRepository(ABC):
    """Read access to the drift-prone current-quantity cache."""

    @abstractmethod
    def list_stock_records(
        self,
        business_id: int,
        location_id: int | None = None,
        variation_ids: Collection[int] | None = None,
    ) -> list[StockRecord]:
        """Stock records in scope, joined with display names."""
        ...

    @abstractmethod
    def get_stock_record(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        for_update: bool = False,
    ) -> StockRecord | None:
        """One stock record; ``for_update`` row-locks it where supported."""
        ...


class LedgerRepository(ABC):
    """Append-only access to the stock movement ledger."""

    @abstractmethod
    def get_latest_entry(
        self, business_id: int, variation_id: int, location_id: int,
    ) -> LedgerEntry | None:
        ...

    @abstractmethod
    def count_entries(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        since: datetime | None = None,
    ) -> int:
        ...

    @abstractmethod
    def list_recent_entries(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        limit: int,
        since: datetime | None = None,
    ) -> list[LedgerEntry]:
        """Up to ``limit`` entries, newest first."""
        ...

    @abstractmethod
    def get_snapshots(
        self,
        business_id: int,
        keys: Collection[PairKey],
        recent_since: datetime,
    ) -> dict[PairKey, LedgerSnapshot]:
        """Latest entry and counts for many pairs in one round trip.

        Pairs with no ledger entries may be absent from the result.
        """
        ...

    @abstractmethod
    def append_entry(self, entry: NewLedgerEntry) -> LedgerEntry:
        ...

    @abstractmethod
    def list_corrections(
        self,
        business_id: int,
        variation_id: int,
        location_id: int | None = None,
        limit: int = 50,
    ) -> list[CorrectionHistoryEntry]:
        """Reconciliation corrections for a variation, newest first."""
        ...

    @abstractmethod
    def list_entries_for_valuation(
        self,
        business_id: int,
        location_id: int,
        variation_ids: Collection[int] | None = None,
    ) -> list[LedgerEntry]:
        """All entries at a location, oldest first."""
        ...


class AuditLogWriter(ABC):
    """Append-only audit log."""

    @abstractmethod
    def record(self, audit: AuditRecord) -> None:
        ...


class ProductLockGateway(ABC):
    """Capability owned by the product catalog: block further movements."""

    @abstractmethod
    def lock_product(self, business_id: int, product_id: int) -> None:
        ...


@dataclass(frozen=True)
class RepositoryBundle:
    """Repositories bound to one transaction."""

    ledger: LedgerRepository
    stock: MaterializedStockRepository
    audit: AuditLogWriter
    product_locks: ProductLockGateway


class UnitOfWork(ABC):
    """Factory for transactional repository bundles."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[RepositoryBundle]:
        """Yield repositories sharing one atomic transaction."""
        ...


def iter_pair_keys(records: Sequence[StockRecord]) -> Iterator[PairKey]:
    """Distinct (variation, location) keys in input order."""
    seen: set[PairKey] = set()
    for record in records:
        if record.pair_key not in seen:
            seen.add(record.pair_key)
            yield record.pair_key
