"""
LedgerService -- SQLAlchemy implementation of the append-only stock ledger.

Responsibility:
    Serve every LedgerRepository read the reconciliation core needs (latest
    entry, counts, recent window, batched snapshots, correction history,
    valuation scans) and append new entries with a per-pair sequence number.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction (see BaseService); the UnitOfWork commits.

Invariants enforced:
    - Append-only: there is no update or delete method.
    - Sequence monotonicity per (business, variation, location): the next
      sequence is max + 1, guarded by the unique constraint on the table.
    - Ordering: "latest" means greatest (created_at, sequence).

Failure modes:
    - IntegrityError if two writers race for the same pair sequence.  The
      auto-fix path holds a row lock on the materialized record and a
      per-business writer lock, so this only surfaces for foreign writers.

Performance:
    ``get_snapshots`` answers the whole sweep with two grouped queries per
    chunk of variation ids instead of three queries per record.
"""

from collections.abc import Collection, Iterator, Sequence
from datetime import datetime
from typing import TypeVar
from uuid import uuid4

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import aliased

from stock_kernel.domain.ledger import (
    RECONCILIATION_REFERENCE_TYPE,
    CorrectionHistoryEntry,
    LedgerEntry,
    LedgerSnapshot,
    MovementType,
    NewLedgerEntry,
    PairKey,
)
from stock_kernel.domain.repositories import LedgerRepository
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import LocationModel, ProductModel, ProductVariationModel
from stock_kernel.models.ledger_entry import StockLedgerEntryModel
from stock_kernel.services.base import BaseService

logger = get_logger("services.ledger")

# Keeps IN (...) lists well below backend parameter limits
_SNAPSHOT_CHUNK_SIZE = 500

T = TypeVar("T")

E = StockLedgerEntryModel


def _chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def to_ledger_entry(model: StockLedgerEntryModel) -> LedgerEntry:
    """Convert an ORM row to its frozen DTO."""
    return LedgerEntry(
        id=model.id,
        business_id=model.business_id,
        product_id=model.product_id,
        variation_id=model.variation_id,
        location_id=model.location_id,
        movement_type=model.movement_type,
        quantity_delta=model.quantity_delta,
        unit_cost=model.unit_cost,
        total_cost=model.total_cost,
        balance_after=model.balance_after,
        created_at=model.created_at,
        sequence=model.sequence,
        reference_type=model.reference_type,
        reference_id=model.reference_id,
        actor_id=model.actor_id,
        actor_name=model.actor_name,
        notes=model.notes,
    )


class LedgerService(BaseService, LedgerRepository):
    """Append-only ledger over the stock_ledger_entries table."""

    def _pair_filter(self, business_id: int, variation_id: int, location_id: int):
        return and_(
            E.business_id == business_id,
            E.variation_id == variation_id,
            E.location_id == location_id,
        )

    def get_latest_entry(
        self, business_id: int, variation_id: int, location_id: int,
    ) -> LedgerEntry | None:
        stmt = (
            select(E)
            .where(self._pair_filter(business_id, variation_id, location_id))
            .order_by(E.created_at.desc(), E.sequence.desc())
            .limit(1)
        )
        model = self.session.scalars(stmt).first()
        return to_ledger_entry(model) if model is not None else None

    def count_entries(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        since: datetime | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(E).where(
            self._pair_filter(business_id, variation_id, location_id)
        )
        if since is not None:
            stmt = stmt.where(E.created_at >= since)
        return int(self.session.scalar(stmt) or 0)

    def list_recent_entries(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        limit: int,
        since: datetime | None = None,
    ) -> list[LedgerEntry]:
        stmt = select(E).where(self._pair_filter(business_id, variation_id, location_id))
        if since is not None:
            stmt = stmt.where(E.created_at >= since)
        stmt = stmt.order_by(E.created_at.desc(), E.sequence.desc()).limit(limit)
        return [to_ledger_entry(m) for m in self.session.scalars(stmt)]

    def get_snapshots(
        self,
        business_id: int,
        keys: Collection[PairKey],
        recent_since: datetime,
    ) -> dict[PairKey, LedgerSnapshot]:
        wanted = set(keys)
        if not wanted:
            return {}

        latest: dict[PairKey, LedgerEntry] = {}
        counts: dict[PairKey, tuple[int, int]] = {}
        variation_ids = sorted({variation_id for variation_id, _ in wanted})
        location_ids = sorted({location_id for _, location_id in wanted})

        for chunk in _chunked(variation_ids, _SNAPSHOT_CHUNK_SIZE):
            scope = and_(
                E.business_id == business_id,
                E.variation_id.in_(chunk),
                E.location_id.in_(location_ids),
            )

            ranked = (
                select(
                    E,
                    func.row_number().over(
                        partition_by=(E.variation_id, E.location_id),
                        order_by=(E.created_at.desc(), E.sequence.desc()),
                    ).label("rn"),
                )
                .where(scope)
                .subquery()
            )
            latest_entry = aliased(E, ranked)
            for model in self.session.scalars(
                select(latest_entry).where(ranked.c.rn == 1)
            ):
                latest[(model.variation_id, model.location_id)] = to_ledger_entry(model)

            count_stmt = (
                select(
                    E.variation_id,
                    E.location_id,
                    func.count(),
                    func.sum(case((E.created_at >= recent_since, 1), else_=0)),
                )
                .where(scope)
                .group_by(E.variation_id, E.location_id)
            )
            for variation_id, location_id, total, recent in self.session.execute(count_stmt):
                counts[(variation_id, location_id)] = (int(total), int(recent or 0))

        snapshots: dict[PairKey, LedgerSnapshot] = {}
        for key in wanted:
            if key not in counts:
                continue
            total, recent = counts[key]
            snapshots[key] = LedgerSnapshot(
                latest_entry=latest.get(key),
                total_count=total,
                recent_count=recent,
            )

        logger.debug("ledger_snapshots_loaded", extra={
            "business_id": business_id,
            "requested_pairs": len(wanted),
            "pairs_with_entries": len(snapshots),
        })
        return snapshots

    def append_entry(self, entry: NewLedgerEntry) -> LedgerEntry:
        current_max = self.session.scalar(
            select(func.max(E.sequence)).where(
                self._pair_filter(entry.business_id, entry.variation_id, entry.location_id)
            )
        )
        model = E(
            id=uuid4(),
            business_id=entry.business_id,
            product_id=entry.product_id,
            variation_id=entry.variation_id,
            location_id=entry.location_id,
            sequence=(current_max or 0) + 1,
            movement_type=entry.movement_type,
            quantity_delta=entry.quantity_delta,
            unit_cost=entry.unit_cost,
            total_cost=entry.total_cost,
            balance_after=entry.balance_after,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            actor_id=entry.actor_id,
            actor_name=entry.actor_name,
            notes=entry.notes,
            created_at=entry.created_at,
        )
        self.session.add(model)
        self.session.flush()

        logger.info("ledger_entry_appended", extra={
            "entry_id": str(model.id),
            "business_id": entry.business_id,
            "variation_id": entry.variation_id,
            "location_id": entry.location_id,
            "movement_type": entry.movement_type,
            "quantity_delta": str(entry.quantity_delta),
            "balance_after": str(entry.balance_after),
            "sequence": model.sequence,
        })
        return to_ledger_entry(model)

    def list_corrections(
        self,
        business_id: int,
        variation_id: int,
        location_id: int | None = None,
        limit: int = 50,
    ) -> list[CorrectionHistoryEntry]:
        stmt = (
            select(E, ProductModel.name, ProductVariationModel.name, LocationModel.name)
            .outerjoin(ProductModel, ProductModel.id == E.product_id)
            .outerjoin(ProductVariationModel, ProductVariationModel.id == E.variation_id)
            .outerjoin(LocationModel, LocationModel.id == E.location_id)
            .where(
                E.business_id == business_id,
                E.variation_id == variation_id,
                E.movement_type == MovementType.CORRECTION.value,
                E.reference_type == RECONCILIATION_REFERENCE_TYPE,
            )
        )
        if location_id is not None:
            stmt = stmt.where(E.location_id == location_id)
        stmt = stmt.order_by(E.created_at.desc(), E.sequence.desc()).limit(limit)

        history: list[CorrectionHistoryEntry] = []
        for model, product_name, variation_name, location_name in self.session.execute(stmt):
            history.append(CorrectionHistoryEntry(
                id=model.id,
                date=model.created_at,
                product_name=product_name or "",
                variation_name=variation_name or "Default",
                location_name=location_name or "",
                quantity=model.quantity_delta,
                balance=model.balance_after,
                notes=model.notes,
                performed_by=model.actor_name or "System",
                reference_id=model.reference_id,
            ))
        return history

    def list_entries_for_valuation(
        self,
        business_id: int,
        location_id: int,
        variation_ids: Collection[int] | None = None,
    ) -> list[LedgerEntry]:
        stmt = select(E).where(
            E.business_id == business_id,
            E.location_id == location_id,
        )
        if variation_ids is not None:
            stmt = stmt.where(E.variation_id.in_(list(variation_ids)))
        stmt = stmt.order_by(E.variation_id, E.created_at, E.sequence)
        return [to_ledger_entry(m) for m in self.session.scalars(stmt)]
