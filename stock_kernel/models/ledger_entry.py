"""
Module: stock_kernel.models.ledger_entry
Responsibility: ORM persistence for the append-only stock movement ledger.
    Each row is one movement with the running balance of its
    (variation, location) chain after the movement.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: rows are never updated or deleted; corrections are new
      rows with movement_type = 'correction'.
    - (business_id, variation_id, location_id, sequence) is unique; sequence
      is allocated by the ledger repository as max + 1 for the pair and
      breaks ties between entries sharing a timestamp.

Audit relevance:
    Corrections written by reconciliation carry reference_type
    'Reconciliation' and a batch reference_id, so every one of them traces
    back to the run that produced it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class StockLedgerEntryModel(Base):
    """One immutable stock movement."""

    __tablename__ = "stock_ledger_entries"

    __table_args__ = (
        UniqueConstraint(
            "business_id", "variation_id", "location_id", "sequence",
            name="uq_stock_ledger_pair_sequence",
        ),
        # Query: latest entry / window for a pair
        Index(
            "idx_stock_ledger_pair_created",
            "business_id", "variation_id", "location_id", "created_at",
        ),
        # Query: reconciliation history
        Index(
            "idx_stock_ledger_reference",
            "business_id", "movement_type", "reference_type",
        ),
    )

    id: Mapped[UUID] = mapped_column(
        UUIDString(), primary_key=True, default=uuid4,
    )
    business_id: Mapped[int] = mapped_column(nullable=False)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    variation_id: Mapped[int] = mapped_column(Integer, nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)

    movement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity_delta: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    balance_after: Mapped[Decimal] = mapped_column(nullable=False)

    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    actor_id: Mapped[int | None] = mapped_column(nullable=True)
    actor_name: Mapped[str | None] = mapped_column(String(191), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StockLedgerEntry {self.id}: {self.movement_type} "
            f"{self.quantity_delta} -> {self.balance_after}>"
        )
