"""
Module: stock_kernel.models.stock_record
Responsibility: ORM persistence for the materialized current-quantity cache,
    one row per (variation, location).  Business operations update it as a
    side effect, independently of the ledger; it is the figure the ledger is
    reconciled against.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (product_variation_id, location_id) (unique constraint).

Audit relevance:
    Auto-fix treats this quantity as ground truth and writes a correction
    entry bringing the ledger's running balance up to it.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base


class VariationLocationStockModel(Base):
    """Current on-hand quantity per (variation, location)."""

    __tablename__ = "variation_location_details"

    __table_args__ = (
        UniqueConstraint(
            "product_variation_id", "location_id",
            name="uq_variation_location",
        ),
        Index("idx_vld_business_location", "business_id", "location_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(nullable=False)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id"), nullable=False,
    )
    product_variation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("product_variations.id"), nullable=False,
    )
    location_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("business_locations.id"), nullable=False,
    )
    qty_available: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return (
            f"<VariationLocationStock variation={self.product_variation_id} "
            f"location={self.location_id} qty={self.qty_available}>"
        )
