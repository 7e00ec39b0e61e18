"""
Module: stock_kernel.models.catalog
Responsibility: Minimal ORM mapping of the host application's catalog tables
    (locations, products, product variations).  The reconciliation engine
    reads display names from them and, through ProductLockGateway, flips a
    product's status.  It never creates or deletes catalog rows.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base

PRODUCT_STATUS_ACTIVE = "active"
PRODUCT_STATUS_INACTIVE = "inactive"


class LocationModel(Base):
    """A business location (branch, warehouse) that holds stock."""

    __tablename__ = "business_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(191), nullable=False)


class ProductModel(Base):
    """A sellable product; ``status`` is the lock switch."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(191), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PRODUCT_STATUS_ACTIVE,
    )

    variations: Mapped[list[ProductVariationModel]] = relationship(
        back_populates="product",
    )


class ProductVariationModel(Base):
    """A concrete variant of a product; stock is tracked per variation."""

    __tablename__ = "product_variations"

    __table_args__ = (
        Index("idx_product_variation_product", "product_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id"), nullable=False,
    )
    name: Mapped[str | None] = mapped_column(String(191), nullable=True)
    # Fallback unit cost for valuation when a pair has no cost history
    purchase_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    product: Mapped[ProductModel] = relationship(back_populates="variations")
