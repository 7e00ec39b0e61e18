"""
Materialized stock selector.

Read-only SQLAlchemy implementation of MaterializedStockRepository.  Joins
each variation_location_details row with its product, variation and location
so the detector gets display names without per-record lookups.
"""

from collections.abc import Collection
from decimal import Decimal

from sqlalchemy import select

from stock_kernel.domain.ledger import StockRecord
from stock_kernel.domain.repositories import MaterializedStockRepository
from stock_kernel.models.catalog import LocationModel, ProductModel, ProductVariationModel
from stock_kernel.models.stock_record import VariationLocationStockModel
from stock_kernel.selectors.base import BaseSelector


class StockRecordSelector(BaseSelector, MaterializedStockRepository):
    """Materialized balances with catalog display names."""

    def _base_query(self, business_id: int):
        return (
            select(
                VariationLocationStockModel,
                ProductModel.name,
                ProductModel.sku,
                ProductVariationModel.name,
                LocationModel.name,
                ProductVariationModel.purchase_price,
            )
            .join(ProductModel, ProductModel.id == VariationLocationStockModel.product_id)
            .join(
                ProductVariationModel,
                ProductVariationModel.id == VariationLocationStockModel.product_variation_id,
            )
            .join(LocationModel, LocationModel.id == VariationLocationStockModel.location_id)
            .where(ProductModel.business_id == business_id)
        )

    def list_stock_records(
        self,
        business_id: int,
        location_id: int | None = None,
        variation_ids: Collection[int] | None = None,
    ) -> list[StockRecord]:
        stmt = self._base_query(business_id)
        if location_id is not None:
            stmt = stmt.where(VariationLocationStockModel.location_id == location_id)
        if variation_ids is not None:
            stmt = stmt.where(
                VariationLocationStockModel.product_variation_id.in_(list(variation_ids))
            )
        stmt = stmt.order_by(
            VariationLocationStockModel.location_id,
            VariationLocationStockModel.product_variation_id,
        )
        return [self._to_dto(*row) for row in self.session.execute(stmt).all()]

    def get_stock_record(
        self,
        business_id: int,
        variation_id: int,
        location_id: int,
        for_update: bool = False,
    ) -> StockRecord | None:
        stmt = self._base_query(business_id).where(
            VariationLocationStockModel.product_variation_id == variation_id,
            VariationLocationStockModel.location_id == location_id,
        )
        if for_update:
            # PostgreSQL row lock; SQLite ignores FOR UPDATE
            stmt = stmt.with_for_update(of=VariationLocationStockModel)
        row = self.session.execute(stmt).first()
        return self._to_dto(*row) if row is not None else None

    @staticmethod
    def _to_dto(
        stock: VariationLocationStockModel,
        product_name: str,
        product_sku: str | None,
        variation_name: str | None,
        location_name: str,
        purchase_price: Decimal | None,
    ) -> StockRecord:
        return StockRecord(
            business_id=stock.business_id,
            product_id=stock.product_id,
            variation_id=stock.product_variation_id,
            location_id=stock.location_id,
            quantity=stock.qty_available,
            product_name=product_name,
            product_sku=product_sku,
            variation_name=variation_name,
            location_name=location_name,
            purchase_price=purchase_price,
        )
