"""
ProductLockService -- SQLAlchemy ProductLockGateway.

Sets a product's status to inactive so the host application stops
accepting movements for it.  The reconciliation core only decides which
product ids qualify; this class is the consumer-side capability it calls.
"""

from sqlalchemy import update

from stock_kernel.domain.repositories import ProductLockGateway
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import PRODUCT_STATUS_INACTIVE, ProductModel
from stock_kernel.services.base import BaseService

logger = get_logger("services.product_lock")


class ProductLockService(BaseService, ProductLockGateway):

    def lock_product(self, business_id: int, product_id: int) -> None:
        result = self.session.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.business_id == business_id)
            .values(status=PRODUCT_STATUS_INACTIVE)
        )
        self.session.flush()
        logger.info("product_locked", extra={
            "business_id": business_id,
            "product_id": product_id,
            "rows": result.rowcount,
        })
