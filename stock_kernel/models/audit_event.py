"""
Module: stock_kernel.models.audit_event
Responsibility: ORM persistence for the reconciliation audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE path exists.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Actions recorded by the reconciliation engine."""

    INVENTORY_RECONCILIATION_AUTO_FIX = "INVENTORY_RECONCILIATION_AUTO_FIX"
    PRODUCT_LOCKED_FOR_INVESTIGATION = "PRODUCT_LOCKED_FOR_INVESTIGATION"


class AuditEntityType(str, Enum):
    STOCK_TRANSACTION = "STOCK_TRANSACTION"
    PRODUCT = "PRODUCT"


class AuditEventModel(Base):
    """One audit-log row: actor, action, affected entities, metadata."""

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("idx_audit_log_business_action", "business_id", "action"),
    )

    id: Mapped[UUID] = mapped_column(
        UUIDString(), primary_key=True, default=uuid4,
    )
    business_id: Mapped[int] = mapped_column(nullable=False)
    user_id: Mapped[int] = mapped_column(nullable=False)
    username: Mapped[str] = mapped_column(String(191), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_ids: Mapped[list] = mapped_column(JSON, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    audit_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} by {self.username}: {self.entity_ids}>"
