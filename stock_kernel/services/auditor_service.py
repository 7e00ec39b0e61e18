"""
AuditorService -- append-only audit log for reconciliation actions.

Responsibility:
    Persist one AuditEventModel row per AuditRecord: auto-fix corrections
    and products locked for investigation.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction so the audit row commits or rolls back together with the
    ledger write it describes.
"""

import json

from stock_kernel.domain.ledger import AuditRecord
from stock_kernel.domain.repositories import AuditLogWriter
from stock_kernel.logging_config import get_logger
from stock_kernel.models.audit_event import AuditEventModel
from stock_kernel.services.base import BaseService

logger = get_logger("services.auditor")


def _json_safe(metadata) -> dict:
    # Decimal, UUID and datetime values become strings in the JSON column
    return json.loads(json.dumps(dict(metadata), default=str))


class AuditorService(BaseService, AuditLogWriter):
    """Writes audit records through the caller's session."""

    def record(self, audit: AuditRecord) -> None:
        model = AuditEventModel(
            business_id=audit.business_id,
            user_id=audit.actor.user_id,
            username=audit.actor.username,
            action=audit.action,
            entity_type=audit.entity_type,
            entity_ids=list(audit.entity_ids),
            description=audit.description,
            audit_metadata=_json_safe(audit.metadata),
            created_at=audit.created_at,
        )
        self.session.add(model)
        self.session.flush()

        logger.info("audit_recorded", extra={
            "audit_id": str(model.id),
            "action": audit.action,
            "entity_type": audit.entity_type,
            "entity_ids": list(audit.entity_ids),
        })
