"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Common constructor and session-handling contract for every SQLAlchemy
    write path (ledger appends, audit records, product locks).

Invariants enforced:
    Services flush within the caller's transaction and never commit or
    rollback themselves.  The UnitOfWork owns commit/rollback, so a
    correction entry and its audit record land atomically or not at all.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """Abstract base class for kernel write services."""

    def __init__(self, session: Session):
        self.session = session
