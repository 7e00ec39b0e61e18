"""
Module: stock_kernel.db.unit_of_work
Responsibility: SQLAlchemy UnitOfWork binding the ledger, stock, audit and
    product-lock repositories to one session per transaction.
Architecture position: Kernel > DB.  The only place the reconciliation core
    meets a concrete storage technology; services receive it as the abstract
    stock_kernel.domain.repositories.UnitOfWork.

Invariants enforced:
    - Commit on normal exit, rollback on exception, session always closed.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker

from stock_kernel.domain.repositories import RepositoryBundle, UnitOfWork
from stock_kernel.logging_config import get_logger
from stock_kernel.selectors.stock_selector import StockRecordSelector
from stock_kernel.services.auditor_service import AuditorService
from stock_kernel.services.ledger_service import LedgerService
from stock_kernel.services.product_lock_service import ProductLockService

logger = get_logger("db.unit_of_work")


def bundle_for_session(session: Session) -> RepositoryBundle:
    """Repositories sharing the given session."""
    return RepositoryBundle(
        ledger=LedgerService(session),
        stock=StockRecordSelector(session),
        audit=AuditorService(session),
        product_locks=ProductLockService(session),
    )


class SqlAlchemyUnitOfWork(UnitOfWork):
    """One session (and transaction) per ``transaction()`` block."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator[RepositoryBundle]:
        session = self._session_factory()
        try:
            yield bundle_for_session(session)
            session.commit()
        except Exception:
            session.rollback()
            logger.warning("unit_of_work_rolled_back", exc_info=True)
            raise
        finally:
            session.close()
