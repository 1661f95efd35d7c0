# Overview: Transaction boundary for multi-row mutations; wraps an injected session.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerPosError, PersistenceError


logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Owns the commit/rollback discipline for one SQLAlchemy session.

    Services never commit on their own: every atomic unit of work (sale
    creation, payment/purchase mutation plus balance adjustment) runs inside
    `atomic()`. Any exception rolls the whole unit back; SQLAlchemy errors are
    re-raised as PersistenceError so callers see one failure type for
    "the database let us down".
    """

    def __init__(self, session):
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    def _begin_immediate(self) -> None:
        # SQLite only takes the write lock at the first write; grabbing it up
        # front makes concurrent writers queue instead of failing mid-way.
        if self.dialect_name != "sqlite":
            return
        raw = self.session.connection().connection.dbapi_connection
        if not raw.in_transaction:
            self.session.execute(text("BEGIN IMMEDIATE"))

    @contextmanager
    def atomic(self):
        try:
            self._begin_immediate()
            yield self.session
            self.session.commit()
        except LedgerPosError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Transaction rolled back after database error")
            raise PersistenceError(details={"reason": exc.__class__.__name__}) from exc
        except Exception:
            self.session.rollback()
            raise
