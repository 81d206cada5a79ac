# Overview: Transaction boundaries and row locking shared by the ledger coordinators.

from __future__ import annotations

from typing import Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import LedgerError, TransactionFailure

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite begin_write() serializes writers instead.
    """
    return query.with_for_update()


def begin_write(session: Session) -> None:
    """
    Start the unit of work holding the write lock.

    SQLite: BEGIN IMMEDIATE takes the RESERVED lock before the first read, so
    two sales cannot both pass a stock check before either decrements. The
    connection timeout bounds how long a second writer waits.
    """
    if session.get_bind().dialect.name != "sqlite":
        return
    if session.connection().connection.dbapi_connection.in_transaction:
        # Driver already holds a transaction; locks are taken on first write
        return
    session.execute(text("BEGIN IMMEDIATE"))


def run_in_transaction(session: Session, func: Callable[[], T], *, description: str = "operation") -> T:
    """
    Execute one atomic coordinator operation.

    func does its reads and writes and commits on success. Any failure rolls
    the whole unit back:
    - LedgerError (NotFound, InvalidRequest, ...) is re-raised as is
    - store errors (lock timeout, stale version, constraint violation) become
      TransactionFailure

    There is no automatic retry; the caller resubmits.
    """
    try:
        return func()
    except LedgerError:
        session.rollback()
        raise
    except (SQLAlchemyError, StaleDataError) as exc:
        session.rollback()
        raise TransactionFailure(
            f"{description} could not be committed",
            details={"cause": exc.__class__.__name__},
        ) from exc
    except Exception:
        session.rollback()
        raise
