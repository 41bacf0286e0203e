"""Unit-of-work wrapper bracketing every multi-statement ledger mutation."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransactionOrigin

from services.errors import LedgerPersistenceError, NestedTransactionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OPEN_FLAG = "ledger_unit_of_work_open"
_WRITES_FLAG = "ledger_uncommitted_writes"


@event.listens_for(Session, "after_flush")
def _note_flush(session, flush_context):
    session.info[_WRITES_FLAG] = True


@event.listens_for(Session, "do_orm_execute")
def _note_statement_write(orm_execute_state):
    if orm_execute_state.is_insert or orm_execute_state.is_update or orm_execute_state.is_delete:
        orm_execute_state.session.info[_WRITES_FLAG] = True


@event.listens_for(Session, "after_transaction_end")
def _forget_writes(session, transaction):
    if transaction.parent is None:
        session.info.pop(_WRITES_FLAG, None)


def transaction_open(db: AsyncSession) -> bool:
    return bool(db.info.get(_OPEN_FLAG))


def _foreign_state(db: AsyncSession) -> Optional[str]:
    """Describe caller-owned work on the session that a unit of work must not commit."""
    if transaction_open(db):
        return "a ledger transaction is already open on this session"
    if db.new or db.dirty or db.deleted:
        return "the session has unflushed changes"
    if not db.in_transaction():
        return None
    if db.in_nested_transaction():
        return "the session is inside a savepoint"
    transaction = db.sync_session.get_transaction()
    if transaction is not None and transaction.origin is not SessionTransactionOrigin.AUTOBEGIN:
        return "the caller began its own transaction"
    if db.info.get(_WRITES_FLAG):
        return "the session holds uncommitted writes"
    return None


async def _rollback_after(db: AsyncSession, error: BaseException) -> None:
    try:
        await db.rollback()
        logger.warning("Ledger transaction rolled back: %r", error)
    except Exception:
        # Never let a failed rollback replace the error that caused it.
        logger.exception("Rollback failed after ledger error: %r", error)


async def run_in_transaction(db: AsyncSession, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """
    Run ``work(db)`` atomically and return its result.

    Commits when ``work`` returns and rolls back when it raises (cancellation
    included), re-raising the original exception. A failed COMMIT is rolled
    back and reported as LedgerPersistenceError.

    The session must be free of caller work: an open unit of work, an
    explicit ``db.begin()``, a savepoint, or any pending or flushed write
    raises NestedTransactionError before anything runs. A read-only
    autobegun transaction is closed first.
    """
    problem = _foreign_state(db)
    if problem:
        raise NestedTransactionError(f"Cannot start a ledger transaction: {problem}.")

    if db.in_transaction():
        await db.commit()

    db.info[_OPEN_FLAG] = True
    try:
        await db.begin()
        logger.debug("Ledger transaction started")
        try:
            result = await work(db)
        except BaseException as exc:
            await _rollback_after(db, exc)
            raise

        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await _rollback_after(db, exc)
            raise LedgerPersistenceError(f"Could not commit ledger transaction: {exc}") from exc
        except BaseException as exc:
            await _rollback_after(db, exc)
            raise

        logger.debug("Ledger transaction committed")
        return result
    finally:
        db.info.pop(_OPEN_FLAG, None)
