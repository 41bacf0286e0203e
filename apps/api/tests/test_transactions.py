import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.future import select

from models.vendor import Vendor
from services.errors import LedgerPersistenceError, NestedTransactionError
from services.ledger import create_sale, record_purchase
from services.transactions import run_in_transaction, transaction_open


async def _vendor_names(session_maker):
    async with session_maker() as session:
        result = await session.execute(select(Vendor.name).order_by(Vendor.name))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_unit_of_work_commits_and_returns_result(db, session_maker):
    async def work(session):
        session.add(Vendor(vendor_id="V3", name="Vendor Three"))
        await session.flush()
        return "done"

    assert await run_in_transaction(db, work) == "done"
    assert not transaction_open(db)
    assert "Vendor Three" in await _vendor_names(session_maker)


@pytest.mark.asyncio
async def test_unit_of_work_rolls_back_and_reraises_original_error(db, session_maker):
    async def work(session):
        session.add(Vendor(vendor_id="V3", name="Vendor Three"))
        await session.flush()
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await run_in_transaction(db, work)

    assert not transaction_open(db)
    assert "Vendor Three" not in await _vendor_names(session_maker)


@pytest.mark.asyncio
async def test_nested_unit_of_work_is_rejected(db, session_maker):
    async def inner(session):
        session.add(Vendor(vendor_id="V4", name="Inner Vendor"))

    async def outer(session):
        session.add(Vendor(vendor_id="V3", name="Outer Vendor"))
        await session.flush()
        await run_in_transaction(session, inner)

    with pytest.raises(NestedTransactionError):
        await run_in_transaction(db, outer)

    names = await _vendor_names(session_maker)
    assert "Outer Vendor" not in names
    assert "Inner Vendor" not in names

    # The flag is cleared, so the session is usable again.
    async def again(session):
        session.add(Vendor(vendor_id="V5", name="Later Vendor"))

    await run_in_transaction(db, again)
    assert "Later Vendor" in await _vendor_names(session_maker)


@pytest.mark.asyncio
async def test_rollback_failure_is_logged_without_masking_original_error(db, caplog):
    async def work(session):
        session.add(Vendor(vendor_id="V3", name="Vendor Three"))
        await session.flush()
        raise KeyError("original")

    caplog.set_level(logging.WARNING, logger="services.transactions")
    with patch.object(db, "rollback", AsyncMock(side_effect=RuntimeError("disk gone"))):
        with pytest.raises(KeyError, match="original"):
            await run_in_transaction(db, work)

    assert "Rollback failed" in caplog.text
    assert not transaction_open(db)


@pytest.mark.asyncio
async def test_commit_failure_surfaces_as_persistence_error(db, session_maker):
    async def work(session):
        session.add(Vendor(vendor_id="V3", name="Vendor Three"))
        await session.flush()

    failure = OperationalError("COMMIT", {}, Exception("disk I/O error"))
    with patch.object(db, "commit", AsyncMock(side_effect=failure)):
        with pytest.raises(LedgerPersistenceError) as exc_info:
            await run_in_transaction(db, work)

    assert exc_info.value.__cause__ is failure
    assert exc_info.value.code == "persistence_error"
    assert "Vendor Three" not in await _vendor_names(session_maker)


@pytest.mark.asyncio
async def test_caller_implicit_transaction_is_closed_first(db, session_maker):
    await db.execute(text("SELECT 1"))
    assert db.in_transaction()

    async def work(session):
        session.add(Vendor(vendor_id="V3", name="Vendor Three"))

    await run_in_transaction(db, work)
    assert "Vendor Three" in await _vendor_names(session_maker)


@pytest.mark.asyncio
async def test_unit_of_work_takes_write_lock_up_front(db, ledger_engine):
    statements = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(ledger_engine.sync_engine, "before_cursor_execute", capture)
    try:
        async def work(session):
            await session.execute(select(Vendor.vendor_id))

        await run_in_transaction(db, work)
    finally:
        event.remove(ledger_engine.sync_engine, "before_cursor_execute", capture)

    assert statements[0] == "BEGIN IMMEDIATE"


@pytest.mark.asyncio
async def test_cancelled_unit_of_work_is_rolled_back(db, session_maker):
    async def work(session):
        session.add(Vendor(vendor_id="V3", name="Half Done"))
        await session.flush()
        raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await run_in_transaction(db, work)

    assert not db.in_transaction()
    assert not transaction_open(db)

    # A later unit of work on the same session must not commit the cancelled write.
    await record_purchase(db, vendor_id="V1", service_name="Premium", credits=5)
    names = await _vendor_names(session_maker)
    assert "Half Done" not in names


@pytest.mark.asyncio
async def test_caller_begun_transaction_is_rejected_not_split(db, session_maker):
    with pytest.raises(NestedTransactionError):
        async with db.begin():
            db.add(Vendor(vendor_id="V3", name="Outer Write"))
            await db.flush()
            await create_sale(db, {"customer_id": "nope", "service_name": "Premium"})

    assert not db.in_transaction()
    assert "Outer Write" not in await _vendor_names(session_maker)


@pytest.mark.asyncio
async def test_caller_pending_and_flushed_writes_are_rejected(db, session_maker):
    db.add(Vendor(vendor_id="V3", name="Pending Write"))
    with pytest.raises(NestedTransactionError):
        await record_purchase(db, vendor_id="V1", service_name="Premium", credits=5)

    await db.flush()
    assert db.in_transaction()
    with pytest.raises(NestedTransactionError):
        await record_purchase(db, vendor_id="V1", service_name="Premium", credits=5)

    await db.rollback()
    await record_purchase(db, vendor_id="V1", service_name="Premium", credits=5)
    assert "Pending Write" not in await _vendor_names(session_maker)
