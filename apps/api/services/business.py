"""Cash drawer ledger (money added to / withdrawn from the business)."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.business_transaction import BusinessTransaction
from services.errors import LedgerValidationError
from services.serialization import row_to_dict
from services.transactions import run_in_transaction

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("add", "withdraw")


async def record_business_transaction(
    db: AsyncSession,
    *,
    kind: str,
    amount: Any,
    description: Optional[str] = None,
    transaction_date: Optional[date] = None,
) -> Dict[str, Any]:
    if kind not in TRANSACTION_TYPES:
        raise LedgerValidationError(f"Unknown business transaction type {kind!r}")
    try:
        value = float(amount)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError("Amount must be a number") from exc
    if value <= 0:
        raise LedgerValidationError("Amount must be greater than 0")

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        entry = BusinessTransaction(
            business_transaction_id=str(uuid.uuid4()),
            type=kind,
            amount=value,
            description=(description or "").strip() or None,
            transaction_date=transaction_date or date.today(),
        )
        session.add(entry)
        await session.flush()
        logger.info("business_transaction id=%s type=%s amount=%.2f", entry.business_transaction_id, kind, value)
        return row_to_dict(entry)

    return await run_in_transaction(db, _work)


async def list_business_transactions(db: AsyncSession) -> Dict[str, Any]:
    """All cash movements, newest first, with the running cash balance."""
    result = await db.execute(
        select(BusinessTransaction).order_by(
            BusinessTransaction.transaction_date.desc(),
            BusinessTransaction.created_date.desc(),
        )
    )
    entries = result.scalars().all()
    balance = sum(entry.amount if entry.type == "add" else -entry.amount for entry in entries)
    return {
        "transactions": [row_to_dict(entry) for entry in entries],
        "balance": round(balance, 2),
    }
