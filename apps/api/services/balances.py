"""Credit balance accessors shared by the ledger operations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_balance import CreditBalance
from models.vendor import Vendor


async def find_balance(db: AsyncSession, vendor_id: str, service_name: Optional[str]) -> Optional[CreditBalance]:
    """Return the balance row for a vendor service, re-read from the store."""
    result = await db.execute(
        select(CreditBalance)
        .where(
            CreditBalance.vendor_id == vendor_id,
            CreditBalance.service_name == (service_name or ""),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def apply_delta(
    balance: CreditBalance,
    *,
    remaining: int = 0,
    purchased: int = 0,
    used: int = 0,
) -> CreditBalance:
    balance.remaining_credits = int(balance.remaining_credits or 0) + int(remaining)
    balance.total_purchased = int(balance.total_purchased or 0) + int(purchased)
    balance.total_used = int(balance.total_used or 0) + int(used)
    balance.last_updated = datetime.now(timezone.utc)
    return balance


def is_low_stock(balance: Optional[CreditBalance], threshold: int) -> bool:
    if balance is None:
        return False
    return int(balance.remaining_credits or 0) < int(threshold)


def serialize_balance(balance: Optional[CreditBalance], vendor_name: Optional[str] = None) -> Optional[Dict[str, Any]]:
    if balance is None:
        return None
    payload = {
        "balance_id": balance.balance_id,
        "vendor_id": balance.vendor_id,
        "service_name": balance.service_name,
        "remaining_credits": int(balance.remaining_credits or 0),
        "total_purchased": int(balance.total_purchased or 0),
        "total_used": int(balance.total_used or 0),
        "last_updated": balance.last_updated.isoformat() if balance.last_updated else None,
    }
    if vendor_name is not None:
        payload["vendor_name"] = vendor_name
    return payload


async def list_credit_balances(db: AsyncSession, *, below: Optional[int] = None) -> List[Dict[str, Any]]:
    """Balances of active vendors joined with the vendor name."""
    query = (
        select(CreditBalance, Vendor.name)
        .join(Vendor, CreditBalance.vendor_id == Vendor.vendor_id)
        .where(Vendor.is_active.is_(True))
        .order_by(Vendor.name, CreditBalance.service_name)
        .execution_options(populate_existing=True)
    )
    if below is not None:
        query = query.where(CreditBalance.remaining_credits < int(below))
    result = await db.execute(query)
    return [serialize_balance(balance, vendor_name) for balance, vendor_name in result.all()]
