"""Credit balances and vendor credit purchases router."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from services.balances import list_credit_balances
from services.ledger import audit_balances, delete_purchase, list_vendor_transactions, record_purchase

router = APIRouter()


class PurchaseCreditsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vendor_id: str = Field(alias="vendorID", min_length=1)
    service_name: str = Field(alias="serviceName", min_length=1)
    credits: int = Field(gt=0)
    price_usd: float = Field(default=0, ge=0, alias="priceUSD")
    purchase_date: Optional[date] = Field(default=None, alias="purchaseDate")
    notes: Optional[str] = None


@router.get("/credit-balances")
async def get_credit_balances(db: AsyncSession = Depends(get_db)):
    return await list_credit_balances(db)


@router.get("/credit-balances/low")
async def get_low_credit_balances(
    threshold: Optional[int] = Query(default=None, ge=0),
    db: AsyncSession = Depends(get_db),
):
    limit = settings.LOW_CREDIT_THRESHOLD if threshold is None else threshold
    return await list_credit_balances(db, below=limit)


@router.get("/credit-balances/audit")
async def get_credit_balance_audit(db: AsyncSession = Depends(get_db)):
    return await audit_balances(db)


@router.get("/vendor-transactions")
async def get_vendor_transactions(db: AsyncSession = Depends(get_db)):
    return await list_vendor_transactions(db)


@router.post("/vendor-transactions")
async def purchase_credits(request: PurchaseCreditsRequest, db: AsyncSession = Depends(get_db)):
    result = await record_purchase(
        db,
        vendor_id=request.vendor_id,
        service_name=request.service_name,
        credits=request.credits,
        price_usd=request.price_usd,
        purchase_date=request.purchase_date,
        notes=request.notes,
    )
    return {"success": True, "message": "Credits purchased successfully", **result}


@router.delete("/vendor-transactions/{transaction_id}")
async def remove_vendor_transaction(transaction_id: str, db: AsyncSession = Depends(get_db)):
    result = await delete_purchase(db, transaction_id)
    return {"success": True, "message": "Deleted", **result}
