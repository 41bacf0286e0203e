"""Cash drawer router."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.business import list_business_transactions, record_business_transaction

router = APIRouter()


class CashMovementRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: float = Field(gt=0)
    transaction_date: Optional[date] = Field(default=None, alias="date")
    description: Optional[str] = None


@router.get("/business/transactions")
async def get_business_transactions(db: AsyncSession = Depends(get_db)):
    return await list_business_transactions(db)


@router.post("/business/add-money")
async def add_money(request: CashMovementRequest, db: AsyncSession = Depends(get_db)):
    entry = await record_business_transaction(
        db,
        kind="add",
        amount=request.amount,
        description=request.description,
        transaction_date=request.transaction_date,
    )
    return {"success": True, "message": "Money added successfully", "transaction": entry}


@router.post("/business/withdraw-money")
async def withdraw_money(request: CashMovementRequest, db: AsyncSession = Depends(get_db)):
    entry = await record_business_transaction(
        db,
        kind="withdraw",
        amount=request.amount,
        description=request.description,
        transaction_date=request.transaction_date,
    )
    return {"success": True, "message": "Money withdrawn successfully", "transaction": entry}
