"""Customer reference data router."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.ledger import list_sales
from services.reference import create_customer, list_customers

router = APIRouter()


class CreateCustomerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: Optional[str] = None
    address: Optional[str] = None
    internal_notes: Optional[str] = Field(default=None, alias="internalNotes")


@router.get("/customers")
async def get_customers(db: AsyncSession = Depends(get_db)):
    return await list_customers(db)


@router.post("/customers")
async def add_customer(request: CreateCustomerRequest, db: AsyncSession = Depends(get_db)):
    customer = await create_customer(db, request.model_dump(exclude_none=True))
    return {"success": True, "message": "Customer added successfully", "customer": customer}


@router.get("/customers/{customer_id}/transactions")
async def get_customer_transactions(customer_id: str, db: AsyncSession = Depends(get_db)):
    return await list_sales(db, customer_id=customer_id)
