"""Sales (subscriptions) and bundle router."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.ledger import (
    apply_bundle_changes,
    create_sale,
    delete_bundle,
    delete_sale,
    get_sale,
    list_bundle,
    list_sales,
    update_bundle_metadata,
    update_sale,
    update_sale_metadata,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class SaleLineRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: Optional[str] = Field(default=None, alias="customerID")
    service_name: Optional[str] = Field(default=None, alias="serviceName")
    vendor_id: Optional[str] = Field(default=None, alias="vendorID")
    vendor_service_name: Optional[str] = Field(default=None, alias="vendorServiceName")
    start_date: Optional[date] = Field(default=None, alias="startDate")
    expiration_date: Optional[date] = Field(default=None, alias="expirationDate")
    credits_used: int = Field(default=0, ge=0, alias="creditsSelected")
    amount_paid: float = Field(default=0, ge=0, alias="amountPaid")
    discount_amount: Optional[float] = Field(default=None, ge=0, alias="discountAmount")
    status: Optional[str] = None
    item_type: Optional[str] = Field(default=None, alias="itemType")
    bundle_id: Optional[str] = Field(default=None, alias="bundleID")
    order_status: Optional[str] = Field(default=None, alias="orderStatus")
    payment_type: Optional[str] = Field(default=None, alias="paymentType")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    transaction_id_ref: Optional[str] = Field(default=None, alias="transactionIdRef")
    mac_address: Optional[str] = Field(default=None, alias="macAddress")
    classification: Optional[str] = None
    notes: Optional[str] = None


class CreateSaleRequest(SaleLineRequest):
    customer_id: str = Field(alias="customerID")


class UpdateSaleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    credits_used: Optional[int] = Field(default=None, ge=0, alias="creditsUsed")
    amount_paid: Optional[float] = Field(default=None, ge=0, alias="amountPaid")
    discount_amount: Optional[float] = Field(default=None, ge=0, alias="discountAmount")
    service_name: Optional[str] = Field(default=None, alias="serviceName")
    start_date: Optional[date] = Field(default=None, alias="startDate")
    expiration_date: Optional[date] = Field(default=None, alias="expirationDate")
    status: Optional[str] = None
    item_type: Optional[str] = Field(default=None, alias="itemType")
    order_status: Optional[str] = Field(default=None, alias="orderStatus")
    payment_type: Optional[str] = Field(default=None, alias="paymentType")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    transaction_id_ref: Optional[str] = Field(default=None, alias="transactionIdRef")
    mac_address: Optional[str] = Field(default=None, alias="macAddress")
    classification: Optional[str] = None
    notes: Optional[str] = None


class OrderMetadataRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_status: Optional[str] = Field(default=None, alias="orderStatus")
    payment_type: Optional[str] = Field(default=None, alias="paymentType")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    transaction_id_ref: Optional[str] = Field(default=None, alias="transactionIdRef")
    notes: Optional[str] = None


class BundleChangesRequest(BaseModel):
    adds: List[SaleLineRequest] = Field(default_factory=list)
    updates: List[UpdateSaleRequest] = Field(default_factory=list)
    removes: List[str] = Field(default_factory=list)


@router.get("/subscriptions")
async def list_subscriptions(
    customer_id: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await list_sales(db, customer_id=customer_id)


@router.post("/subscriptions")
async def create_subscription(request: CreateSaleRequest, db: AsyncSession = Depends(get_db)):
    result = await create_sale(db, request.model_dump(exclude_none=True))
    return {"success": True, "message": "Subscription added successfully", **result}


@router.get("/subscriptions/{subscription_id}")
async def get_subscription(subscription_id: str, db: AsyncSession = Depends(get_db)):
    return await get_sale(db, subscription_id)


@router.put("/subscriptions/{subscription_id}")
async def update_subscription(
    subscription_id: str,
    request: UpdateSaleRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await update_sale(db, subscription_id, request.model_dump(exclude_none=True, exclude={"id"}))
    return {"success": True, **result}


@router.put("/subscriptions/{subscription_id}/metadata")
async def update_subscription_metadata(
    subscription_id: str,
    request: OrderMetadataRequest,
    db: AsyncSession = Depends(get_db),
):
    await update_sale_metadata(db, subscription_id, request.model_dump(exclude_none=True))
    return {"success": True}


@router.delete("/subscriptions/bundle/{bundle_id}")
async def delete_subscription_bundle(bundle_id: str, db: AsyncSession = Depends(get_db)):
    result = await delete_bundle(db, bundle_id)
    return {"success": True, "message": "Bundle deleted", **result}


@router.delete("/subscriptions/{subscription_id}")
async def delete_subscription(subscription_id: str, db: AsyncSession = Depends(get_db)):
    result = await delete_sale(db, subscription_id)
    return {"success": True, "message": "Deleted", **result}


@router.get("/bundles/{bundle_id}")
async def get_bundle(bundle_id: str, db: AsyncSession = Depends(get_db)):
    return await list_bundle(db, bundle_id)


@router.put("/bundles/{bundle_id}")
async def update_bundle(
    bundle_id: str,
    request: OrderMetadataRequest,
    db: AsyncSession = Depends(get_db),
):
    await update_bundle_metadata(db, bundle_id, request.model_dump(exclude_none=True))
    return {"success": True}


@router.post("/bundles/{bundle_id}/changes")
async def change_bundle(
    bundle_id: str,
    request: BundleChangesRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await apply_bundle_changes(
        db,
        bundle_id,
        adds=[item.model_dump(exclude_none=True) for item in request.adds],
        updates=[item.model_dump(exclude_none=True) for item in request.updates],
        removes=request.removes,
    )
    logger.info(
        "bundle %s edited: added=%s updated=%s removed=%s",
        bundle_id,
        len(result["added"]),
        len(result["updated"]),
        len(result["removed"]),
    )
    return {"success": True, **result}
