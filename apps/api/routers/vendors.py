"""Vendor and vendor service catalog router."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.reference import create_vendor, create_vendor_service, list_vendor_services, list_vendors

router = APIRouter()


class CreateVendorRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    contact_email: Optional[str] = Field(default=None, alias="contactEmail")
    contact_phone: Optional[str] = Field(default=None, alias="contactPhone")
    description: Optional[str] = None


class CreateVendorServiceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vendor_id: str = Field(alias="vendorID", min_length=1)
    service_name: str = Field(alias="serviceName", min_length=1)
    description: Optional[str] = None
    item_type: Optional[str] = Field(default=None, alias="itemType")
    default_price: float = Field(default=0, ge=0, alias="defaultPrice")
    cost_price: float = Field(default=0, ge=0, alias="costPrice")


@router.get("/vendors")
async def get_vendors(db: AsyncSession = Depends(get_db)):
    return await list_vendors(db)


@router.post("/vendors")
async def add_vendor(request: CreateVendorRequest, db: AsyncSession = Depends(get_db)):
    vendor = await create_vendor(db, request.model_dump(exclude_none=True))
    return {"success": True, "message": "Vendor added successfully", "vendor": vendor}


@router.get("/vendor-services")
async def get_vendor_services(db: AsyncSession = Depends(get_db)):
    return await list_vendor_services(db)


@router.get("/vendor-services/{vendor_id}")
async def get_services_for_vendor(vendor_id: str, db: AsyncSession = Depends(get_db)):
    return await list_vendor_services(db, vendor_id=vendor_id)


@router.post("/vendor-services")
async def add_vendor_service(request: CreateVendorServiceRequest, db: AsyncSession = Depends(get_db)):
    service = await create_vendor_service(db, request.model_dump(exclude_none=True))
    return {"success": True, "message": "Vendor service added successfully", "service": service}
