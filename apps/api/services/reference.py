"""Customers, vendors and vendor service catalog."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.customer import Customer
from models.vendor import Vendor, VendorService
from services.errors import LedgerNotFoundError, LedgerValidationError
from services.serialization import row_to_dict
from services.transactions import run_in_transaction

logger = logging.getLogger(__name__)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _price(value: Any, field: str) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"{field} must be a number") from exc
    if number < 0:
        raise LedgerValidationError(f"{field} cannot be negative")
    return number


async def create_customer(db: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
    name = _text(payload.get("name"))
    email = _text(payload.get("email"))
    if not name or not email:
        raise LedgerValidationError("Name and email are required")
    email = email.lower()

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        existing = await session.execute(select(Customer.id).where(Customer.email == email))
        if existing.scalar_one_or_none():
            raise LedgerValidationError("Customer with this email already exists")
        customer = Customer(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            phone=_text(payload.get("phone")),
            address=_text(payload.get("address")),
            internal_notes=_text(payload.get("internal_notes")),
        )
        session.add(customer)
        await session.flush()
        logger.info("create_customer customer=%s", customer.id)
        return row_to_dict(customer)

    return await run_in_transaction(db, _work)


async def list_customers(db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(select(Customer).order_by(Customer.created_date.desc(), Customer.name))
    return [row_to_dict(customer) for customer in result.scalars().all()]


async def create_vendor(db: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
    name = _text(payload.get("name"))
    if not name:
        raise LedgerValidationError("Vendor name is required")

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        vendor = Vendor(
            vendor_id=str(uuid.uuid4()),
            name=name,
            contact_email=_text(payload.get("contact_email")),
            contact_phone=_text(payload.get("contact_phone")),
            description=_text(payload.get("description")),
        )
        session.add(vendor)
        await session.flush()
        logger.info("create_vendor vendor=%s", vendor.vendor_id)
        return row_to_dict(vendor)

    return await run_in_transaction(db, _work)


async def list_vendors(db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(select(Vendor).where(Vendor.is_active.is_(True)).order_by(Vendor.name))
    return [row_to_dict(vendor) for vendor in result.scalars().all()]


async def create_vendor_service(db: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
    vendor_id = _text(payload.get("vendor_id"))
    service_name = _text(payload.get("service_name"))
    if not vendor_id or not service_name:
        raise LedgerValidationError("Vendor ID and service name are required")
    default_price = _price(payload.get("default_price"), "default_price")
    cost_price = _price(payload.get("cost_price"), "cost_price")

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        if await session.get(Vendor, vendor_id) is None:
            raise LedgerNotFoundError(f"Vendor {vendor_id} not found")
        service = VendorService(
            service_id=str(uuid.uuid4()),
            vendor_id=vendor_id,
            service_name=service_name,
            description=_text(payload.get("description")),
            item_type=_text(payload.get("item_type")) or "subscription",
            default_price=default_price,
            cost_price=cost_price,
        )
        session.add(service)
        await session.flush()
        logger.info("create_vendor_service service=%s vendor=%s", service.service_id, vendor_id)
        return row_to_dict(service)

    return await run_in_transaction(db, _work)


async def list_vendor_services(db: AsyncSession, vendor_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = (
        select(VendorService, Vendor.name)
        .join(Vendor, VendorService.vendor_id == Vendor.vendor_id)
        .where(VendorService.is_available.is_(True))
    )
    if vendor_id:
        query = query.where(VendorService.vendor_id == vendor_id).order_by(VendorService.service_name)
    else:
        query = query.where(Vendor.is_active.is_(True)).order_by(Vendor.name, VendorService.service_name)
    result = await db.execute(query)
    return [row_to_dict(service, vendor_name=vendor_name) for service, vendor_name in result.all()]
