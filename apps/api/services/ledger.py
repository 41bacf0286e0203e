"""
Credit ledger operations.

Every mutation here changes ``vendor_transactions`` or ``subscriptions`` and
the matching ``credit_balances`` row inside a single run_in_transaction call,
so ``remaining_credits == total_purchased - total_used`` holds after each
committed operation. Balance rows are matched by (vendor_id, service_name)
value, not by foreign key.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.credit_balance import CreditBalance
from models.customer import Customer
from models.subscription import Subscription
from models.vendor import Vendor
from models.vendor_transaction import VendorTransaction
from services.balances import apply_delta, find_balance, is_low_stock, serialize_balance
from services.errors import (
    InsufficientCreditsError,
    LedgerConsistencyError,
    LedgerNotFoundError,
    LedgerValidationError,
)
from services.serialization import row_to_dict
from services.transactions import run_in_transaction

logger = logging.getLogger(__name__)

OPEN_ENDED_EXPIRATION = date(9999, 12, 31)

_OPTIONAL_TEXT_FIELDS = (
    "classification",
    "notes",
    "mac_address",
    "payment_type",
    "payment_status",
    "transaction_id_ref",
    "order_status",
)
_REVISABLE_FIELDS = (
    "credits_used",
    "amount_paid",
    "service_name",
    "start_date",
    "expiration_date",
    "status",
    "item_type",
    "discount_amount",
) + _OPTIONAL_TEXT_FIELDS
METADATA_FIELDS = ("order_status", "payment_type", "payment_status", "transaction_id_ref", "notes")


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------

def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise LedgerValidationError(f"{field} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise LedgerValidationError(f"{field} must be a whole number")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"{field} must be an integer") from exc


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise LedgerValidationError(f"{field} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"{field} must be a number") from exc


def _as_date(value: Any, field: str, default: Optional[date] = None) -> date:
    if value is None or value == "":
        if default is None:
            raise LedgerValidationError(f"{field} is required")
        return default
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as exc:
        raise LedgerValidationError(f"{field} must be a valid ISO date") from exc


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _non_negative(number: float, field: str) -> None:
    if number < 0:
        raise LedgerValidationError(f"{field} cannot be negative")


def _normalize_sale(payload: Dict[str, Any], *, require_customer: bool = True) -> Dict[str, Any]:
    customer_id = _clean_text(payload.get("customer_id"))
    if require_customer and not customer_id:
        raise LedgerValidationError("customer_id is required")

    vendor_id = _clean_text(payload.get("vendor_id"))
    vendor_service_name = _clean_text(payload.get("vendor_service_name"))
    service_name = _clean_text(payload.get("service_name")) or vendor_service_name
    if not service_name:
        raise LedgerValidationError("service_name is required")

    credits_used = _as_int(payload.get("credits_used", 0) or 0, "credits_used")
    _non_negative(credits_used, "credits_used")
    amount_paid = _as_float(payload.get("amount_paid", 0) or 0, "amount_paid")
    _non_negative(amount_paid, "amount_paid")
    discount_amount = _as_float(payload.get("discount_amount", 0) or 0, "discount_amount")
    _non_negative(discount_amount, "discount_amount")

    start_date = _as_date(payload.get("start_date"), "start_date", default=date.today())
    expiration_date = _as_date(payload.get("expiration_date"), "expiration_date", default=OPEN_ENDED_EXPIRATION)
    if expiration_date < start_date:
        raise LedgerValidationError("expiration_date cannot be before start_date")

    values: Dict[str, Any] = {
        "customer_id": customer_id,
        "service_name": service_name,
        "vendor_id": vendor_id,
        "vendor_service_name": vendor_service_name,
        "credits_used": credits_used,
        "amount_paid": amount_paid,
        "discount_amount": discount_amount,
        "start_date": start_date,
        "expiration_date": expiration_date,
        "status": _clean_text(payload.get("status")) or "active",
        "item_type": _clean_text(payload.get("item_type")) or "subscription",
        "bundle_id": _clean_text(payload.get("bundle_id")),
    }
    for field in _OPTIONAL_TEXT_FIELDS:
        if field in payload:
            values[field] = _clean_text(payload.get(field))
    return values


def _normalize_revisions(changes: Dict[str, Any]) -> Dict[str, Any]:
    revisions: Dict[str, Any] = {}
    for field, value in changes.items():
        if field not in _REVISABLE_FIELDS or value is None:
            continue
        if field == "credits_used":
            value = _as_int(value, field)
            _non_negative(value, field)
        elif field in ("amount_paid", "discount_amount"):
            value = _as_float(value, field)
            _non_negative(value, field)
        elif field in ("start_date", "expiration_date"):
            value = _as_date(value, field)
        elif field in ("service_name", "status", "item_type"):
            value = _clean_text(value)
            if not value:
                raise LedgerValidationError(f"{field} cannot be empty")
        else:
            value = _clean_text(value)
        revisions[field] = value
    return revisions


# ---------------------------------------------------------------------------
# Balance policies
# ---------------------------------------------------------------------------

def _policy(value: str) -> str:
    return (value or "").strip().lower()


def _report_missing_balance(vendor_id: str, service_name: Optional[str], action: str, warnings: List[str]) -> None:
    policy = _policy(settings.MISSING_BALANCE_POLICY)
    if policy == "raise":
        raise LedgerConsistencyError(
            f"No credit balance exists for vendor {vendor_id} and service {service_name!r}",
            context={"vendor_id": vendor_id, "service_name": service_name, "action": action},
        )
    if policy == "warn":
        logger.warning(
            "No credit balance for vendor=%s service=%r during %s; adjustment skipped",
            vendor_id,
            service_name,
            action,
        )
        warnings.append(f"missing_balance:{vendor_id}:{service_name or ''}")


async def _adjust_balance(
    db: AsyncSession,
    vendor_id: str,
    service_name: Optional[str],
    warnings: List[str],
    *,
    action: str,
    remaining: int = 0,
    purchased: int = 0,
    used: int = 0,
) -> Optional[CreditBalance]:
    balance = await find_balance(db, vendor_id, service_name)
    if balance is None:
        _report_missing_balance(vendor_id, service_name, action, warnings)
        return None
    return apply_delta(balance, remaining=remaining, purchased=purchased, used=used)


def _check_oversell(balance: Optional[CreditBalance], warnings: List[str]) -> None:
    if balance is None or int(balance.remaining_credits) >= 0:
        return
    policy = _policy(settings.OVERSELL_POLICY)
    if policy == "reject":
        raise InsufficientCreditsError(
            f"Not enough {balance.service_name} credits: sale would leave {balance.remaining_credits}",
            context={
                "vendor_id": balance.vendor_id,
                "service_name": balance.service_name,
                "remaining_credits": int(balance.remaining_credits),
            },
        )
    if policy == "warn":
        logger.warning(
            "Oversold vendor=%s service=%r remaining=%s",
            balance.vendor_id,
            balance.service_name,
            balance.remaining_credits,
        )
        warnings.append(f"oversold:{balance.vendor_id}:{balance.service_name}:{balance.remaining_credits}")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def _require_vendor(db: AsyncSession, vendor_id: str) -> Vendor:
    vendor = await db.get(Vendor, vendor_id)
    if vendor is None:
        raise LedgerNotFoundError(f"Vendor {vendor_id} not found")
    return vendor


async def _require_customer(db: AsyncSession, customer_id: str) -> Customer:
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise LedgerNotFoundError(f"Customer {customer_id} not found")
    return customer


async def _get_sale(db: AsyncSession, subscription_id: str) -> Subscription:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.id == subscription_id)
        .execution_options(populate_existing=True)
    )
    sale = result.scalar_one_or_none()
    if sale is None:
        raise LedgerNotFoundError(f"Subscription {subscription_id} not found")
    return sale


async def _bundle_rows(db: AsyncSession, bundle_id: str) -> List[Subscription]:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.bundle_id == bundle_id)
        .order_by(Subscription.created_date, Subscription.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def _collect(balances: Dict[str, CreditBalance], balance: Optional[CreditBalance]) -> None:
    if balance is not None:
        balances[balance.balance_id] = balance


# ---------------------------------------------------------------------------
# Purchases
# ---------------------------------------------------------------------------

async def record_purchase(
    db: AsyncSession,
    *,
    vendor_id: str,
    service_name: str,
    credits: int,
    price_usd: float = 0.0,
    purchase_date: Any = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """Insert a vendor transaction and add its credits to the balance, creating it on first purchase."""
    vendor_key = _clean_text(vendor_id)
    service = _clean_text(service_name)
    if not vendor_key:
        raise LedgerValidationError("vendor_id is required")
    if not service:
        raise LedgerValidationError("service_name is required")
    credit_count = _as_int(credits, "credits")
    if credit_count <= 0:
        raise LedgerValidationError("credits must be greater than 0")
    price = _as_float(price_usd or 0, "price_usd")
    _non_negative(price, "price_usd")
    purchased_on = _as_date(purchase_date, "purchase_date", default=date.today())

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        await _require_vendor(session, vendor_key)
        purchase = VendorTransaction(
            transaction_id=str(uuid.uuid4()),
            vendor_id=vendor_key,
            service_name=service,
            credits=credit_count,
            price_usd=price,
            purchase_date=purchased_on,
            notes=_clean_text(notes),
        )
        session.add(purchase)

        balance = await find_balance(session, vendor_key, service)
        if balance is None:
            balance = CreditBalance(
                balance_id=str(uuid.uuid4()),
                vendor_id=vendor_key,
                service_name=service,
                remaining_credits=credit_count,
                total_purchased=credit_count,
                total_used=0,
            )
            session.add(balance)
        else:
            apply_delta(balance, remaining=credit_count, purchased=credit_count)
        await session.flush()

        logger.info(
            "record_purchase transaction=%s vendor=%s service=%r credits=+%s remaining=%s",
            purchase.transaction_id,
            vendor_key,
            service,
            credit_count,
            balance.remaining_credits,
        )
        return {
            "transaction_id": purchase.transaction_id,
            "transaction": row_to_dict(purchase),
            "balance": serialize_balance(balance),
            "warnings": [],
        }

    return await run_in_transaction(db, _work)


async def delete_purchase(db: AsyncSession, transaction_id: str) -> Dict[str, Any]:
    """Remove a vendor transaction and take its credits back out of the balance."""
    warnings: List[str] = []

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        purchase = await session.get(VendorTransaction, transaction_id, populate_existing=True)
        if purchase is None:
            raise LedgerNotFoundError(f"Vendor transaction {transaction_id} not found")

        credit_count = int(purchase.credits)
        balance = await _adjust_balance(
            session,
            purchase.vendor_id,
            purchase.service_name,
            warnings,
            action="delete_purchase",
            remaining=-credit_count,
            purchased=-credit_count,
        )
        await session.delete(purchase)
        await session.flush()

        logger.info(
            "delete_purchase transaction=%s vendor=%s service=%r credits=-%s",
            transaction_id,
            purchase.vendor_id,
            purchase.service_name,
            credit_count,
        )
        return {
            "transaction_id": transaction_id,
            "credits_removed": credit_count,
            "balance": serialize_balance(balance),
            "warnings": warnings,
        }

    return await run_in_transaction(db, _work)


async def list_vendor_transactions(db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(VendorTransaction, Vendor.name)
        .join(Vendor, VendorTransaction.vendor_id == Vendor.vendor_id)
        .order_by(VendorTransaction.purchase_date.desc(), VendorTransaction.created_date.desc())
    )
    return [row_to_dict(purchase, vendor_name=vendor_name) for purchase, vendor_name in result.all()]


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------

async def _insert_sale(
    db: AsyncSession,
    values: Dict[str, Any],
    warnings: List[str],
) -> Tuple[Subscription, Optional[CreditBalance]]:
    await _require_customer(db, values["customer_id"])
    if values.get("vendor_id"):
        await _require_vendor(db, values["vendor_id"])

    sale = Subscription(id=str(uuid.uuid4()), **values)
    db.add(sale)

    balance = None
    credits_used = int(sale.credits_used or 0)
    if sale.vendor_id and credits_used > 0:
        balance = await _adjust_balance(
            db,
            sale.vendor_id,
            sale.vendor_service_name,
            warnings,
            action="create_sale",
            remaining=-credits_used,
            used=credits_used,
        )
        _check_oversell(balance, warnings)
    await db.flush()

    logger.info(
        "create_sale subscription=%s bundle=%s vendor=%s service=%r credits=%s",
        sale.id,
        sale.bundle_id,
        sale.vendor_id,
        sale.vendor_service_name,
        credits_used,
    )
    return sale, balance


async def _revise_sale(
    db: AsyncSession,
    sale: Subscription,
    revisions: Dict[str, Any],
    warnings: List[str],
) -> Tuple[int, Optional[CreditBalance]]:
    previous = int(sale.credits_used or 0)
    delta = int(revisions.get("credits_used", previous)) - previous

    for field, value in revisions.items():
        setattr(sale, field, value)
    if sale.expiration_date < sale.start_date:
        raise LedgerValidationError("expiration_date cannot be before start_date")

    balance = None
    if delta != 0 and sale.vendor_id and sale.vendor_service_name:
        balance = await _adjust_balance(
            db,
            sale.vendor_id,
            sale.vendor_service_name,
            warnings,
            action="update_sale",
            remaining=-delta,
            used=delta,
        )
        if delta > 0:
            _check_oversell(balance, warnings)
    await db.flush()

    logger.info("update_sale subscription=%s credits_delta=%s", sale.id, delta)
    return delta, balance


async def _reverse_and_delete(
    db: AsyncSession,
    sale: Subscription,
    warnings: List[str],
    *,
    action: str,
) -> Optional[CreditBalance]:
    balance = None
    credits_used = int(sale.credits_used or 0)
    if sale.vendor_id and credits_used > 0:
        balance = await _adjust_balance(
            db,
            sale.vendor_id,
            sale.vendor_service_name,
            warnings,
            action=action,
            remaining=credits_used,
            used=-credits_used,
        )
    await db.delete(sale)
    logger.info("%s subscription=%s credits_restored=%s", action, sale.id, credits_used)
    return balance


def _sale_result(sale: Subscription, balance: Optional[CreditBalance], warnings: List[str]) -> Dict[str, Any]:
    return {
        "id": sale.id,
        "bundle_id": sale.bundle_id,
        "subscription": row_to_dict(sale),
        "balance": serialize_balance(balance),
        "low_stock": is_low_stock(balance, settings.LOW_CREDIT_THRESHOLD),
        "warnings": warnings,
    }


async def create_sale(db: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Record one sold line item and consume its credits.

    remaining_credits has no floor: with OVERSELL_POLICY=allow a sale larger
    than the stock drives the balance negative and is reported through
    ``low_stock`` rather than rejected.
    """
    values = _normalize_sale(payload)
    warnings: List[str] = []

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        sale, balance = await _insert_sale(session, values, warnings)
        return _sale_result(sale, balance, warnings)

    return await run_in_transaction(db, _work)


async def update_sale(db: AsyncSession, subscription_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Revise a sale; a change in credits_used moves the balance by the difference."""
    revisions = _normalize_revisions(changes)
    warnings: List[str] = []

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        sale = await _get_sale(session, subscription_id)
        delta, balance = await _revise_sale(session, sale, revisions, warnings)
        result = _sale_result(sale, balance, warnings)
        result["credits_delta"] = delta
        return result

    return await run_in_transaction(db, _work)


async def delete_sale(db: AsyncSession, subscription_id: str) -> Dict[str, Any]:
    warnings: List[str] = []

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        sale = await _get_sale(session, subscription_id)
        credits_used = int(sale.credits_used or 0)
        balance = await _reverse_and_delete(session, sale, warnings, action="delete_sale")
        await session.flush()
        return {
            "id": subscription_id,
            "credits_restored": credits_used if balance is not None else 0,
            "balance": serialize_balance(balance),
            "warnings": warnings,
        }

    return await run_in_transaction(db, _work)


async def delete_bundle(db: AsyncSession, bundle_id: str) -> Dict[str, Any]:
    """Reverse and delete every line item of a bundle as one unit of work."""
    warnings: List[str] = []

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        rows = await _bundle_rows(session, bundle_id)
        if not rows:
            raise LedgerNotFoundError(f"Bundle {bundle_id} not found")

        balances: Dict[str, CreditBalance] = {}
        restored = 0
        deleted: List[str] = []
        for sale in rows:
            credits_used = int(sale.credits_used or 0)
            balance = await _reverse_and_delete(session, sale, warnings, action="delete_bundle")
            if balance is not None:
                restored += credits_used
            _collect(balances, balance)
            deleted.append(sale.id)
        await session.flush()

        return {
            "bundle_id": bundle_id,
            "deleted": deleted,
            "credits_restored": restored,
            "balances": [serialize_balance(balance) for balance in balances.values()],
            "warnings": warnings,
        }

    return await run_in_transaction(db, _work)


async def apply_bundle_changes(
    db: AsyncSession,
    bundle_id: str,
    *,
    adds: Iterable[Dict[str, Any]] = (),
    updates: Iterable[Dict[str, Any]] = (),
    removes: Iterable[str] = (),
) -> Dict[str, Any]:
    """
    Edit a whole bundle in one transaction.

    Removals run first, then revisions, then additions, so credits freed by
    a removed line are available to the lines added in the same edit. Every
    removed or revised id must already belong to the bundle.
    """
    bundle_key = _clean_text(bundle_id)
    if not bundle_key:
        raise LedgerValidationError("bundle_id is required")

    remove_ids = [str(item) for item in removes]
    update_items: List[Tuple[str, Dict[str, Any]]] = []
    for item in updates:
        item_id = _clean_text(item.get("id"))
        if not item_id:
            raise LedgerValidationError("Every bundle update needs an id")
        update_items.append((item_id, _normalize_revisions(item)))
    add_values = [_normalize_sale({**item, "bundle_id": bundle_key}, require_customer=False) for item in adds]

    if not (remove_ids or update_items or add_values):
        raise LedgerValidationError("No bundle changes supplied")
    touched = remove_ids + [item_id for item_id, _ in update_items]
    if len(set(touched)) != len(touched):
        raise LedgerValidationError("A line item can only be removed or updated once per edit")

    warnings: List[str] = []

    async def _member(session: AsyncSession, subscription_id: str) -> Subscription:
        sale = await _get_sale(session, subscription_id)
        if sale.bundle_id != bundle_key:
            raise LedgerNotFoundError(f"Subscription {subscription_id} is not part of bundle {bundle_key}")
        return sale

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        existing = await _bundle_rows(session, bundle_key)
        default_customer = existing[0].customer_id if existing else None
        balances: Dict[str, CreditBalance] = {}

        for subscription_id in remove_ids:
            sale = await _member(session, subscription_id)
            _collect(balances, await _reverse_and_delete(session, sale, warnings, action="bundle_remove"))
        await session.flush()

        for subscription_id, revisions in update_items:
            sale = await _member(session, subscription_id)
            _, balance = await _revise_sale(session, sale, revisions, warnings)
            _collect(balances, balance)

        added: List[str] = []
        for values in add_values:
            if not values.get("customer_id"):
                if not default_customer:
                    raise LedgerValidationError("customer_id is required when adding to a new bundle")
                values = {**values, "customer_id": default_customer}
            sale, balance = await _insert_sale(session, values, warnings)
            _collect(balances, balance)
            added.append(sale.id)

        return {
            "bundle_id": bundle_key,
            "added": added,
            "updated": [subscription_id for subscription_id, _ in update_items],
            "removed": remove_ids,
            "balances": [serialize_balance(balance) for balance in balances.values()],
            "warnings": warnings,
        }

    return await run_in_transaction(db, _work)


async def update_sale_metadata(db: AsyncSession, subscription_id: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Order/payment bookkeeping only; never touches credits."""
    fields = {key: _clean_text(value) for key, value in metadata.items() if key in METADATA_FIELDS}

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        sale = await _get_sale(session, subscription_id)
        for field, value in fields.items():
            setattr(sale, field, value)
        await session.flush()
        return {"id": subscription_id, "updated": 1}

    return await run_in_transaction(db, _work)


async def update_bundle_metadata(db: AsyncSession, bundle_id: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
    fields = {key: _clean_text(value) for key, value in metadata.items() if key in METADATA_FIELDS}

    async def _work(session: AsyncSession) -> Dict[str, Any]:
        rows = await _bundle_rows(session, bundle_id)
        if not rows:
            raise LedgerNotFoundError(f"Bundle {bundle_id} not found")
        for sale in rows:
            for field, value in fields.items():
                setattr(sale, field, value)
        await session.flush()
        return {"bundle_id": bundle_id, "updated": len(rows)}

    return await run_in_transaction(db, _work)


async def get_sale(db: AsyncSession, subscription_id: str) -> Dict[str, Any]:
    return row_to_dict(await _get_sale(db, subscription_id))


async def list_bundle(db: AsyncSession, bundle_id: str) -> List[Dict[str, Any]]:
    return [row_to_dict(sale) for sale in await _bundle_rows(db, bundle_id)]


async def list_sales(db: AsyncSession, *, customer_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = (
        select(Subscription, Customer.name)
        .join(Customer, Subscription.customer_id == Customer.id)
        .order_by(Subscription.created_date.desc())
        .execution_options(populate_existing=True)
    )
    if customer_id:
        query = query.where(Subscription.customer_id == customer_id)
    result = await db.execute(query)
    return [row_to_dict(sale, customer_name=customer_name) for sale, customer_name in result.all()]


# ---------------------------------------------------------------------------
# Consistency audit
# ---------------------------------------------------------------------------

async def audit_balances(db: AsyncSession) -> Dict[str, Any]:
    """
    Recompute every balance from the event tables and report drift.

    Flags rows whose own totals disagree (remaining != purchased - used),
    rows whose totals disagree with the purchase/sale history, and
    vendor services that have events but no balance row.
    """
    purchased_result = await db.execute(
        select(
            VendorTransaction.vendor_id,
            VendorTransaction.service_name,
            func.coalesce(func.sum(VendorTransaction.credits), 0),
        ).group_by(VendorTransaction.vendor_id, VendorTransaction.service_name)
    )
    purchased = {(vendor_id, service or ""): int(total) for vendor_id, service, total in purchased_result.all()}

    used_result = await db.execute(
        select(
            Subscription.vendor_id,
            Subscription.vendor_service_name,
            func.coalesce(func.sum(Subscription.credits_used), 0),
        )
        .where(
            Subscription.vendor_id.is_not(None),
            Subscription.vendor_id != "",
            Subscription.credits_used > 0,
        )
        .group_by(Subscription.vendor_id, Subscription.vendor_service_name)
    )
    used: Dict[Tuple[str, str], int] = {}
    for vendor_id, service, total in used_result.all():
        key = (vendor_id, service or "")
        used[key] = used.get(key, 0) + int(total)

    balance_result = await db.execute(select(CreditBalance).execution_options(populate_existing=True))
    balances = list(balance_result.scalars().all())

    issues: List[Dict[str, Any]] = []
    seen = set()
    for balance in balances:
        key = (balance.vendor_id, balance.service_name or "")
        seen.add(key)
        remaining = int(balance.remaining_credits or 0)
        total_purchased = int(balance.total_purchased or 0)
        total_used = int(balance.total_used or 0)
        expected_purchased = purchased.get(key, 0)
        expected_used = used.get(key, 0)
        base = {"balance_id": balance.balance_id, "vendor_id": key[0], "service_name": key[1]}

        if remaining != total_purchased - total_used:
            issues.append({**base, "kind": "invariant", "stored": remaining, "expected": total_purchased - total_used})
        if total_purchased != expected_purchased:
            issues.append({**base, "kind": "purchased_drift", "stored": total_purchased, "expected": expected_purchased})
        if total_used != expected_used:
            issues.append({**base, "kind": "used_drift", "stored": total_used, "expected": expected_used})

    for key in sorted((set(purchased) | set(used)) - seen):
        issues.append(
            {
                "balance_id": None,
                "vendor_id": key[0],
                "service_name": key[1],
                "kind": "missing_balance",
                "purchased": purchased.get(key, 0),
                "used": used.get(key, 0),
            }
        )

    if issues:
        logger.warning("Credit balance audit found %s issue(s)", len(issues))
    return {"checked": len(balances), "consistent": not issues, "issues": issues}
