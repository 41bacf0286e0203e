import pytest

import database
from config import settings


async def _purchase(client, credits, vendor_id="V1", service_name="Premium"):
    response = await client.post(
        "/api/vendor-transactions",
        json={"vendorID": vendor_id, "serviceName": service_name, "credits": credits, "priceUSD": 2.5 * credits},
    )
    assert response.status_code == 200
    return response.json()


async def _sell(client, credits, **extra):
    body = {
        "customerID": "C1",
        "serviceName": "Premium 1 Month",
        "vendorID": "V1",
        "vendorServiceName": "Premium",
        "creditsSelected": credits,
        "amountPaid": 25,
        "startDate": "2026-10-01",
        "expirationDate": "2026-11-01",
    }
    body.update(extra)
    response = await client.post("/api/subscriptions", json=body)
    assert response.status_code == 200
    return response.json()


async def _premium_balance(client):
    response = await client.get("/api/credit-balances")
    assert response.status_code == 200
    rows = [row for row in response.json() if row["vendor_id"] == "V1" and row["service_name"] == "Premium"]
    assert len(rows) == 1
    row = rows[0]
    return row["remaining_credits"], row["total_purchased"], row["total_used"]


@pytest.mark.asyncio
async def test_purchase_sale_update_delete_over_http(ledger_client):
    purchase = await _purchase(ledger_client, 100)
    assert purchase["success"] is True
    assert purchase["message"] == "Credits purchased successfully"
    assert await _premium_balance(ledger_client) == (100, 100, 0)

    sale = await _sell(ledger_client, 12)
    assert sale["subscription"]["credits_used"] == 12
    assert sale["subscription"]["customer_id"] == "C1"
    assert await _premium_balance(ledger_client) == (88, 100, 12)

    response = await ledger_client.put(f"/api/subscriptions/{sale['id']}", json={"creditsUsed": 18})
    assert response.status_code == 200
    assert response.json()["credits_delta"] == 6
    assert await _premium_balance(ledger_client) == (82, 100, 18)

    response = await ledger_client.delete(f"/api/subscriptions/{sale['id']}")
    assert response.status_code == 200
    assert response.json()["message"] == "Deleted"
    assert await _premium_balance(ledger_client) == (100, 100, 0)

    response = await ledger_client.delete(f"/api/vendor-transactions/{purchase['transaction_id']}")
    assert response.status_code == 200
    assert await _premium_balance(ledger_client) == (0, 0, 0)


@pytest.mark.asyncio
async def test_listings_include_names(ledger_client):
    await _purchase(ledger_client, 10)
    sale = await _sell(ledger_client, 3)

    balances = (await ledger_client.get("/api/credit-balances")).json()
    assert balances[0]["vendor_name"] == "Vendor One"

    purchases = (await ledger_client.get("/api/vendor-transactions")).json()
    assert [row["vendor_name"] for row in purchases] == ["Vendor One"]

    history = (await ledger_client.get("/api/customers/C1/transactions")).json()
    assert [row["id"] for row in history] == [sale["id"]]
    assert history[0]["customer_name"] == "Dana Client"

    single = await ledger_client.get(f"/api/subscriptions/{sale['id']}")
    assert single.status_code == 200
    assert single.json()["vendor_service_name"] == "Premium"


@pytest.mark.asyncio
async def test_unknown_ids_return_not_found(ledger_client):
    for method, path in (
        ("DELETE", "/api/subscriptions/missing"),
        ("DELETE", "/api/subscriptions/bundle/missing"),
        ("DELETE", "/api/vendor-transactions/missing"),
        ("GET", "/api/subscriptions/missing"),
    ):
        response = await ledger_client.request(method, path)
        assert response.status_code == 404, path
        assert response.json()["code"] == "not_found"

    response = await ledger_client.put("/api/subscriptions/missing", json={"creditsUsed": 2})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_invalid_bodies_return_validation_error(ledger_client):
    response = await ledger_client.post(
        "/api/vendor-transactions",
        json={"vendorID": "V1", "serviceName": "Premium", "credits": 0},
    )
    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "validation_error"
    assert "credits" in payload["error"]

    response = await ledger_client.post("/api/subscriptions", json={"serviceName": "Premium"})
    assert response.status_code == 422

    response = await ledger_client.post(
        "/api/subscriptions",
        json={
            "customerID": "C1",
            "serviceName": "Premium",
            "startDate": "2026-10-05",
            "expirationDate": "2026-10-01",
        },
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_reject_policy_returns_conflict(ledger_client, monkeypatch):
    monkeypatch.setattr(settings, "OVERSELL_POLICY", "reject")
    await _purchase(ledger_client, 5)

    response = await ledger_client.post(
        "/api/subscriptions",
        json={
            "customerID": "C1",
            "serviceName": "Premium",
            "vendorID": "V1",
            "vendorServiceName": "Premium",
            "creditsSelected": 6,
        },
    )
    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "insufficient_credits"
    assert payload["context"]["remaining_credits"] == -1
    assert await _premium_balance(ledger_client) == (5, 5, 0)


@pytest.mark.asyncio
async def test_missing_balance_raise_policy_returns_conflict(ledger_client, monkeypatch):
    monkeypatch.setattr(settings, "MISSING_BALANCE_POLICY", "raise")
    response = await ledger_client.post(
        "/api/subscriptions",
        json={"customerID": "C1", "vendorID": "V2", "vendorServiceName": "Ghost", "creditsSelected": 1},
    )
    assert response.status_code == 409
    assert response.json()["code"] == "consistency_error"


@pytest.mark.asyncio
async def test_bundle_delete_and_metadata(ledger_client):
    await _purchase(ledger_client, 30)
    for credits in (4, 6):
        await _sell(ledger_client, credits, bundleID="order-1")

    response = await ledger_client.put("/api/bundles/order-1", json={"orderStatus": "Open", "paymentStatus": "Pending"})
    assert response.status_code == 200
    rows = (await ledger_client.get("/api/bundles/order-1")).json()
    assert len(rows) == 2
    assert {(row["order_status"], row["payment_status"]) for row in rows} == {("Open", "Pending")}

    response = await ledger_client.put(f"/api/subscriptions/{rows[0]['id']}/metadata", json={"paymentType": "Card"})
    assert response.status_code == 200
    assert (await ledger_client.get(f"/api/subscriptions/{rows[0]['id']}")).json()["payment_type"] == "Card"

    response = await ledger_client.delete("/api/subscriptions/bundle/order-1")
    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Bundle deleted"
    assert payload["credits_restored"] == 10

    assert (await ledger_client.get("/api/bundles/order-1")).json() == []
    assert await _premium_balance(ledger_client) == (30, 30, 0)


@pytest.mark.asyncio
async def test_bundle_changes_endpoint(ledger_client):
    await _purchase(ledger_client, 20)
    first = await _sell(ledger_client, 6, bundleID="order-2")
    second = await _sell(ledger_client, 5, bundleID="order-2")

    response = await ledger_client.post(
        "/api/bundles/order-2/changes",
        json={
            "removes": [first["id"]],
            "updates": [{"id": second["id"], "creditsUsed": 7}],
            "adds": [{"serviceName": "Premium", "vendorID": "V1", "vendorServiceName": "Premium", "creditsSelected": 3}],
        },
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["removed"] == [first["id"]]
    assert len(payload["added"]) == 1
    assert await _premium_balance(ledger_client) == (10, 20, 10)

    response = await ledger_client.post(
        "/api/bundles/order-2/changes",
        json={"removes": ["not-in-bundle"], "adds": [{"serviceName": "Premium", "creditsSelected": 1}]},
    )
    assert response.status_code == 404
    assert len((await ledger_client.get("/api/bundles/order-2")).json()) == 2


@pytest.mark.asyncio
async def test_low_stock_and_audit_endpoints(ledger_client):
    await _purchase(ledger_client, 12)
    await _purchase(ledger_client, 40, vendor_id="V2", service_name="Basic")
    sale = await _sell(ledger_client, 5)
    assert sale["low_stock"] is True

    low = (await ledger_client.get("/api/credit-balances/low")).json()
    assert [(row["vendor_id"], row["service_name"]) for row in low] == [("V1", "Premium")]

    low = (await ledger_client.get("/api/credit-balances/low", params={"threshold": 50})).json()
    assert len(low) == 2

    audit = (await ledger_client.get("/api/credit-balances/audit")).json()
    assert audit == {"checked": 2, "consistent": True, "issues": []}


@pytest.mark.asyncio
async def test_customer_and_vendor_reference_data(ledger_client):
    response = await ledger_client.post("/api/customers", json={"name": "Lee", "email": "Lee@Example.com"})
    assert response.status_code == 200
    assert response.json()["customer"]["email"] == "lee@example.com"

    response = await ledger_client.post("/api/customers", json={"name": "Lee Again", "email": "lee@example.com"})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"
    assert len((await ledger_client.get("/api/customers")).json()) == 2

    response = await ledger_client.post("/api/vendors", json={"name": "Vendor Three"})
    assert response.status_code == 200
    vendor_id = response.json()["vendor"]["vendor_id"]

    response = await ledger_client.post(
        "/api/vendor-services",
        json={"vendorID": vendor_id, "serviceName": "Gold", "defaultPrice": 15, "costPrice": 9},
    )
    assert response.status_code == 200
    services = (await ledger_client.get(f"/api/vendor-services/{vendor_id}")).json()
    assert [row["service_name"] for row in services] == ["Gold"]
    assert services[0]["vendor_name"] == "Vendor Three"

    response = await ledger_client.post("/api/vendor-services", json={"vendorID": "nope", "serviceName": "Gold"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_business_cash_movements(ledger_client):
    response = await ledger_client.post(
        "/api/business/add-money",
        json={"amount": 200, "description": "float", "date": "2026-10-01"},
    )
    assert response.status_code == 200
    assert response.json()["transaction"]["transaction_date"] == "2026-10-01"

    response = await ledger_client.post("/api/business/withdraw-money", json={"amount": 45.5})
    assert response.status_code == 200

    response = await ledger_client.post("/api/business/withdraw-money", json={"amount": 0})
    assert response.status_code == 422

    payload = (await ledger_client.get("/api/business/transactions")).json()
    assert len(payload["transactions"]) == 2
    assert payload["balance"] == 154.5


@pytest.mark.asyncio
async def test_health_reports_database(ledger_client, ledger_engine, monkeypatch):
    monkeypatch.setattr(database, "engine", ledger_engine)

    response = await ledger_client.get("/api/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "OK"
    assert payload["database"] == "Connected"
    assert payload["oversell_policy"] == "allow"

    response = await ledger_client.get("/api/health/live")
    assert response.json() == {"alive": True}
