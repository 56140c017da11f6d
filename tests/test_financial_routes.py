"""
Financial routes: dashboard, reports, expenses and the payout/integration stubs.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from conftest import OTHER_SELLER, SELLER, auth, seed
from store_api.models import AccountingIntegration, SellerExpense, Transaction
from store_api.services import financials

TODAY = datetime.now(timezone.utc).date()


async def _add_expense(client, **overrides):
    body = {
        "amount": 20,
        "category": "shipping",
        "description": "Courier",
        "expense_date": TODAY.isoformat(),
        **overrides,
    }
    resp = await client.post("/store-api/financial/expenses", json=body, headers=auth())
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


# ── Dashboard & reports ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_dashboard_summary(client, test_db):
    now = datetime.now(timezone.utc)
    await seed(
        test_db,
        Transaction(seller_id=SELLER, amount=100, seller_payout=90, platform_fee=10,
                    status="completed", created_at=now),
        Transaction(seller_id=SELLER, amount=30, status="refunded", created_at=now),
        Transaction(seller_id=SELLER, amount=500, seller_payout=450, platform_fee=50,
                    status="completed", created_at=now - timedelta(days=45)),
        Transaction(seller_id=OTHER_SELLER, amount=999, seller_payout=999,
                    status="completed", created_at=now),
    )
    await _add_expense(client, amount=10)

    resp = await client.get("/store-api/financial/dashboard", headers=auth())
    data = resp.json()["data"]

    assert resp.status_code == 200
    assert data["summary"] == {
        "revenue": 90,
        "refunds": 30,
        "gross_profit": 60,
        "commission": 10,
        "payment_fees": 0,
        "expenses": 10,
        "net_revenue": 60,
        "net_profit": 50,
        "profit_margin": "55.56",
    }
    assert data["period"]["end"] == TODAY.isoformat()
    assert data["trend"] == []
    assert data["breakdown"] == []


@pytest.mark.asyncio
async def test_dashboard_period_widens_window(client, test_db):
    now = datetime.now(timezone.utc)
    await seed(
        test_db,
        Transaction(seller_id=SELLER, amount=500, seller_payout=450, platform_fee=50,
                    status="completed", created_at=now - timedelta(days=45)),
    )

    month = (await client.get("/store-api/financial/dashboard", headers=auth())).json()
    quarter = (
        await client.get("/store-api/financial/dashboard?period=90d", headers=auth())
    ).json()

    assert month["data"]["summary"]["revenue"] == 0
    assert month["data"]["summary"]["profit_margin"] == "0"
    assert quarter["data"]["summary"]["revenue"] == 450


@pytest.mark.asyncio
async def test_profit_loss_report(client, test_db):
    await seed(
        test_db,
        Transaction(seller_id=SELLER, amount=200, seller_payout=180, platform_fee=20,
                    status="completed", created_at=datetime(2024, 5, 10, 12, tzinfo=timezone.utc)),
    )
    await _add_expense(client, amount=30, category="ads", expense_date="2024-05-02")
    await _add_expense(client, amount=20, category="shipping", expense_date="2024-05-20")
    await _add_expense(client, amount=5, category="ads", expense_date="2024-04-30")

    resp = await client.get(
        "/store-api/financial/reports/profit-loss?start_date=2024-05-01&end_date=2024-05-31",
        headers=auth(),
    )
    data = resp.json()["data"]

    assert data["period"] == {"start": "2024-05-01", "end": "2024-05-31"}
    assert data["revenue"] == {"gross_sales": 180, "refunds": 0, "net_sales": 180}
    assert data["gross_profit"] == 180
    assert data["expenses"]["platform_commission"] == 20
    assert data["expenses"]["operating_expenses"] == 50
    assert data["expenses"]["total_expenses"] == 70
    assert data["expenses"]["by_category"] == {"ads": 30, "shipping": 20}
    assert data["net_profit"] == 130
    assert data["profit_margin"] == "72.22"


@pytest.mark.asyncio
async def test_tax_report_quarter_includes_last_day(client, test_db):
    await seed(
        test_db,
        Transaction(seller_id=SELLER, amount=100, seller_payout=100, status="completed",
                    created_at=datetime(2023, 9, 30, 23, 0, tzinfo=timezone.utc)),
        Transaction(seller_id=SELLER, amount=100, seller_payout=100, status="completed",
                    created_at=datetime(2023, 10, 1, 0, 30, tzinfo=timezone.utc)),
    )

    resp = await client.get(
        "/store-api/financial/reports/tax?year=2023&quarter=3", headers=auth()
    )
    data = resp.json()["data"]

    assert data["report_type"] == "quarterly"
    assert data["period"] == {"start": "2023-07-01", "end": "2023-09-30"}
    assert data["total_sales"] == 100
    assert data["taxable_income"] == 100
    assert data["status"] == "draft"


@pytest.mark.asyncio
async def test_tax_report_without_revenue(client):
    resp = await client.get("/store-api/financial/reports/tax?year=2020", headers=auth())
    data = resp.json()["data"]

    assert data["report_type"] == "annual"
    assert data["quarter"] is None
    assert data["total_sales"] == 0
    assert data["profit_margin"] == "0"


@pytest.mark.asyncio
async def test_tax_report_rejects_bad_quarter(client):
    resp = await client.get("/store-api/financial/reports/tax?quarter=7", headers=auth())

    assert resp.status_code == 400
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_tax_report_for_last_representable_year(client):
    resp = await client.get("/store-api/financial/reports/tax?year=9999", headers=auth())

    assert resp.status_code == 200
    assert resp.json()["data"]["period"] == {"start": "9999-01-01", "end": "9999-12-31"}
    assert resp.json()["data"]["total_sales"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("year", [0, 10000])
async def test_tax_report_rejects_unrepresentable_year(client, year):
    resp = await client.get(f"/store-api/financial/reports/tax?year={year}", headers=auth())

    assert resp.status_code == 400
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_profit_loss_open_ended_to_max_date(client, test_db):
    await seed(
        test_db,
        Transaction(seller_id=SELLER, amount=10, seller_payout=10, status="completed",
                    created_at=datetime(2024, 5, 10, tzinfo=timezone.utc)),
    )

    resp = await client.get(
        "/store-api/financial/reports/profit-loss?start_date=2024-01-01&end_date=9999-12-31",
        headers=auth(),
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["revenue"]["gross_sales"] == 10


@pytest.mark.asyncio
async def test_unexpected_error_is_enveloped_with_cors_headers(client, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("aggregation failed")

    monkeypatch.setattr(financials, "summarize", broken)

    resp = await client.get(
        "/store-api/financial/dashboard",
        headers={**auth(), "Origin": "http://shop.example.com"},
    )

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "aggregation failed"}
    assert resp.headers["access-control-allow-origin"] == "*"


# ── Expenses ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_expense_requires_fields(client):
    resp = await client.post(
        "/store-api/financial/expenses", json={"amount": 5, "category": "ads"}, headers=auth()
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "amount, category, description, expense_date required"


@pytest.mark.asyncio
async def test_create_expense_defaults(client):
    data = await _add_expense(client, vendor_name="")

    assert data["seller_id"] == SELLER
    assert data["status"] == "active"
    assert data["is_tax_deductible"] is True
    assert data["vendor_name"] is None


@pytest.mark.asyncio
async def test_update_expense_ignores_empty_required_fields(client):
    expense = await _add_expense(client)

    resp = await client.patch(
        f"/store-api/financial/expenses/{expense['id']}",
        json={"amount": 35.5, "category": "", "description": None, "vendor_name": "DHL"},
        headers=auth(),
    )
    data = resp.json()["data"]

    assert data["amount"] == 35.5
    assert data["category"] == "shipping"
    assert data["description"] == "Courier"
    assert data["vendor_name"] == "DHL"


@pytest.mark.asyncio
async def test_soft_delete_keeps_row_but_hides_it(client, test_db):
    keep = await _add_expense(client, amount=7)
    gone = await _add_expense(client, amount=100)

    resp = await client.delete(f"/store-api/financial/expenses/{gone['id']}", headers=auth())
    assert resp.json() == {"success": True, "data": None}

    listing = (await client.get("/store-api/financial/expenses", headers=auth())).json()["data"]
    assert [e["id"] for e in listing["expenses"]] == [keep["id"]]
    assert listing["pagination"]["total"] == 1

    dashboard = (await client.get("/store-api/financial/dashboard", headers=auth())).json()
    assert dashboard["data"]["summary"]["expenses"] == 7

    again = await client.delete(f"/store-api/financial/expenses/{gone['id']}", headers=auth())
    patch = await client.patch(
        f"/store-api/financial/expenses/{gone['id']}", json={"amount": 1}, headers=auth()
    )
    assert again.status_code == 404
    assert patch.status_code == 404

    async with test_db() as session:
        rows = (
            await session.execute(select(func.count()).select_from(SellerExpense))
        ).scalar_one()
        deleted = await session.get(SellerExpense, gone["id"])
    assert rows == 2
    assert deleted.status == "deleted"


@pytest.mark.asyncio
async def test_expenses_of_other_seller_are_not_reachable(client, test_db):
    await seed(
        test_db,
        SellerExpense(id="e-other", seller_id=OTHER_SELLER, amount=9, category="ads",
                      description="Theirs", expense_date=TODAY),
    )

    listing = (await client.get("/store-api/financial/expenses", headers=auth())).json()
    patch = await client.patch(
        "/store-api/financial/expenses/e-other", json={"amount": 1}, headers=auth()
    )
    delete = await client.delete("/store-api/financial/expenses/e-other", headers=auth())

    assert listing["data"]["expenses"] == []
    assert patch.status_code == 404
    assert delete.status_code == 404


@pytest.mark.asyncio
async def test_expense_list_filters_and_pages(client, test_db):
    await seed(test_db, *[
        SellerExpense(seller_id=SELLER, amount=1, category="ads" if i % 2 else "rent",
                      description=f"e{i}", expense_date=date(2024, 1, 1) + timedelta(days=i))
        for i in range(10)
    ])

    page = (
        await client.get("/store-api/financial/expenses?limit=3&page=2", headers=auth())
    ).json()["data"]
    ads = (
        await client.get("/store-api/financial/expenses?category=ads", headers=auth())
    ).json()["data"]
    early = (
        await client.get("/store-api/financial/expenses?end_date=2024-01-03", headers=auth())
    ).json()["data"]

    assert page["pagination"] == {"page": 2, "limit": 3, "total": 10, "pages": 4}
    assert [e["description"] for e in page["expenses"]] == ["e6", "e5", "e4"]
    assert ads["pagination"]["total"] == 5
    assert {e["description"] for e in early["expenses"]} == {"e0", "e1", "e2"}


# ── Stubs ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_instant_payout_is_refused(client):
    resp = await client.post("/store-api/financial/payouts/instant", headers=auth())

    assert resp.status_code == 400
    assert "Pro plan" in resp.json()["error"]


@pytest.mark.asyncio
async def test_list_integrations(client, test_db):
    await seed(
        test_db,
        AccountingIntegration(seller_id=SELLER, provider="quickbooks"),
        AccountingIntegration(seller_id=OTHER_SELLER, provider="xero"),
    )

    data = (await client.get("/store-api/financial/integrations", headers=auth())).json()["data"]

    assert [i["provider"] for i in data] == ["quickbooks"]
    assert data[0]["status"] == "disconnected"


@pytest.mark.asyncio
async def test_connect_integration_not_implemented(client):
    resp = await client.post(
        "/store-api/financial/integrations/xero/connect", headers=auth()
    )

    assert resp.status_code == 501
    assert resp.json()["error"].startswith("Connect xero:")
