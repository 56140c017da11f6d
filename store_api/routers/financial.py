"""
Seller financials: dashboard, reports, expenses, payout/integration stubs.

GET    /financial/dashboard
GET    /financial/reports/profit-loss
GET    /financial/reports/tax
GET    /financial/expenses
POST   /financial/expenses
PATCH  /financial/expenses/{expense_id}
DELETE /financial/expenses/{expense_id}
POST   /financial/payouts/instant
GET    /financial/integrations
POST   /financial/integrations/{provider}/connect

Expenses are soft-deleted; every read path filters on ``status = 'active'``.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from store_api.deps import AuthContext, get_auth_context
from store_api.errors import NotImplementedYet, ValidationError, ok
from store_api.models import AccountingIntegration, SellerExpense, Transaction
from store_api.schemas import ExpenseCreate, ExpenseRow, ExpenseUpdate, IntegrationRow, dump, dump_all
from store_api.services import financials
from store_api.services.pagination import clamp, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/financial", tags=["financial"])

ACTIVE = "active"
DELETED = "deleted"

INSTANT_PAYOUT_MESSAGE = (
    "Instant payout requires minimum balance and is available on Pro plan. "
    "Use standard withdrawal from Wallet."
)


async def _transactions(ctx: AuthContext, start: date, end: date) -> list[Any]:
    lower, upper = financials.datetime_bounds(start, end)
    return list(
        (
            await ctx.db.execute(
                select(
                    Transaction.amount,
                    Transaction.seller_payout,
                    Transaction.platform_fee,
                    Transaction.status,
                ).where(
                    Transaction.seller_id == ctx.user_id,
                    Transaction.created_at >= lower,
                    Transaction.created_at < upper,
                )
            )
        ).mappings().all()
    )


async def _active_expenses(ctx: AuthContext, start: date, end: date) -> list[Any]:
    return list(
        (
            await ctx.db.execute(
                select(SellerExpense.category, SellerExpense.amount).where(
                    SellerExpense.seller_id == ctx.user_id,
                    SellerExpense.status == ACTIVE,
                    SellerExpense.expense_date >= start,
                    SellerExpense.expense_date <= end,
                )
            )
        ).mappings().all()
    )


# ── Reports ──────────────────────────────────────────────────────────────────

@router.get("/dashboard")
async def dashboard(
    period: str = financials.DEFAULT_PERIOD,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    start, end = financials.dashboard_window(period)
    s = financials.summarize(
        await _transactions(ctx, start, end),
        await _active_expenses(ctx, start, end),
    )
    return ok({
        "summary": {
            "revenue": s["revenue"],
            "refunds": s["refunds"],
            "gross_profit": s["gross_profit"],
            "commission": s["commission"],
            "payment_fees": 0,
            "expenses": s["expenses"],
            "net_revenue": s["gross_profit"],
            "net_profit": s["net_profit"],
            "profit_margin": s["profit_margin"],
        },
        "period": {"start": start, "end": end},
        "trend": [],
        "breakdown": [],
    })


@router.get("/reports/profit-loss")
async def profit_loss_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    start, end = financials.trailing_window(start_date, end_date)
    expense_rows = await _active_expenses(ctx, start, end)
    s = financials.summarize(await _transactions(ctx, start, end), expense_rows)

    return ok({
        "period": {"start": start, "end": end},
        "revenue": {
            "gross_sales": s["revenue"],
            "refunds": s["refunds"],
            "net_sales": s["gross_profit"],
        },
        "gross_profit": s["gross_profit"],
        "expenses": {
            "platform_commission": s["commission"],
            "payment_processing": 0,
            "operating_expenses": s["expenses"],
            "total_expenses": s["commission"] + s["expenses"],
            "by_category": financials.expenses_by_category(expense_rows),
        },
        "net_profit": s["net_profit"],
        "profit_margin": s["profit_margin"],
    })


@router.get("/reports/tax")
async def tax_report(
    year: Optional[int] = None,
    quarter: Optional[int] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if year is None:
        year = datetime.now(timezone.utc).year
    try:
        start, end = financials.tax_window(year, quarter)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    s = financials.summarize(
        await _transactions(ctx, start, end),
        await _active_expenses(ctx, start, end),
    )
    return ok({
        "report_type": "quarterly" if quarter else "annual",
        "year": year,
        "quarter": quarter,
        "period": {"start": start, "end": end},
        "total_sales": s["revenue"],
        "total_refunds": s["refunds"],
        "total_expenses": s["expenses"],
        "taxable_income": s["net_profit"],
        "profit_margin": s["profit_margin"],
        "status": "draft",
    })


# ── Expenses ─────────────────────────────────────────────────────────────────

@router.get("/expenses")
async def list_expenses(
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: Optional[int] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    page, limit = clamp(page, limit)

    stmt = select(SellerExpense).where(
        SellerExpense.seller_id == ctx.user_id,
        SellerExpense.status == ACTIVE,
    )
    if category:
        stmt = stmt.where(SellerExpense.category == category)
    if start_date:
        stmt = stmt.where(SellerExpense.expense_date >= start_date)
    if end_date:
        stmt = stmt.where(SellerExpense.expense_date <= end_date)
    stmt = stmt.order_by(SellerExpense.expense_date.desc())

    rows, pagination = await paginate(ctx.db, stmt, page, limit)
    return ok({
        "expenses": dump_all(ExpenseRow, [r[0] for r in rows]),
        "pagination": pagination,
    })


@router.post("/expenses")
async def create_expense(
    payload: ExpenseCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not (payload.amount and payload.category and payload.description and payload.expense_date):
        raise ValidationError("amount, category, description, expense_date required")

    expense = SellerExpense(
        seller_id=ctx.user_id,
        amount=payload.amount,
        category=payload.category,
        description=payload.description,
        vendor_name=payload.vendor_name or None,
        expense_date=payload.expense_date,
        is_tax_deductible=payload.is_tax_deductible is not False,
        status=ACTIVE,
    )
    ctx.db.add(expense)
    await ctx.db.commit()
    return ok(dump(ExpenseRow, expense), status_code=status.HTTP_201_CREATED)


@router.patch("/expenses/{expense_id}")
async def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    expense = await ctx.owned(SellerExpense, expense_id, message="Expense not found", status=ACTIVE)

    changes = payload.model_dump(exclude_unset=True)
    for field in ("amount", "category", "description", "expense_date"):
        if changes.get(field) is None or changes.get(field) == "":
            changes.pop(field, None)

    for field, value in changes.items():
        setattr(expense, field, value)
    await ctx.db.commit()
    return ok(dump(ExpenseRow, expense))


@router.delete("/expenses/{expense_id}")
async def delete_expense(
    expense_id: str,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    expense = await ctx.owned(SellerExpense, expense_id, message="Expense not found", status=ACTIVE)
    expense.status = DELETED
    await ctx.db.commit()
    logger.info("Expense soft-deleted: id=%s seller=%s", expense_id, ctx.user_id)
    return ok()


# ── Stubs ────────────────────────────────────────────────────────────────────

@router.post("/payouts/instant")
async def instant_payout(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    raise ValidationError(INSTANT_PAYOUT_MESSAGE)


@router.get("/integrations")
async def list_integrations(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    rows = (
        await ctx.db.execute(
            select(AccountingIntegration).where(AccountingIntegration.seller_id == ctx.user_id)
        )
    ).scalars().all()
    return ok(dump_all(IntegrationRow, rows))


@router.post("/integrations/{provider}/connect")
async def connect_integration(
    provider: str,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    raise NotImplementedYet(
        f"Connect {provider}: OAuth integration coming soon. Export data from Financial tab."
    )
