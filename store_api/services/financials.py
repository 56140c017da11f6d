"""
Financial aggregation over already-scoped transaction and expense rows.

Everything here is pure: callers fetch the rows (filtered by seller and date
window) and pass them in as mappings. Nothing is cached; every report is
recomputed from scratch.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional, Tuple

DASHBOARD_PERIODS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_PERIOD = "30d"


def _num(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def _status(row: Mapping[str, Any]) -> str:
    return (row.get("status") or "").lower()


def transaction_totals(rows: Iterable[Mapping[str, Any]]) -> dict[str, float]:
    """
    revenue    – seller_payout (or amount) of completed rows
    refunds    – amount of refunded rows
    commission – platform_fee of completed rows
    """
    revenue = refunds = commission = 0.0
    for row in rows:
        status = _status(row)
        if status == "completed":
            payout = row.get("seller_payout")
            revenue += _num(payout if payout is not None else row.get("amount"))
            commission += _num(row.get("platform_fee"))
        elif status == "refunded":
            refunds += _num(row.get("amount"))
    return {"revenue": revenue, "refunds": refunds, "commission": commission}


def expense_total(rows: Iterable[Mapping[str, Any]]) -> float:
    return sum(_num(r.get("amount")) for r in rows)


def expenses_by_category(rows: Iterable[Mapping[str, Any]]) -> dict[str, float]:
    out: dict[str, float] = {}
    for r in rows:
        cat = r.get("category") or "other"
        out[cat] = out.get(cat, 0.0) + _num(r.get("amount"))
    return out


def profit_margin(net_profit: float, revenue: float) -> str:
    """Percentage with two decimals; "0" when there is no revenue."""
    if revenue <= 0:
        return "0"
    return f"{net_profit / revenue * 100:.2f}"


def summarize(
    transactions: Iterable[Mapping[str, Any]],
    expenses: Iterable[Mapping[str, Any]],
) -> dict[str, Any]:
    totals = transaction_totals(transactions)
    spent = expense_total(expenses)
    gross_profit = totals["revenue"] - totals["refunds"]
    net_profit = gross_profit - spent
    return {
        **totals,
        "expenses": spent,
        "gross_profit": gross_profit,
        "net_profit": net_profit,
        "profit_margin": profit_margin(net_profit, totals["revenue"]),
    }


# ── Report windows ───────────────────────────────────────────────────────────

def dashboard_window(period: Optional[str], today: Optional[date] = None) -> Tuple[date, date]:
    """Unknown periods fall back to 30 days."""
    today = today or datetime.now(timezone.utc).date()
    days = DASHBOARD_PERIODS.get(period or DEFAULT_PERIOD, DASHBOARD_PERIODS[DEFAULT_PERIOD])
    return today - timedelta(days=days), today


def trailing_window(
    start: Optional[date],
    end: Optional[date],
    days: int = 30,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    today = today or datetime.now(timezone.utc).date()
    return start or today - timedelta(days=days), end or today


def tax_window(year: int, quarter: Optional[int]) -> Tuple[date, date]:
    """Whole year, or the calendar quarter ending on its real last day."""
    if quarter is None:
        return date(year, 1, 1), date(year, 12, 31)
    if quarter not in (1, 2, 3, 4):
        raise ValueError(f"quarter must be 1-4, got {quarter}")
    first_month = (quarter - 1) * 3 + 1
    last_month = quarter * 3
    last_day = calendar.monthrange(year, last_month)[1]
    return date(year, first_month, 1), date(year, last_month, last_day)


def datetime_bounds(start: date, end: date) -> Tuple[datetime, datetime]:
    """
    [start 00:00, day after end 00:00) in UTC, covering the whole end day.
    An end on the last representable date is bounded by ``datetime.max``.
    """
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    if end >= date.max:
        upper = datetime.max.replace(tzinfo=timezone.utc)
    else:
        upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower, upper
