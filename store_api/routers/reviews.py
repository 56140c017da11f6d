"""
Seller-side review management.

GET   /reviews
GET   /reviews/analytics
GET   /reviews/requestable-orders
POST  /reviews/request
GET   /reviews/auto-request/config
POST  /reviews/auto-request/config
POST  /reviews/bulk-update
POST  /reviews/{review_id}/respond
PATCH /reviews/{review_id}/status

Moderation moves a review from ``pending`` to ``approved`` or ``rejected``.
The seller response is a separate field and may be replaced at any time.
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy import select

from store_api.config import get_settings
from store_api.deps import AuthContext, get_auth_context
from store_api.errors import ValidationError, ok
from store_api.models import (
    Product,
    ProductReview,
    ReviewRequest,
    SellerReviewSettings,
    Transaction,
)
from store_api.schemas import (
    AutoRequestConfig,
    AutoRequestConfigRow,
    ProductSummary,
    RequestableOrder,
    ReviewBulkUpdate,
    ReviewRequestCreate,
    ReviewRespond,
    ReviewRow,
    ReviewStatusUpdate,
    dump,
    dump_all,
)
from store_api.services.financials import datetime_bounds, trailing_window
from store_api.services.pagination import clamp, paginate

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/reviews", tags=["reviews"])

MODERATION_STATUSES = ("approved", "rejected")
REQUESTABLE_ORDER_STATUSES = ("completed", "delivered")
# Every ordering ends on the primary key so offset pages are stable.
_SORTS = {
    "rating_high": (ProductReview.rating.desc(), ProductReview.created_at.desc(), ProductReview.id),
    "rating_low": (ProductReview.rating.asc(), ProductReview.created_at.desc(), ProductReview.id),
    "recent": (ProductReview.created_at.desc(), ProductReview.id),
}


def _apply_moderation(review: ProductReview, new_status: str, now: datetime) -> None:
    review.status = new_status
    review.is_published = new_status == "approved"
    review.published_at = now if new_status == "approved" else None
    review.moderation_status = "reviewed"


async def _product_summaries(ctx: AuthContext, product_ids: set[str]) -> dict[str, dict]:
    if not product_ids:
        return {}
    rows = (
        await ctx.db.execute(select(Product).where(Product.id.in_(product_ids)))
    ).scalars().all()
    return {p.id: dump(ProductSummary, p) for p in rows}


# ── Listing & analytics ──────────────────────────────────────────────────────

@router.get("")
async def list_reviews(
    status_filter: str = Query("all", alias="status"),
    rating: Optional[int] = None,
    product_id: Optional[str] = None,
    sort: str = "recent",
    page: int = 1,
    limit: Optional[int] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    page, limit = clamp(page, limit)

    stmt = select(ProductReview).where(ProductReview.seller_id == ctx.user_id)
    if status_filter != "all":
        stmt = stmt.where(ProductReview.status == status_filter)
    if rating:
        stmt = stmt.where(ProductReview.rating == rating)
    if product_id:
        stmt = stmt.where(ProductReview.product_id == product_id)
    stmt = stmt.order_by(*_SORTS.get(sort, _SORTS["recent"]))

    rows, pagination = await paginate(ctx.db, stmt, page, limit)
    reviews = [r[0] for r in rows]
    products = await _product_summaries(ctx, {r.product_id for r in reviews})

    items = []
    for review in reviews:
        item = dump(ReviewRow, review)
        item["products"] = products.get(review.product_id)
        items.append(item)

    return ok({"reviews": items, "pagination": pagination})


@router.get("/analytics")
async def review_analytics(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    product_id: Optional[str] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    start, end = trailing_window(start_date, end_date)
    lower, upper = datetime_bounds(start, end)

    stmt = select(ProductReview).where(
        ProductReview.seller_id == ctx.user_id,
        ProductReview.status == "approved",
        ProductReview.created_at >= lower,
        ProductReview.created_at < upper,
    )
    if product_id:
        stmt = stmt.where(ProductReview.product_id == product_id)
    reviews = (await ctx.db.execute(stmt)).scalars().all()

    total = len(reviews)
    avg = sum(r.rating or 0 for r in reviews) / total if total else 0
    distribution = {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}
    for r in reviews:
        distribution[min(5, max(1, r.rating or 0))] += 1
    with_photos = sum(1 for r in reviews if r.images)
    with_videos = sum(1 for r in reviews if r.video_url)
    responded = sum(1 for r in reviews if r.seller_response)

    by_day: dict[str, list[int]] = defaultdict(list)
    for r in reviews:
        by_day[r.created_at.date().isoformat()].append(r.rating or 0)
    trend = [
        {"date": day, "count": len(ratings), "average_rating": f"{sum(ratings) / len(ratings):.2f}"}
        for day, ratings in sorted(by_day.items())
    ]

    counts = Counter(r.product_id for r in reviews)
    top = counts.most_common(5)
    names = await _product_summaries(ctx, {pid for pid, _ in top})
    top_products = [
        {
            "product_id": pid,
            "name": (names.get(pid) or {}).get("name"),
            "review_count": count,
        }
        for pid, count in top
    ]

    return ok({
        "summary": {
            "total_reviews": total,
            "average_rating": f"{avg:.2f}",
            "rating_distribution": distribution,
            "with_photos": with_photos,
            "with_videos": with_videos,
            "response_rate": f"{responded / total * 100:.1f}" if total else "0",
        },
        "trend": trend,
        "top_products": top_products,
    })


# ── Review-request campaign ──────────────────────────────────────────────────

@router.get("/requestable-orders")
async def requestable_orders(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    orders = (
        await ctx.db.execute(
            select(
                Transaction.id,
                Transaction.item_name,
                Transaction.created_at,
                Transaction.product_id,
            )
            .where(
                Transaction.seller_id == ctx.user_id,
                Transaction.status.in_(REQUESTABLE_ORDER_STATUSES),
            )
            .order_by(Transaction.created_at.desc())
            .limit(100)
        )
    ).all()

    order_ids = [o.id for o in orders]
    requested: set[str] = set()
    if order_ids:
        requested = set(
            (
                await ctx.db.execute(
                    select(ReviewRequest.order_id).where(
                        ReviewRequest.seller_id == ctx.user_id,
                        ReviewRequest.order_id.in_(order_ids),
                    )
                )
            ).scalars().all()
        )

    return ok(dump_all(RequestableOrder, [o for o in orders if o.id not in requested]))


@router.post("/request")
async def send_review_requests(
    payload: ReviewRequestCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.order_ids:
        raise ValidationError("order_ids array required")
    await ctx.require_store("Store not found")

    now = datetime.now(timezone.utc)
    delayed = payload.delay_days > 0
    # Pending adds are not flushed, so repeats within one batch are dropped here.
    order_ids = list(dict.fromkeys(payload.order_ids))
    sent = 0
    for order_id in order_ids[: settings.review_request_batch_limit]:
        tx = (
            await ctx.db.execute(
                select(Transaction).where(
                    Transaction.id == order_id,
                    Transaction.seller_id == ctx.user_id,
                )
            )
        ).scalar_one_or_none()
        if tx is None:
            continue

        already = (
            await ctx.db.execute(
                select(ReviewRequest.id).where(
                    ReviewRequest.seller_id == ctx.user_id,
                    ReviewRequest.order_id == order_id,
                ).limit(1)
            )
        ).scalar_one_or_none()
        if already is not None:
            continue

        ctx.db.add(ReviewRequest(
            seller_id=ctx.user_id,
            order_id=order_id,
            customer_id=tx.buyer_id,
            product_ids=[tx.product_id] if tx.product_id else [],
            request_type=payload.send_via,
            status="pending" if delayed else "sent",
            sent_at=None if delayed else now,
        ))
        sent += 1

    await ctx.db.commit()
    logger.info("Review requests queued: seller=%s count=%d", ctx.user_id, sent)
    return ok(requests_sent=sent)


@router.get("/auto-request/config")
async def get_auto_request_config(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    row = (
        await ctx.db.execute(
            select(SellerReviewSettings).where(SellerReviewSettings.seller_id == ctx.user_id)
        )
    ).scalar_one_or_none()
    if row is None:
        return ok({"review_auto_request_enabled": False})
    return ok(dump(AutoRequestConfigRow, row))


@router.post("/auto-request/config")
async def save_auto_request_config(
    payload: AutoRequestConfig,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    row = (
        await ctx.db.execute(
            select(SellerReviewSettings).where(SellerReviewSettings.seller_id == ctx.user_id)
        )
    ).scalar_one_or_none()
    if row is None:
        row = SellerReviewSettings(seller_id=ctx.user_id)

    row.review_auto_request_enabled = bool(payload.enabled)
    row.review_auto_request_delay_days = (
        payload.delay_days if payload.delay_days is not None else 7
    )
    row.review_auto_request_method = payload.send_via or "email"
    # Incentives are only replaced when the body names them.
    for field in ("incentive_type", "incentive_value"):
        if field in payload.model_fields_set:
            setattr(row, field, getattr(payload, field))
    row.updated_at = datetime.now(timezone.utc)
    ctx.db.add(row)
    await ctx.db.commit()
    return ok(dump(AutoRequestConfigRow, row))


# ── Moderation ───────────────────────────────────────────────────────────────

@router.post("/bulk-update")
async def bulk_update_reviews(
    payload: ReviewBulkUpdate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if payload.review_ids is None or payload.status not in MODERATION_STATUSES:
        raise ValidationError("review_ids array and status required")

    reviews = []
    if payload.review_ids:
        reviews = (
            await ctx.db.execute(
                select(ProductReview).where(
                    ProductReview.seller_id == ctx.user_id,
                    ProductReview.id.in_(payload.review_ids),
                )
            )
        ).scalars().all()

    now = datetime.now(timezone.utc)
    for review in reviews:
        _apply_moderation(review, payload.status, now)
    await ctx.db.commit()

    logger.info(
        "Bulk moderation: seller=%s status=%s requested=%d updated=%d",
        ctx.user_id, payload.status, len(payload.review_ids), len(reviews),
    )
    return ok(updated=len(reviews))


@router.post("/{review_id}/respond")
async def respond_to_review(
    review_id: str,
    payload: ReviewRespond,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.response:
        raise ValidationError("Response text required")
    review = await ctx.owned(ProductReview, review_id, message="Review not found")

    review.seller_response = payload.response
    review.seller_responded_at = datetime.now(timezone.utc)
    review.seller_responder_id = ctx.user_id
    await ctx.db.commit()
    return ok(dump(ReviewRow, review))


@router.patch("/{review_id}/status")
async def update_review_status(
    review_id: str,
    payload: ReviewStatusUpdate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if payload.status not in MODERATION_STATUSES:
        raise ValidationError("Status must be approved or rejected")
    review = await ctx.owned(ProductReview, review_id, message="Review not found")

    _apply_moderation(review, payload.status, datetime.now(timezone.utc))
    await ctx.db.commit()
    return ok(dump(ReviewRow, review))
