"""
The caller's store (root resource of the API).

GET  /        caller's store with its social accounts, or null
POST /        create the caller's store
PUT  /        partial update
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from store_api.deps import AuthContext, get_auth_context
from store_api.errors import NotFound, ValidationError, ok
from store_api.models import SocialAccount, Store
from store_api.schemas import SocialAccountRow, StoreCreate, StoreRow, StoreUpdate, dump, dump_all

logger = logging.getLogger(__name__)

router = APIRouter(tags=["store"])


async def _slug_taken(ctx: AuthContext, slug: str, exclude_store_id: str | None = None) -> bool:
    stmt = select(Store.id).where(Store.slug == slug)
    if exclude_store_id:
        stmt = stmt.where(Store.id != exclude_store_id)
    return (await ctx.db.execute(stmt.limit(1))).scalar_one_or_none() is not None


@router.get("")
async def get_store(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    store = await ctx.store()
    if store is None:
        return ok(None)

    accounts = (
        await ctx.db.execute(
            select(SocialAccount)
            .where(SocialAccount.store_id == store.id)
            .order_by(SocialAccount.created_at)
        )
    ).scalars().all()
    data = dump(StoreRow, store)
    data["social_accounts"] = dump_all(SocialAccountRow, accounts)
    return ok(data)


@router.post("")
async def create_store(
    payload: StoreCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.name or not payload.slug:
        raise ValidationError("Name and slug are required")

    # Both checks run before the insert; there is no unique constraint to trip.
    if await ctx.store() is not None:
        raise ValidationError("User already has a store")
    if await _slug_taken(ctx, payload.slug):
        raise ValidationError("Slug already taken")

    store = Store(
        seller_id=ctx.user_id,
        name=payload.name,
        slug=payload.slug,
        bio=payload.bio,
        logo=payload.logo,
        status="inactive",
        visibility="PRIVATE",
    )
    ctx.db.add(store)
    await ctx.db.commit()

    logger.info("Store created: id=%s slug=%s seller=%s", store.id, store.slug, ctx.user_id)
    return ok(dump(StoreRow, store), status_code=status.HTTP_201_CREATED)


@router.put("")
async def update_store(
    payload: StoreUpdate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    store = await ctx.store()
    if store is None:
        raise NotFound("Store not found")

    changes = payload.model_dump(exclude_unset=True)
    # Empty name/slug/visibility/status mean "leave unchanged"; bio and logo may be cleared.
    for field in ("name", "slug", "visibility", "status"):
        if not changes.get(field):
            changes.pop(field, None)

    if "slug" in changes and changes["slug"] != store.slug:
        if await _slug_taken(ctx, changes["slug"], exclude_store_id=store.id):
            raise ValidationError("Slug already taken")

    for field, value in changes.items():
        setattr(store, field, value)
    ctx.db.add(store)
    await ctx.db.commit()

    return ok(dump(StoreRow, store))
