"""
Social accounts linked to the caller's store.

GET    /social
POST   /social
DELETE /social/{account_id}
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from store_api.deps import AuthContext, get_auth_context
from store_api.errors import ValidationError, ok
from store_api.models import SocialAccount
from store_api.schemas import SocialAccountCreate, SocialAccountRow, dump, dump_all

router = APIRouter(prefix="/social", tags=["social"])


@router.get("")
async def list_social_accounts(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    store = await ctx.store()
    if store is None:
        return ok([])
    rows = (
        await ctx.db.execute(
            select(SocialAccount)
            .where(SocialAccount.store_id == store.id)
            .order_by(SocialAccount.created_at)
        )
    ).scalars().all()
    return ok(dump_all(SocialAccountRow, rows))


@router.post("")
async def connect_social_account(
    payload: SocialAccountCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.platform or not payload.page_url:
        raise ValidationError("Platform and pageUrl are required")
    store = await ctx.require_store()

    account = SocialAccount(
        store_id=store.id,
        platform=payload.platform,
        page_url=payload.page_url,
        page_id=payload.page_id,
    )
    ctx.db.add(account)
    await ctx.db.commit()
    return ok(dump(SocialAccountRow, account), status_code=status.HTTP_201_CREATED)


@router.delete("/{account_id}")
async def disconnect_social_account(
    account_id: str,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    account = await ctx.owned_by_store(SocialAccount, account_id, message="Account not found")
    await ctx.db.delete(account)
    await ctx.db.commit()
    return ok(message="Account disconnected")
