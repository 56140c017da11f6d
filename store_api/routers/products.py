"""
Products of the caller's store.

GET    /products
POST   /products
PUT    /products/{product_id}
DELETE /products/{product_id}
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from store_api.deps import AuthContext, get_auth_context
from store_api.errors import ValidationError, ok
from store_api.models import Product
from store_api.schemas import ProductCreate, ProductRow, ProductUpdate, dump, dump_all

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
async def list_products(
    status_filter: str = Query("all", alias="status"),
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    store = await ctx.store()
    if store is None:
        return ok([])

    stmt = select(Product).where(Product.store_id == store.id)
    if status_filter != "all":
        stmt = stmt.where(Product.status == status_filter)
    rows = (await ctx.db.execute(stmt.order_by(Product.updated_at.desc()))).scalars().all()
    return ok(dump_all(ProductRow, rows))


@router.post("")
async def create_product(
    payload: ProductCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.name:
        raise ValidationError("Product name is required")
    store = await ctx.require_store()

    product = Product(
        store_id=store.id,
        name=payload.name,
        description=payload.description,
        price=payload.price,
        images=payload.images or [],
        status="DRAFT",
    )
    ctx.db.add(product)
    await ctx.db.commit()
    return ok(dump(ProductRow, product), status_code=status.HTTP_201_CREATED)


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    product = await ctx.owned_by_store(Product, product_id, message="Product not found")

    changes = payload.model_dump(exclude_unset=True)
    for field in ("name", "status"):
        if not changes.get(field):
            changes.pop(field, None)
    if "images" in changes and changes["images"] is None:
        changes["images"] = []

    for field, value in changes.items():
        setattr(product, field, value)
    ctx.db.add(product)
    await ctx.db.commit()
    return ok(dump(ProductRow, product))


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    product = await ctx.owned_by_store(Product, product_id, message="Product not found")
    await ctx.db.delete(product)
    await ctx.db.commit()
    logger.info("Product deleted: id=%s seller=%s", product_id, ctx.user_id)
    return ok(message="Product deleted")
