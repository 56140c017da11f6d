"""
FastAPI dependency utilities: the per-request authorization context.

``AuthContext`` binds the authenticated caller to the DB session and is the
single place that answers "which rows may this caller touch".
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Type, TypeVar

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from store_api.database import get_db
from store_api.errors import NotFound, Unauthorized, ValidationError
from store_api.models import Store

logger = logging.getLogger(__name__)

Row = TypeVar("Row")

_UNSET: Any = object()


class AuthContext:
    def __init__(self, user_id: str, db: AsyncSession) -> None:
        self.user_id = user_id
        self.db = db
        self._store: Optional[Store] = _UNSET

    async def store(self) -> Optional[Store]:
        """The caller's store, looked up once per request."""
        if self._store is _UNSET:
            self._store = (
                await self.db.execute(
                    select(Store).where(Store.seller_id == self.user_id).limit(1)
                )
            ).scalar_one_or_none()
        return self._store

    async def require_store(self, message: str = "Create a store first") -> Store:
        store = await self.store()
        if store is None:
            raise ValidationError(message)
        return store

    async def owned(
        self,
        model: Type[Row],
        row_id: str,
        owner_field: str = "seller_id",
        message: str = "Not found",
        **filters: Any,
    ) -> Row:
        """
        Fetch ``model`` by id, restricted to rows whose *owner_field* is the
        caller. Rows owned by someone else are indistinguishable from missing.
        """
        stmt = select(model).where(
            model.id == row_id,
            getattr(model, owner_field) == self.user_id,
        )
        for field, value in filters.items():
            stmt = stmt.where(getattr(model, field) == value)
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise NotFound(message)
        return row

    async def owned_by_store(self, model: Type[Row], row_id: str, message: str = "Not found") -> Row:
        """Fetch a row that hangs off the caller's store via ``store_id``."""
        store = await self.store()
        if store is None:
            raise NotFound(message)
        row = (
            await self.db.execute(
                select(model).where(model.id == row_id, model.store_id == store.id)
            )
        ).scalar_one_or_none()
        if row is None:
            raise NotFound(message)
        return row


async def get_auth_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise Unauthorized()
    return AuthContext(user_id=user_id, db=db)
