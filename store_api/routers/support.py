"""
Support tickets opened by the caller. Messages are append-only.

GET  /support/tickets
POST /support/tickets
GET  /support/tickets/{ticket_id}
GET  /support/tickets/{ticket_id}/messages
POST /support/tickets/{ticket_id}/messages
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from store_api.deps import AuthContext, get_auth_context
from store_api.errors import ValidationError, ok
from store_api.models import SupportMessage, SupportTicket
from store_api.schemas import (
    MessageCreate,
    SupportMessageRow,
    TicketCreate,
    TicketRow,
    dump,
    dump_all,
)

router = APIRouter(prefix="/support/tickets", tags=["support"])

MAX_SUBJECT_LENGTH = 255
MAX_MESSAGE_LENGTH = 5000
TICKET_LIST_LIMIT = 50


async def _messages(
    ctx: AuthContext, ticket_id: str, since: Optional[datetime] = None
) -> list[SupportMessage]:
    stmt = select(SupportMessage).where(SupportMessage.ticket_id == ticket_id)
    if since is not None:
        stmt = stmt.where(SupportMessage.created_at > since)
    return list(
        (await ctx.db.execute(stmt.order_by(SupportMessage.created_at.asc()))).scalars().all()
    )


@router.get("")
async def list_tickets(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    rows = (
        await ctx.db.execute(
            select(SupportTicket)
            .where(SupportTicket.user_id == ctx.user_id)
            .order_by(SupportTicket.created_at.desc())
            .limit(TICKET_LIST_LIMIT)
        )
    ).scalars().all()
    return ok(dump_all(TicketRow, rows))


@router.post("")
async def open_ticket(
    payload: TicketCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.subject:
        raise ValidationError("subject required")

    ticket = SupportTicket(
        user_id=ctx.user_id,
        subject=payload.subject[:MAX_SUBJECT_LENGTH],
        category=payload.category or None,
        priority=payload.priority or "normal",
        status="open",
    )
    ctx.db.add(ticket)
    await ctx.db.commit()

    if payload.message:
        ctx.db.add(SupportMessage(
            ticket_id=ticket.id,
            sender_id=ctx.user_id,
            is_staff=False,
            message=payload.message[:MAX_MESSAGE_LENGTH],
        ))
        await ctx.db.commit()

    return ok(dump(TicketRow, ticket), status_code=status.HTTP_201_CREATED)


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: str,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    ticket = await ctx.owned(SupportTicket, ticket_id, owner_field="user_id")
    data = dump(TicketRow, ticket)
    data["messages"] = dump_all(SupportMessageRow, await _messages(ctx, ticket.id))
    return ok(data)


@router.get("/{ticket_id}/messages")
async def list_ticket_messages(
    ticket_id: str,
    since: Optional[datetime] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    ticket = await ctx.owned(SupportTicket, ticket_id, owner_field="user_id")
    return ok(dump_all(SupportMessageRow, await _messages(ctx, ticket.id, since)))


@router.post("/{ticket_id}/messages")
async def add_ticket_message(
    ticket_id: str,
    payload: MessageCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.message:
        raise ValidationError("message required")
    ticket = await ctx.owned(SupportTicket, ticket_id, owner_field="user_id")

    msg = SupportMessage(
        ticket_id=ticket.id,
        sender_id=ctx.user_id,
        is_staff=False,
        message=payload.message[:MAX_MESSAGE_LENGTH],
    )
    ctx.db.add(msg)
    await ctx.db.commit()

    ticket.updated_at = datetime.now(timezone.utc)
    await ctx.db.commit()

    return ok(dump(SupportMessageRow, msg), status_code=status.HTTP_201_CREATED)
