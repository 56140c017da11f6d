"""
Seller side of buyer chat. Clients poll; messages are append-only.

GET  /chat/conversations
POST /chat/conversations
GET  /chat/conversations/{conversation_id}
GET  /chat/conversations/{conversation_id}/messages
POST /chat/conversations/{conversation_id}/messages
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from store_api.config import get_settings
from store_api.deps import AuthContext, get_auth_context
from store_api.errors import ValidationError, ok
from store_api.models import ChatConversation, ChatMessage, Profile
from store_api.schemas import (
    ChatMessageRow,
    ConversationCreate,
    ConversationRow,
    MessageCreate,
    dump,
    dump_all,
)

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/chat/conversations", tags=["chat"])

MAX_MESSAGE_LENGTH = 2000


async def _messages(
    ctx: AuthContext, conversation_id: str, since: Optional[datetime] = None
) -> list[ChatMessage]:
    stmt = select(ChatMessage).where(ChatMessage.conversation_id == conversation_id)
    if since is not None:
        stmt = stmt.where(ChatMessage.created_at > since)
    return list(
        (await ctx.db.execute(stmt.order_by(ChatMessage.created_at.asc()))).scalars().all()
    )


@router.get("")
async def list_conversations(ctx: AuthContext = Depends(get_auth_context)) -> JSONResponse:
    rows = (
        await ctx.db.execute(
            select(ChatConversation)
            .where(ChatConversation.seller_id == ctx.user_id)
            .order_by(ChatConversation.last_message_at.desc().nulls_last())
            .limit(settings.conversation_list_limit)
        )
    ).scalars().all()
    return ok(dump_all(ConversationRow, rows))


@router.post("")
async def open_conversation(
    payload: ConversationCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    """Get or create the conversation between the caller and a customer."""
    if not payload.customer_id:
        raise ValidationError("customer_id required")

    conv = (
        await ctx.db.execute(
            select(ChatConversation).where(
                ChatConversation.seller_id == ctx.user_id,
                ChatConversation.customer_id == payload.customer_id,
            ).limit(1)
        )
    ).scalar_one_or_none()
    if conv is not None:
        return ok(dump(ConversationRow, conv))

    conv = ChatConversation(
        seller_id=ctx.user_id,
        customer_id=payload.customer_id,
        customer_name=payload.customer_name,
        subject=payload.subject,
    )
    ctx.db.add(conv)
    await ctx.db.commit()
    return ok(dump(ConversationRow, conv), status_code=status.HTTP_201_CREATED)


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    conv = await ctx.owned(ChatConversation, conversation_id)
    data = dump(ConversationRow, conv)
    data["messages"] = dump_all(ChatMessageRow, await _messages(ctx, conv.id))
    return ok(data)


@router.get("/{conversation_id}/messages")
async def list_messages(
    conversation_id: str,
    since: Optional[datetime] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    conv = await ctx.owned(ChatConversation, conversation_id)
    return ok(dump_all(ChatMessageRow, await _messages(ctx, conv.id, since)))


@router.post("/{conversation_id}/messages")
async def send_message(
    conversation_id: str,
    payload: MessageCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> JSONResponse:
    if not payload.message:
        raise ValidationError("message required")
    conv = await ctx.owned(ChatConversation, conversation_id)

    profile = await ctx.db.get(Profile, ctx.user_id)
    msg = ChatMessage(
        conversation_id=conv.id,
        sender_id=ctx.user_id,
        sender_type="seller",
        sender_name=(profile.name if profile else None) or "Seller",
        message=payload.message[:MAX_MESSAGE_LENGTH],
    )
    ctx.db.add(msg)
    await ctx.db.commit()

    # Not atomic with the insert above; a crash here leaves last_message_at stale.
    now = datetime.now(timezone.utc)
    conv.last_message_at = now
    conv.updated_at = now
    await ctx.db.commit()

    return ok(dump(ChatMessageRow, msg), status_code=status.HTTP_201_CREATED)
