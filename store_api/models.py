"""
SQLAlchemy ORM models for the seller store tables.

Every row that a seller can read or mutate carries an owner column
(``seller_id`` / ``user_id``) or hangs off a store that does.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(12, 2, asdecimal=False)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


# ── Store ────────────────────────────────────────────────────────────────────

class Store(Base):
    """One store per seller (enforced by the create handler, not the schema)."""
    __tablename__ = "stores"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    seller_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="inactive")
    visibility: Mapped[str] = mapped_column(Text, nullable=False, default="PRIVATE")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )


class SocialAccount(Base):
    __tablename__ = "social_accounts"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    store_id: Mapped[str] = mapped_column(
        Text, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    platform: Mapped[str] = mapped_column(Text, nullable=False)
    page_url: Mapped[str] = mapped_column(Text, nullable=False)
    page_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    store_id: Mapped[str] = mapped_column(
        Text, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float | None] = mapped_column(Money, nullable=True)
    images: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="DRAFT")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )


# ── Reviews & questions ──────────────────────────────────────────────────────

class ProductReview(Base):
    __tablename__ = "product_reviews"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    seller_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    customer_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_verified_purchase: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    moderation_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    seller_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    seller_responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    seller_responder_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )


class ReviewRequest(Base):
    __tablename__ = "review_requests"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    seller_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    order_id: Mapped[str] = mapped_column(Text, nullable=False)
    customer_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    request_type: Mapped[str] = mapped_column(Text, nullable=False, default="email")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="sent")
    sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


class SellerReviewSettings(Base):
    """Single row per seller (upserted on seller_id)."""
    __tablename__ = "seller_review_settings"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    seller_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    review_auto_request_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    review_auto_request_delay_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=7
    )
    review_auto_request_method: Mapped[str] = mapped_column(
        Text, nullable=False, default="email"
    )
    incentive_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    incentive_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )


class ReviewQuestion(Base):
    __tablename__ = "review_questions"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    customer_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    is_answered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


class ReviewAnswer(Base):
    __tablename__ = "review_answers"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    question_id: Mapped[str] = mapped_column(
        Text, ForeignKey("review_questions.id", ondelete="CASCADE"), nullable=False
    )
    answerer_id: Mapped[str] = mapped_column(Text, nullable=False)
    answerer_type: Mapped[str] = mapped_column(Text, nullable=False, default="seller")
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    is_official: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


# ── Financial ────────────────────────────────────────────────────────────────

class Transaction(Base):
    """Written by checkout; only read here as an aggregation source."""
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    seller_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    buyer_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    item_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    seller_payout: Mapped[float | None] = mapped_column(Money, nullable=True)
    platform_fee: Mapped[float | None] = mapped_column(Money, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


class SellerExpense(Base):
    """Soft-deleted through ``status = 'deleted'``; rows are never removed."""
    __tablename__ = "seller_expenses"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    seller_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Money, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    vendor_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_tax_deductible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )


class AccountingIntegration(Base):
    __tablename__ = "accounting_integrations"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    seller_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    provider: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="disconnected")
    connected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


# ── Chat & support ───────────────────────────────────────────────────────────

class Profile(Base):
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)


class ChatConversation(Base):
    __tablename__ = "chat_conversations"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    seller_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    customer_id: Mapped[str] = mapped_column(Text, nullable=False)
    customer_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


class ChatMessage(Base):
    """Append-only."""
    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    conversation_id: Mapped[str] = mapped_column(
        Text, ForeignKey("chat_conversations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sender_id: Mapped[str] = mapped_column(Text, nullable=False)
    sender_type: Mapped[str] = mapped_column(Text, nullable=False)
    sender_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(Text, nullable=False, default="normal")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


class SupportMessage(Base):
    """Append-only."""
    __tablename__ = "support_messages"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_uuid)
    ticket_id: Mapped[str] = mapped_column(
        Text, ForeignKey("support_tickets.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sender_id: Mapped[str] = mapped_column(Text, nullable=False)
    is_staff: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
