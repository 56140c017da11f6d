"""
Pydantic schemas for request/response validation.

Request bodies declare every field optional: presence rules ("name and slug
are required") live in the handlers so the error text matches each route,
while pydantic still rejects values of the wrong type.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RowModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ── Store / products / social ─────────────────────────────────────────────────

class StoreCreate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    bio: Optional[str] = None
    logo: Optional[str] = None


class StoreUpdate(StoreCreate):
    visibility: Optional[str] = None
    status: Optional[str] = None


class StoreRow(RowModel):
    id: str
    seller_id: str
    name: str
    slug: str
    bio: Optional[str] = None
    logo: Optional[str] = None
    status: str
    visibility: str
    created_at: datetime
    updated_at: datetime


class SocialAccountCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    platform: Optional[str] = None
    page_url: Optional[str] = Field(default=None, alias="pageUrl")
    page_id: Optional[str] = Field(default=None, alias="pageId")


class SocialAccountRow(RowModel):
    id: str
    store_id: str
    platform: str
    page_url: str
    page_id: Optional[str] = None
    created_at: datetime


class ProductCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    images: Optional[List[str]] = None


class ProductUpdate(ProductCreate):
    status: Optional[str] = None


class ProductRow(RowModel):
    id: str
    store_id: str
    name: str
    description: Optional[str] = None
    price: Optional[float] = None
    images: List[Any] = []
    status: str
    created_at: datetime
    updated_at: datetime


class ProductSummary(RowModel):
    id: str
    name: str
    images: List[Any] = []


# ── Reviews ──────────────────────────────────────────────────────────────────

class ReviewRow(RowModel):
    id: str
    product_id: str
    seller_id: str
    customer_id: Optional[str] = None
    rating: int
    title: Optional[str] = None
    body: Optional[str] = None
    images: List[Any] = []
    video_url: Optional[str] = None
    is_verified_purchase: bool
    status: str
    is_published: bool
    published_at: Optional[datetime] = None
    moderation_status: Optional[str] = None
    seller_response: Optional[str] = None
    seller_responded_at: Optional[datetime] = None
    seller_responder_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReviewRespond(BaseModel):
    response: Optional[str] = None


class ReviewStatusUpdate(BaseModel):
    status: Optional[str] = None


class ReviewBulkUpdate(BaseModel):
    review_ids: Optional[List[str]] = None
    status: Optional[str] = None


class ReviewRequestCreate(BaseModel):
    order_ids: Optional[List[str]] = None
    send_via: str = "email"
    delay_days: int = 0


class RequestableOrder(RowModel):
    id: str
    item_name: Optional[str] = None
    created_at: datetime
    product_id: Optional[str] = None


class AutoRequestConfig(BaseModel):
    enabled: Optional[bool] = None
    delay_days: Optional[int] = None
    send_via: Optional[str] = None
    incentive_type: Optional[str] = None
    incentive_value: Optional[str] = None


class AutoRequestConfigRow(RowModel):
    id: str
    seller_id: str
    review_auto_request_enabled: bool
    review_auto_request_delay_days: int
    review_auto_request_method: str
    incentive_type: Optional[str] = None
    incentive_value: Optional[str] = None
    updated_at: datetime


class QuestionRow(RowModel):
    id: str
    product_id: str
    customer_id: Optional[str] = None
    question: str
    is_answered: bool
    created_at: datetime


class AnswerCreate(BaseModel):
    answer: Optional[str] = None


class AnswerRow(RowModel):
    id: str
    question_id: str
    answerer_id: str
    answerer_type: str
    answer: str
    is_official: bool
    created_at: datetime


# ── Financial ────────────────────────────────────────────────────────────────

class ExpenseCreate(BaseModel):
    amount: Optional[float] = None
    category: Optional[str] = None
    description: Optional[str] = None
    vendor_name: Optional[str] = None
    expense_date: Optional[date] = None
    is_tax_deductible: Optional[bool] = None


class ExpenseUpdate(BaseModel):
    amount: Optional[float] = None
    category: Optional[str] = None
    description: Optional[str] = None
    vendor_name: Optional[str] = None
    expense_date: Optional[date] = None


class ExpenseRow(RowModel):
    id: str
    seller_id: str
    amount: float
    category: str
    description: str
    vendor_name: Optional[str] = None
    expense_date: date
    is_tax_deductible: bool
    status: str
    created_at: datetime
    updated_at: datetime


class IntegrationRow(RowModel):
    id: str
    seller_id: str
    provider: str
    status: str
    connected_at: Optional[datetime] = None


# ── Chat & support ───────────────────────────────────────────────────────────

class ConversationCreate(BaseModel):
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    subject: Optional[str] = None


class ConversationRow(RowModel):
    id: str
    seller_id: str
    customer_id: str
    customer_name: Optional[str] = None
    subject: Optional[str] = None
    status: str
    last_message_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ChatMessageRow(RowModel):
    id: str
    conversation_id: str
    sender_id: str
    sender_type: str
    sender_name: Optional[str] = None
    message: str
    created_at: datetime


class MessageCreate(BaseModel):
    message: Optional[str] = None


class TicketCreate(BaseModel):
    subject: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    message: Optional[str] = None


class TicketRow(RowModel):
    id: str
    user_id: str
    subject: str
    category: Optional[str] = None
    priority: str
    status: str
    created_at: datetime
    updated_at: datetime


class SupportMessageRow(RowModel):
    id: str
    ticket_id: str
    sender_id: str
    is_staff: bool
    message: str
    created_at: datetime


class HealthResponse(BaseModel):
    status: str = "ok"
    db: str = "ok"


def dump(schema: type[RowModel], row: Any) -> dict[str, Any]:
    """Serialize an ORM row through *schema* into JSON-ready primitives."""
    return schema.model_validate(row).model_dump(mode="json")


def dump_all(schema: type[RowModel], rows: Any) -> list[dict[str, Any]]:
    return [dump(schema, r) for r in rows]
