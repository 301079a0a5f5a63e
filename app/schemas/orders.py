"""
schemas/orders.py — Pydantic models for order ingestion endpoints

Business Rules:
- order_text must contain something other than whitespace and fit within
  max_order_text_chars, the most the extractor reads
- restaurant_id / supplier_id are positive ids

Called by: routers/orders.py, routers/par_levels.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.config import settings


class AiOrderRequest(BaseModel):
    restaurant_id: int = Field(gt=0)
    supplier_id: int = Field(gt=0)
    order_text: str = Field(min_length=1, max_length=settings.max_order_text_chars)

    @field_validator("order_text")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("order_text is blank")
        return v


class RecognizedItem(BaseModel):
    name: str
    quantity: int


class UnmatchedItem(BaseModel):
    name: str
    quantity: int | None = None
    reason: str = "no_match"


class AiOrderResponse(BaseModel):
    order_id: int | None
    recognized_items: list[RecognizedItem]
    unmatched_items: list[UnmatchedItem] = []
    used_par_level: bool = False
    message: str


class OrderLineOut(BaseModel):
    item_id: int
    name: str | None = None
    unit: str | None = None
    quantity: int


class OrderHistoryOut(BaseModel):
    type: str
    status: str
    changed_at: datetime | None = None


class OrderOut(BaseModel):
    id: int
    restaurant_id: int
    supplier_id: int
    type: str
    status: str
    notes: str | None = None
    source: str | None = None
    expected_delivery_at: datetime | None = None
    created_at: datetime | None = None
    items: list[OrderLineOut]
    history: list[OrderHistoryOut]


class ParLevelLineOut(BaseModel):
    item_id: int | None
    name: str | None
    quantity: int


class ParLevelOut(BaseModel):
    id: int
    name: str | None
    restaurant_id: int
    supplier_id: int
    items: list[ParLevelLineOut]
