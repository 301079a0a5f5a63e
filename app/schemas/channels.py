"""
schemas/channels.py — Pydantic models for mailbox ingestion endpoints

Called by: routers/channels.py
"""

from pydantic import BaseModel


class MessageOutcomeOut(BaseModel):
    message_id: str
    status: str  # created | skipped_unauthorized | skipped_no_items | failed
    sender: str | None = None
    subject: str = ""
    order_id: int | None = None
    error: str | None = None
    marked: bool = False
    truncated: bool = False


class PollReportOut(BaseModel):
    supplier_id: int
    processed: int
    created: int
    skipped_unauthorized: int
    skipped_no_items: int
    failed: int
    outcomes: list[MessageOutcomeOut]


class MessagePreviewOut(BaseModel):
    message_id: str
    sender: str | None = None
    restaurant_id: int
    subject: str = ""
    snippet: str = ""
