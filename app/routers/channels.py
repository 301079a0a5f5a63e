"""
channels.py — Mailbox ingestion router

Business Rules:
- POST /api/channels/{supplier_id}/poll runs one ingestion cycle now
- GET /api/channels/{supplier_id}/preview lists partner emails waiting to be
  ingested, without processing or labeling them
- Unknown supplier → 404, no mailbox connected → 409, Gmail failure → 502

Called by: main.py (router mount)
Depends on: services/channel_poller.py, dependencies.py
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import require_mail_token, require_supplier
from ..exceptions import ChannelTransportError
from ..models import Party
from ..rate_limit import limiter
from ..schemas.channels import MessagePreviewOut, PollReportOut
from ..services import channel_poller
from ..utils.gmail_client import GmailClient

log = logging.getLogger(__name__)

router = APIRouter(tags=["channels"])


@router.post("/api/channels/{supplier_id}/poll", response_model=PollReportOut)
@limiter.limit(settings.ai_order_rate_limit)
async def poll_supplier_channel(
    request: Request,
    supplier: Party = Depends(require_supplier),
    token: str = Depends(require_mail_token),
    db: Session = Depends(get_db),
):
    """Ingest unprocessed partner emails for one supplier."""
    try:
        report = await channel_poller.poll_channel(db, supplier, GmailClient(token))
    except ChannelTransportError as e:
        log.error(f"Gmail poll failed for {supplier.email}: {e}")
        raise HTTPException(502, "Mailbox provider unavailable")
    return report.to_dict()


@router.get("/api/channels/{supplier_id}/preview", response_model=list[MessagePreviewOut])
async def preview_supplier_channel(
    supplier: Party = Depends(require_supplier),
    token: str = Depends(require_mail_token),
    db: Session = Depends(get_db),
):
    """Show partner emails that the next poll would pick up."""
    try:
        return await channel_poller.preview_channel(db, supplier, GmailClient(token))
    except ChannelTransportError as e:
        log.error(f"Gmail preview failed for {supplier.email}: {e}")
        raise HTTPException(502, "Mailbox provider unavailable")
