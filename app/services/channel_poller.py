"""
channel_poller.py — Mailbox ingestion for one supplier

One poll cycle:
  ensure label → list unconsumed → per message: resolve sender → authorize
  → create order from the message text → apply the processed label.

Business Rules:
- Messages are handled one at a time, in the order the provider lists them
- Sender and subject are reported for every message that could be fetched
- Sender with no Party or no ACTIVE partnership → skipped_unauthorized.
  The message is left unlabeled and simply ignored
- Only created and skipped_no_items count against max_results; listing pages
  past unlabeled messages (up to gmail_max_pages) so they never block the inbox
- No catalog match → skipped_no_items, no order, message labeled
- Order created → created(order_id), message labeled
- Any error for one message → failed(error), message left unlabeled so the
  next cycle retries it; the batch always continues
- Labeling is best-effort: a failure is logged and reported as marked=False
  but never rolls back the order. A later cycle may then see the message again

Called by: routers/channels.py, scheduler.py (channel_poll job)
Depends on: utils/gmail_client.py, services/order_service.py, models
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import AuthorizationSkip, OrderIngestError
from app.models import Party
from app.services import order_service
from app.utils.gmail_client import GmailClient, MailMessage, parse_message

CREATED = "created"
SKIPPED_UNAUTHORIZED = "skipped_unauthorized"
SKIPPED_NO_ITEMS = "skipped_no_items"
FAILED = "failed"


@dataclass
class MessageOutcome:
    message_id: str
    status: str
    sender: str | None = None
    subject: str = ""
    order_id: int | None = None
    error: str | None = None
    marked: bool = False
    truncated: bool = False


@dataclass
class PollReport:
    supplier_id: int
    outcomes: list[MessageOutcome] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "processed": len(self.outcomes),
            "created": self.count(CREATED),
            "skipped_unauthorized": self.count(SKIPPED_UNAUTHORIZED),
            "skipped_no_items": self.count(SKIPPED_NO_ITEMS),
            "failed": self.count(FAILED),
            "outcomes": [asdict(o) for o in self.outcomes],
        }


def find_party_by_email(db: Session, email: str) -> Party | None:
    return (
        db.query(Party)
        .filter(func.lower(Party.email) == email.strip().lower())
        .first()
    )


def resolve_sender(db: Session, supplier: Party, msg: MailMessage) -> Party | None:
    """Return the restaurant behind the sender if it may order from supplier."""
    if not msg.sender:
        return None
    restaurant = find_party_by_email(db, msg.sender)
    if restaurant is None or restaurant.id == supplier.id:
        return None
    if order_service.find_active_partnership(db, restaurant.id, supplier.id) is None:
        return None
    return restaurant


async def _mark_consumed(client: GmailClient, outcome: MessageOutcome, label_id: str) -> None:
    try:
        await client.apply_label(outcome.message_id, label_id)
        outcome.marked = True
    except Exception as e:
        logger.error("Failed to mark message {} as processed: {}", outcome.message_id, e)


async def _process_message(
    db: Session, supplier: Party, msg: MailMessage, outcome: MessageOutcome
) -> None:
    restaurant = resolve_sender(db, supplier, msg)
    if restaurant is None:
        logger.debug("[SKIPPED] {} is not an authorized partner", msg.sender)
        outcome.status = SKIPPED_UNAUTHORIZED
        return

    logger.info('[PROCESSING] Email from {}: "{}"', msg.sender, msg.snippet[:120])
    result = await order_service.create_order_from_text(
        db,
        restaurant.id,
        supplier.id,
        msg.text,
        source="email",
        source_message_id=msg.id,
        persist_empty=False,
    )
    outcome.truncated = result.truncated
    if result.created:
        outcome.status = CREATED
        outcome.order_id = result.order_id
    else:
        logger.info("[SKIPPED] No items matched in email {}", msg.id)
        outcome.status = SKIPPED_NO_ITEMS


async def _handle_stub(
    db: Session, supplier: Party, client: GmailClient, stub: dict
) -> MessageOutcome:
    outcome = MessageOutcome(message_id=stub["id"], status=FAILED)
    try:
        msg = parse_message(await client.get_message(outcome.message_id))
        outcome.sender, outcome.subject = msg.sender, msg.subject
        await _process_message(db, supplier, msg, outcome)
    except AuthorizationSkip as e:
        outcome.status = SKIPPED_UNAUTHORIZED
        outcome.error = e.reason
    except (OrderIngestError, SQLAlchemyError) as e:
        db.rollback()
        logger.error("Email {} failed: {}", outcome.message_id, e)
        outcome.status = FAILED
        outcome.error = str(e)
    except Exception as e:
        db.rollback()
        logger.exception("Unexpected error processing email {}", outcome.message_id)
        outcome.status = FAILED
        outcome.error = type(e).__name__
    return outcome


async def poll_channel(
    db: Session,
    supplier: Party,
    client: GmailClient,
    *,
    max_results: int | None = None,
) -> PollReport:
    """Run one ingestion cycle for the supplier's mailbox.

    Up to max_results messages are consumed (created or skipped_no_items).
    Unauthorized and failed messages stay unlabeled and do not use up that
    allowance, so the listing pages past them, at most gmail_max_pages pages.

    Raises ChannelTransportError only when the cycle cannot start (label setup
    or listing failed). Per-message problems become FAILED outcomes.
    """
    max_results = max_results or settings.gmail_max_results
    label_id = await client.ensure_label(settings.processed_label_name)
    report = PollReport(supplier_id=supplier.id)

    consumed = 0
    page_token = None
    for _ in range(settings.gmail_max_pages):
        stubs, page_token = await client.list_unconsumed_page(
            settings.processed_label_name, max_results, page_token
        )
        for stub in stubs:
            if consumed >= max_results:
                break
            outcome = await _handle_stub(db, supplier, client, stub)
            if outcome.status in (CREATED, SKIPPED_NO_ITEMS):
                consumed += 1
                await _mark_consumed(client, outcome, label_id)
            report.outcomes.append(outcome)
        if consumed >= max_results or not page_token:
            break

    supplier.last_inbox_poll = datetime.now(timezone.utc)
    db.commit()

    logger.info(
        "Inbox poll [{}]: {} message(s) | created={} unauthorized={} no_items={} failed={}",
        supplier.email,
        len(report.outcomes),
        report.count(CREATED),
        report.count(SKIPPED_UNAUTHORIZED),
        report.count(SKIPPED_NO_ITEMS),
        report.count(FAILED),
    )
    return report


async def preview_channel(
    db: Session,
    supplier: Party,
    client: GmailClient,
    *,
    max_results: int | None = None,
) -> list[dict]:
    """List unconsumed messages from authorized partners without processing them."""
    max_results = max_results or settings.gmail_max_results
    stubs = await client.list_unconsumed(settings.processed_label_name, max_results)

    previews = []
    for stub in stubs:
        msg = parse_message(await client.get_message(stub["id"]))
        restaurant = resolve_sender(db, supplier, msg)
        if restaurant is None:
            continue
        previews.append(
            {
                "message_id": msg.id,
                "sender": msg.sender,
                "restaurant_id": restaurant.id,
                "subject": msg.subject,
                "snippet": msg.snippet,
            }
        )
    return previews
