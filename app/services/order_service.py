"""
order_service.py — Free-text order entry point

Runs one order through the whole pipeline:
authorize → extract intent → reconcile against par level + catalog → persist.

Business Rules:
- Both parties must exist and be linked by an ACTIVE partnership, otherwise
  AuthorizationSkip (403 for direct calls, silent skip for the mailbox poller)
- Authorization is checked before the oracle is called
- Zero-match orders are persisted when persist_empty_orders is on (default),
  mirroring the behaviour callers already rely on; the poller turns it off
- Every call creates a new order; there is no deduplication at this layer
- OrderResult.truncated reports text that was cut before extraction
- Any failure before the commit leaves no Order, OrderItem or OrderHistory row

Called by: routers/orders.py, services/channel_poller.py
Depends on: services/intent_extractor, services/reconciliation,
            services/order_assembler, models
"""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.exceptions import AuthorizationSkip
from app.models import Order, OrderItem, Party, Partnership
from app.models.parties import PARTNERSHIP_ACTIVE
from app.services import intent_extractor, order_assembler, reconciliation


@dataclass
class OrderResult:
    order_id: int | None
    recognized_items: list[dict] = field(default_factory=list)
    unmatched_items: list[dict] = field(default_factory=list)
    used_par_level: bool = False
    message: str = ""
    truncated: bool = False

    @property
    def created(self) -> bool:
        return self.order_id is not None


def find_active_partnership(
    db: Session, restaurant_id: int, supplier_id: int
) -> Partnership | None:
    return (
        db.query(Partnership)
        .filter(
            Partnership.restaurant_id == restaurant_id,
            Partnership.supplier_id == supplier_id,
            Partnership.status == PARTNERSHIP_ACTIVE,
        )
        .first()
    )


def authorize(db: Session, restaurant_id: int, supplier_id: int) -> tuple[Party, Party]:
    """Return (restaurant, supplier) or raise AuthorizationSkip."""
    restaurant = db.get(Party, restaurant_id)
    if restaurant is None:
        raise AuthorizationSkip(f"Unknown restaurant {restaurant_id}")
    supplier = db.get(Party, supplier_id)
    if supplier is None or not supplier.is_supplier:
        raise AuthorizationSkip(f"Unknown supplier {supplier_id}")
    if find_active_partnership(db, restaurant_id, supplier_id) is None:
        raise AuthorizationSkip(
            f"No active partnership between restaurant {restaurant_id} "
            f"and supplier {supplier_id}"
        )
    return restaurant, supplier


def _result_message(created: bool, used_par_level: bool) -> str:
    if not created:
        return "No items recognized; order not created"
    if used_par_level:
        return "Order created from par level and text"
    return "Order created from text"


async def create_order_from_text(
    db: Session,
    restaurant_id: int,
    supplier_id: int,
    order_text: str,
    *,
    source: str = "api",
    source_message_id: str | None = None,
    persist_empty: bool | None = None,
) -> OrderResult:
    """Turn free text into a persisted order for (restaurant, supplier)."""
    if persist_empty is None:
        persist_empty = settings.persist_empty_orders

    authorize(db, restaurant_id, supplier_id)

    intent = await intent_extractor.extract(order_text)
    draft, report = reconciliation.reconcile(
        db,
        restaurant_id,
        supplier_id,
        intent,
        raw_text=order_text,
        source=source,
        source_message_id=source_message_id,
    )

    if not draft.lines and not persist_empty:
        logger.info(
            "[SKIPPED] No items matched for restaurant={} supplier={}",
            restaurant_id,
            supplier_id,
        )
        return OrderResult(
            order_id=None,
            unmatched_items=report.unmatched_items,
            used_par_level=intent.use_par_level,
            message=_result_message(False, intent.use_par_level),
            truncated=intent.truncated,
        )

    order_id = order_assembler.assemble(db, draft)
    return OrderResult(
        order_id=order_id,
        recognized_items=report.inserted_items,
        unmatched_items=report.unmatched_items,
        used_par_level=intent.use_par_level,
        message=_result_message(True, intent.use_par_level),
        truncated=intent.truncated,
    )


def get_order(db: Session, order_id: int) -> Order | None:
    """Load an order with its lines (and their catalog items) and history."""
    return (
        db.query(Order)
        .options(
            selectinload(Order.items).selectinload(OrderItem.item),
            selectinload(Order.history),
        )
        .filter(Order.id == order_id)
        .first()
    )
