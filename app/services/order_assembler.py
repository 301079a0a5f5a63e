"""Order Assembler — persist an order draft as Order + OrderItems + OrderHistory.

Business Rules:
  - New orders start as type DRAFT, status NOT_APPLICABLE, notes = raw text
  - Exactly one history entry mirrors the initial (type, status)
  - All rows for one order commit together or not at all; any database error
    rolls the session back and raises PersistenceError

Called by: services/order_service.py
Depends on: models (Order, OrderItem, OrderHistory)
"""

from datetime import datetime, timezone

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import PersistenceError
from app.models import Order, OrderHistory, OrderItem
from app.models.orders import ORDER_STATUS_NOT_APPLICABLE, ORDER_TYPE_DRAFT
from app.services.reconciliation import OrderDraft


def assemble(db: Session, draft: OrderDraft) -> int:
    """Write the draft in one transaction and return the new order id."""
    now = datetime.now(timezone.utc)
    try:
        order = Order(
            restaurant_id=draft.restaurant_id,
            supplier_id=draft.supplier_id,
            type=ORDER_TYPE_DRAFT,
            status=ORDER_STATUS_NOT_APPLICABLE,
            notes=draft.notes,
            source=draft.source,
            source_message_id=draft.source_message_id,
            expected_delivery_at=draft.expected_delivery,
            created_at=now,
        )
        db.add(order)
        db.flush()
        order_id = order.id

        for line in draft.lines:
            db.add(OrderItem(order_id=order_id, item_id=line.item_id, quantity=line.quantity))

        db.add(
            OrderHistory(
                order_id=order_id,
                type=ORDER_TYPE_DRAFT,
                status=ORDER_STATUS_NOT_APPLICABLE,
                changed_at=now,
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Order write failed for restaurant={} supplier={}: {}",
            draft.restaurant_id,
            draft.supplier_id,
            e,
        )
        raise PersistenceError("Could not save order") from e

    logger.info(
        "Order #{} created | restaurant={} supplier={} | lines={} | source={}",
        order_id,
        draft.restaurant_id,
        draft.supplier_id,
        len(draft.lines),
        draft.source,
    )
    return order_id
