"""
orders.py — Free-text order ingestion router

Business Rules:
- POST /api/orders/ai creates a DRAFT order from free text
- Unauthorized pair → 403, bad extractor output → 422, extractor down → 502,
  write failure → 500 with a generic message
- GET /api/orders/{id} returns the persisted order with lines and history

Called by: main.py (router mount)
Depends on: services/order_service.py
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..exceptions import (
    AuthorizationSkip,
    ExtractionFormatError,
    ExtractionTransportError,
    PersistenceError,
)
from ..rate_limit import limiter
from ..schemas.orders import AiOrderRequest, AiOrderResponse, OrderOut
from ..services import order_service

log = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


@router.post("/api/orders/ai", response_model=AiOrderResponse, status_code=201)
@limiter.limit(settings.ai_order_rate_limit)
async def create_ai_order(
    payload: AiOrderRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Parse free text into an order for (restaurant, supplier)."""
    log.info(
        f"AI order request: restaurant={payload.restaurant_id} "
        f"supplier={payload.supplier_id} chars={len(payload.order_text)}"
    )
    try:
        result = await order_service.create_order_from_text(
            db, payload.restaurant_id, payload.supplier_id, payload.order_text
        )
    except AuthorizationSkip as e:
        log.info(f"AI order refused: {e.reason}")
        raise HTTPException(403, "Restaurant is not an active partner of this supplier")
    except ExtractionFormatError as e:
        log.warning(f"Extractor returned invalid output: {e} | raw={e.raw_output[:500]!r}")
        raise HTTPException(422, "Could not understand the order text")
    except ExtractionTransportError as e:
        log.error(f"Extractor unavailable: {e} (status={e.status_code})")
        raise HTTPException(502, "Order extraction service unavailable")
    except PersistenceError:
        raise HTTPException(500, "Could not save order")

    return AiOrderResponse(
        order_id=result.order_id,
        recognized_items=result.recognized_items,
        unmatched_items=result.unmatched_items,
        used_par_level=result.used_par_level,
        message=result.message,
    )


@router.get("/api/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db)):
    """Return one order with its lines and status history."""
    order = order_service.get_order(db, order_id)
    if order is None:
        raise HTTPException(404, "Order not found")

    return {
        "id": order.id,
        "restaurant_id": order.restaurant_id,
        "supplier_id": order.supplier_id,
        "type": order.type,
        "status": order.status,
        "notes": order.notes,
        "source": order.source,
        "expected_delivery_at": order.expected_delivery_at,
        "created_at": order.created_at,
        "items": [
            {
                "item_id": line.item_id,
                "name": line.item.name if line.item else None,
                "unit": line.item.unit if line.item else None,
                "quantity": line.quantity,
            }
            for line in order.items
        ],
        "history": [
            {"type": h.type, "status": h.status, "changed_at": h.changed_at}
            for h in order.history
        ],
    }
