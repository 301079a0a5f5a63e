"""Par-Level Resolver — expand a restaurant's standing order for a supplier.

Business Rules:
  - One template is resolved per (restaurant, supplier). If several exist the
    first by id is authoritative
  - No template means no lines; "use my usual" without a template is a no-op
  - A template line whose catalog item is gone is skipped with a warning

Called by: services/reconciliation.py, routers/par_levels.py
Depends on: models (ParLevel, ParLevelItem)
"""

from loguru import logger
from sqlalchemy.orm import Session, selectinload

from app.models import ParLevel, ParLevelItem
from app.services.intent_extractor import IntentLine


def get_template(db: Session, restaurant_id: int, supplier_id: int) -> ParLevel | None:
    """Return the authoritative par-level template for the pair, if any."""
    return (
        db.query(ParLevel)
        .options(selectinload(ParLevel.items).selectinload(ParLevelItem.item))
        .filter(
            ParLevel.restaurant_id == restaurant_id,
            ParLevel.supplier_id == supplier_id,
        )
        .order_by(ParLevel.id)
        .first()
    )


def resolve(db: Session, restaurant_id: int, supplier_id: int) -> list[IntentLine]:
    """Expand the pair's template into (catalog item name, quantity, item id) lines."""
    template = get_template(db, restaurant_id, supplier_id)
    if template is None:
        logger.info(
            "No par level for restaurant={} supplier={}", restaurant_id, supplier_id
        )
        return []

    lines: list[IntentLine] = []
    for entry in template.items:
        if entry.item is None or not entry.item.name:
            logger.warning(
                "Par level {} line {} has no catalog item — skipped",
                template.id,
                entry.id,
            )
            continue
        lines.append(
            IntentLine(raw_name=entry.item.name, quantity=entry.quantity, item_id=entry.item_id)
        )

    logger.info("Par level '{}' expanded to {} line(s)", template.name, len(lines))
    return lines
