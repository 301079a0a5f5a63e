"""Reconciliation Engine — merge par-level and extracted lines, match them to
the supplier catalog, and produce an order draft plus a match report.

Business Rules:
  - When the intent asks for the usual order, par-level lines come first,
    then the extracted lines: [par..., extracted...]
  - Par-level lines resolve to their own catalog item when it is still
    eligible; name matching is the fallback for items that no longer are
  - Each line is matched independently; a miss is recorded in the report and
    dropped from the draft (the supplier only sees what matched)
  - Quantities must be positive integers; anything else is reported as
    "invalid_quantity" and dropped before matching
  - Duplicate names are not merged; each requested line becomes its own
    order line
  - A draft with zero lines is a valid result

Called by: services/order_service.py
Depends on: services/catalog_matcher.py, services/par_level_service.py
"""

from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger
from sqlalchemy.orm import Session

from app.services import par_level_service
from app.services.catalog_matcher import CatalogIndex
from app.services.intent_extractor import IntentLine, OrderIntent

SOURCE_PAR_LEVEL = "par_level"
SOURCE_TEXT = "text"


@dataclass(frozen=True)
class DraftLine:
    item_id: int
    quantity: int


@dataclass
class OrderDraft:
    restaurant_id: int
    supplier_id: int
    notes: str
    lines: list[DraftLine] = field(default_factory=list)
    expected_delivery: datetime | None = None
    used_par_level: bool = False
    source: str = "api"
    source_message_id: str | None = None


@dataclass(frozen=True)
class MatchedLine:
    requested_name: str
    item_id: int
    name: str
    quantity: int
    source: str


@dataclass(frozen=True)
class UnmatchedLine:
    requested_name: str
    quantity: int
    source: str
    reason: str = "no_match"


@dataclass
class MatchReport:
    matched: list[MatchedLine] = field(default_factory=list)
    unmatched: list[UnmatchedLine] = field(default_factory=list)

    @property
    def inserted_items(self) -> list[dict]:
        """Caller-facing view of what will be ordered."""
        return [{"name": m.name, "quantity": m.quantity} for m in self.matched]

    @property
    def unmatched_items(self) -> list[dict]:
        return [
            {"name": u.requested_name, "quantity": u.quantity, "reason": u.reason}
            for u in self.unmatched
        ]


def _combined_lines(
    db: Session, restaurant_id: int, supplier_id: int, intent: OrderIntent
) -> list[tuple[IntentLine, str]]:
    lines: list[tuple[IntentLine, str]] = []
    if intent.use_par_level:
        lines.extend(
            (line, SOURCE_PAR_LEVEL)
            for line in par_level_service.resolve(db, restaurant_id, supplier_id)
        )
    lines.extend((line, SOURCE_TEXT) for line in intent.lines)
    return lines


def _valid_quantity(quantity) -> bool:
    return isinstance(quantity, int) and not isinstance(quantity, bool) and quantity > 0


def reconcile(
    db: Session,
    restaurant_id: int,
    supplier_id: int,
    intent: OrderIntent,
    *,
    raw_text: str,
    source: str = "api",
    source_message_id: str | None = None,
    catalog: CatalogIndex | None = None,
) -> tuple[OrderDraft, MatchReport]:
    """Build the order draft and match report for one intent."""
    catalog = catalog or CatalogIndex.load(db, supplier_id)
    draft = OrderDraft(
        restaurant_id=restaurant_id,
        supplier_id=supplier_id,
        notes=raw_text,
        expected_delivery=intent.expected_delivery,
        used_par_level=intent.use_par_level,
        source=source,
        source_message_id=source_message_id,
    )
    report = MatchReport()

    for line, line_source in _combined_lines(db, restaurant_id, supplier_id, intent):
        if not _valid_quantity(line.quantity):
            logger.info(
                "[INVALID QTY] {} x {} ({})", line.raw_name, line.quantity, line_source
            )
            report.unmatched.append(
                UnmatchedLine(
                    requested_name=line.raw_name,
                    quantity=line.quantity,
                    source=line_source,
                    reason="invalid_quantity",
                )
            )
            continue

        item = catalog.get(line.item_id) or catalog.match(line.raw_name)
        if item is None:
            logger.info("[MISSING ITEM] Could not find item: {}", line.raw_name)
            report.unmatched.append(
                UnmatchedLine(
                    requested_name=line.raw_name,
                    quantity=line.quantity,
                    source=line_source,
                )
            )
            continue

        logger.debug("[ITEM MATCH] {} -> #{} {}", line.raw_name, item.id, item.name)
        draft.lines.append(DraftLine(item_id=item.id, quantity=line.quantity))
        report.matched.append(
            MatchedLine(
                requested_name=line.raw_name,
                item_id=item.id,
                name=item.name,
                quantity=line.quantity,
                source=line_source,
            )
        )

    logger.info(
        "Reconciled restaurant={} supplier={} | matched={} | unmatched={}",
        restaurant_id,
        supplier_id,
        len(report.matched),
        len(report.unmatched),
    )
    return draft, report
