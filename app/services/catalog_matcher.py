"""Catalog Matcher — resolve a free-text item name to one supplier catalog item.

Business Rules:
  - Candidates are the supplier's own catalog items only, in primary-key order
  - Match = case-insensitive substring containment of the requested name in
    the catalog item name ("tomato" matches "Tomatoes (kg)")
  - First match wins. There is no scoring: two items both containing "cola"
    always resolve to the lower id
  - Blank names never match
  - With catalog_match_active_only (default on) only ACTIVE items are
    eligible; turned off, any status matches
  - No match returns NO_MATCH (None); callers skip the line
  - get(item_id) applies the same supplier and status policy to a known id

Called by: services/reconciliation.py
Depends on: models (CatalogItem)
"""

from sqlalchemy.orm import Session

from app.config import settings
from app.models import CatalogItem
from app.models.catalog import ITEM_ACTIVE

NO_MATCH = None


def _normalize(name: str | None) -> str:
    return " ".join((name or "").split()).casefold()


class CatalogIndex:
    """Ordered snapshot of one supplier's catalog with the matching policy.

    Loaded once per reconciliation run so N lines cost one query.
    """

    def __init__(self, supplier_id: int, items: list[CatalogItem]):
        self.supplier_id = supplier_id
        self._items = sorted(
            (i for i in items if i.supplier_id == supplier_id), key=lambda i: i.id
        )
        self._names = [_normalize(i.name) for i in self._items]
        self._by_id = {i.id: i for i in self._items}

    @classmethod
    def load(cls, db: Session, supplier_id: int, *, active_only: bool | None = None) -> "CatalogIndex":
        if active_only is None:
            active_only = settings.catalog_match_active_only
        query = db.query(CatalogItem).filter(CatalogItem.supplier_id == supplier_id)
        if active_only:
            query = query.filter(CatalogItem.status == ITEM_ACTIVE)
        return cls(supplier_id, query.order_by(CatalogItem.id).all())

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: int | None) -> CatalogItem | None:
        """The item with this id if it is one of this supplier's eligible items."""
        if item_id is None:
            return NO_MATCH
        return self._by_id.get(item_id, NO_MATCH)

    def match(self, raw_name: str) -> CatalogItem | None:
        needle = _normalize(raw_name)
        if not needle:
            return NO_MATCH
        for item, name in zip(self._items, self._names):
            if needle in name:
                return item
        return NO_MATCH


def match(
    db: Session,
    supplier_id: int,
    raw_name: str,
    *,
    active_only: bool | None = None,
) -> CatalogItem | None:
    """Resolve one name against the supplier's catalog. Returns NO_MATCH if none."""
    return CatalogIndex.load(db, supplier_id, active_only=active_only).match(raw_name)
