"""Supplier catalog and par-level template models."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import Base

ITEM_STATUSES = ("ACTIVE", "DRAFT", "ARCHIVED", "DELETED")
ITEM_ACTIVE = "ACTIVE"


class CatalogItem(Base):
    """An item a supplier sells. Primary-key order is catalog order."""

    __tablename__ = "catalog_items"
    id = Column(Integer, primary_key=True)
    supplier_id = Column(
        Integer, ForeignKey("parties.id", ondelete="CASCADE"), nullable=False
    )
    sku = Column(String(100))
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2))
    unit = Column(String(50))
    description = Column(Text)
    status = Column(String(20), default=ITEM_ACTIVE, nullable=False)  # ACTIVE | DRAFT | ARCHIVED | DELETED

    supplier = relationship("Party", back_populates="catalog_items")

    __table_args__ = (
        Index("ix_catalog_items_supplier", "supplier_id", "id"),
    )


class ParLevel(Base):
    """A restaurant's standing default order for one supplier."""

    __tablename__ = "par_levels"
    id = Column(Integer, primary_key=True)
    name = Column(String(255))
    restaurant_id = Column(
        Integer, ForeignKey("parties.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = Column(
        Integer, ForeignKey("parties.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "ParLevelItem",
        back_populates="par_level",
        order_by="ParLevelItem.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_par_levels_pair", "restaurant_id", "supplier_id"),
    )


class ParLevelItem(Base):
    __tablename__ = "par_level_items"
    id = Column(Integer, primary_key=True)
    par_level_id = Column(
        Integer, ForeignKey("par_levels.id", ondelete="CASCADE"), nullable=False
    )
    item_id = Column(Integer, ForeignKey("catalog_items.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False)

    par_level = relationship("ParLevel", back_populates="items")
    item = relationship("CatalogItem")
