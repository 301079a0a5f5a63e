"""Order, order line, and order history models."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base

ORDER_TYPES = ("DRAFT", "PENDING", "ACTIVE", "ARCHIVED", "DELETED")
ORDER_STATUSES = ("ACCEPTED", "FULFILLED", "DELIVERED", "NOT_APPLICABLE")

ORDER_TYPE_DRAFT = "DRAFT"
ORDER_STATUS_NOT_APPLICABLE = "NOT_APPLICABLE"


class Order(Base):
    """An order from one restaurant to one supplier, created from free text."""

    __tablename__ = "orders"
    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("parties.id"), nullable=False)
    supplier_id = Column(Integer, ForeignKey("parties.id"), nullable=False)
    type = Column(String(20), default=ORDER_TYPE_DRAFT, nullable=False)  # DRAFT | PENDING | ACTIVE | ARCHIVED | DELETED
    status = Column(String(20), default=ORDER_STATUS_NOT_APPLICABLE, nullable=False)  # ACCEPTED | FULFILLED | DELIVERED | NOT_APPLICABLE
    notes = Column(Text)
    source = Column(String(20), default="api")  # api | email
    source_message_id = Column(String(255))
    cancelled = Column(Boolean, default=False)
    disputed = Column(Boolean, default=False)
    expected_delivery_at = Column(DateTime)
    final_delivery_at = Column(DateTime)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    last_updated = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    restaurant = relationship("Party", foreign_keys=[restaurant_id])
    supplier = relationship("Party", foreign_keys=[supplier_id])
    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    history = relationship(
        "OrderHistory",
        back_populates="order",
        order_by="OrderHistory.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_orders_supplier_created", "supplier_id", "created_at"),
        Index("ix_orders_restaurant", "restaurant_id"),
        Index("ix_orders_source_message", "source_message_id"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True)
    order_id = Column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    item_id = Column(Integer, ForeignKey("catalog_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
    item = relationship("CatalogItem")

    __table_args__ = (Index("ix_order_items_order", "order_id"),)


class OrderHistory(Base):
    """Append-only record of every (type, status) an order passed through."""

    __tablename__ = "order_history"
    id = Column(Integer, primary_key=True)
    order_id = Column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(String(20), nullable=False)
    type = Column(String(20), nullable=False)
    changed_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    order = relationship("Order", back_populates="history")

    __table_args__ = (Index("ix_order_history_order", "order_id"),)
