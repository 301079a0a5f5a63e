"""Party (supplier / restaurant) and partnership models."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from ..utils.encrypted_type import EncryptedText
from .base import Base

PARTNERSHIP_ACTIVE = "ACTIVE"
PARTNERSHIP_DELETED = "DELETED"


class Party(Base):
    """A supplier or restaurant account. Suppliers own a mailbox channel."""

    __tablename__ = "parties"
    id = Column(Integer, primary_key=True)
    business_name = Column(String(255))
    contact_name = Column(String(255))
    email = Column(String(255), unique=True, nullable=False)
    business_phone = Column(String(50))
    is_supplier = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True)

    # Mail channel credentials, written by the OAuth collaborator
    gmail_access_token = Column(EncryptedText)
    gmail_refresh_token = Column(EncryptedText)
    gmail_token_expires_at = Column(DateTime)
    last_inbox_poll = Column(DateTime)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    catalog_items = relationship(
        "CatalogItem", back_populates="supplier", order_by="CatalogItem.id"
    )

    def __repr__(self) -> str:
        kind = "supplier" if self.is_supplier else "restaurant"
        return f"<Party {self.id} {kind} {self.email}>"


class Partnership(Base):
    """Authorization link letting a restaurant order from a supplier."""

    __tablename__ = "partnerships"
    id = Column(Integer, primary_key=True)
    restaurant_id = Column(
        Integer, ForeignKey("parties.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = Column(
        Integer, ForeignKey("parties.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(String(20), default=PARTNERSHIP_ACTIVE, nullable=False)  # ACTIVE | DELETED
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    restaurant = relationship("Party", foreign_keys=[restaurant_id])
    supplier = relationship("Party", foreign_keys=[supplier_id])

    __table_args__ = (
        Index("ix_partnerships_pair", "restaurant_id", "supplier_id", unique=True),
        Index("ix_partnerships_supplier", "supplier_id"),
    )
