"""
conftest.py — Shared Test Fixtures for the order ingestion service

Provides an in-memory SQLite database, a FastAPI TestClient bound to it,
and factory fixtures for the demo parties, catalogs, partnerships and par
levels.

Business Rules:
- All tests run against an isolated in-memory DB (no prod data risk)
- The LLM oracle and Gmail are never called for real; tests patch them
- Each test function gets a fresh schema

Called by: all test files via pytest autodiscovery
Depends on: app.models (Base), app.database (get_db)
"""

import os

# Must be set before importing app modules
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LLM_API_KEY"] = "test-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CHANNEL_POLLING_ENABLED"] = "false"

import base64
import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import (
    Base,
    CatalogItem,
    ParLevel,
    ParLevelItem,
    Party,
    Partnership,
)

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Helpers ──────────────────────────────────────────────────────────


def intent_json(items=(), use_par_level=False, delivery=None) -> str:
    """Raw oracle output for a list of (name, quantity) pairs."""
    data = {
        "useParLevel": use_par_level,
        "items": [{"name": n, "quantity": q} for n, q in items],
    }
    if delivery:
        data["expectedDeliveryDateTime"] = delivery
    return json.dumps(data)


def gmail_message(msg_id, sender, body, subject="Order", snippet=None, mime="text/plain"):
    """A Gmail `format=full` message with a single body part."""
    encoded = base64.urlsafe_b64encode(body.encode()).decode().rstrip("=")
    return {
        "id": msg_id,
        "threadId": f"t-{msg_id}",
        "snippet": snippet if snippet is not None else body[:100],
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "From", "value": sender},
                {"name": "Subject", "value": subject},
            ],
            "parts": [{"mimeType": mime, "body": {"data": encoded}}],
        },
    }


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _party(db: Session, **kwargs) -> Party:
    party = Party(created_at=datetime.now(timezone.utc), **kwargs)
    db.add(party)
    db.commit()
    db.refresh(party)
    return party


@pytest.fixture()
def supplier(db_session: Session) -> Party:
    """Fresh Produce Co. — a supplier with a connected mailbox."""
    return _party(
        db_session,
        business_name="Fresh Produce Co.",
        contact_name="John Doe",
        email="john@freshproduce.com",
        is_supplier=True,
    )


@pytest.fixture()
def other_supplier(db_session: Session) -> Party:
    """Beverages Co. — a second supplier with its own catalog."""
    return _party(
        db_session,
        business_name="Beverages Co.",
        contact_name="Jane Smith",
        email="jane@beveragesco.com",
        is_supplier=True,
    )


@pytest.fixture()
def restaurant(db_session: Session) -> Party:
    """Gourmet Steakhouse — a restaurant buyer."""
    return _party(
        db_session,
        business_name="Gourmet Steakhouse",
        contact_name="Alice Chef",
        email="alice@gourmetsteak.com",
        is_supplier=False,
    )


@pytest.fixture()
def partnership(db_session: Session, restaurant: Party, supplier: Party) -> Partnership:
    """ACTIVE partnership: Gourmet Steakhouse → Fresh Produce Co."""
    link = Partnership(restaurant_id=restaurant.id, supplier_id=supplier.id, status="ACTIVE")
    db_session.add(link)
    db_session.commit()
    db_session.refresh(link)
    return link


@pytest.fixture()
def catalog(db_session: Session, supplier: Party) -> dict[str, CatalogItem]:
    """Fresh Produce Co. catalog: Lettuce (Iceberg), Tomatoes (kg)."""
    items = {
        "lettuce": CatalogItem(
            supplier_id=supplier.id, sku="FP-001", name="Lettuce (Iceberg)",
            price="2.50", unit="each",
        ),
        "tomatoes": CatalogItem(
            supplier_id=supplier.id, sku="FP-002", name="Tomatoes (kg)",
            price="3.99", unit="kg",
        ),
    }
    db_session.add_all(items.values())
    db_session.commit()
    return items


@pytest.fixture()
def other_catalog(db_session: Session, other_supplier: Party) -> dict[str, CatalogItem]:
    """Beverages Co. catalog: Cola (12 pack), Orange Juice (2L)."""
    items = {
        "cola": CatalogItem(
            supplier_id=other_supplier.id, sku="BV-001", name="Cola (12 pack)",
            price="12.00", unit="box",
        ),
        "juice": CatalogItem(
            supplier_id=other_supplier.id, sku="BV-002", name="Orange Juice (2L)",
            price="4.50", unit="bottle",
        ),
    }
    db_session.add_all(items.values())
    db_session.commit()
    return items


@pytest.fixture()
def par_level(db_session: Session, restaurant: Party, supplier: Party, catalog) -> ParLevel:
    """Weekly Produce Par: Lettuce x10, Tomatoes x5."""
    par = ParLevel(name="Weekly Produce Par", restaurant_id=restaurant.id, supplier_id=supplier.id)
    par.items = [
        ParLevelItem(item_id=catalog["lettuce"].id, quantity=10),
        ParLevelItem(item_id=catalog["tomatoes"].id, quantity=5),
    ]
    db_session.add(par)
    db_session.commit()
    db_session.refresh(par)
    return par


@pytest.fixture()
def client(db_session: Session) -> TestClient:
    """FastAPI TestClient with get_db bound to the test session."""
    from app.database import get_db
    from app.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
