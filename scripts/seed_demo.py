#!/usr/bin/env python3
"""Seed demo data — two suppliers, two restaurants, catalogs, partnerships, par levels.

Usage:
    PYTHONPATH=. python scripts/seed_demo.py            # dry run, prints the plan
    PYTHONPATH=. python scripts/seed_demo.py --apply    # writes to DATABASE_URL

Idempotent: parties are keyed by email and skipped when they already exist,
so re-running --apply never duplicates rows.
"""

import argparse
import os
import sys

# Must set up path before app imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.models import CatalogItem, ParLevel, ParLevelItem, Party, Partnership

SUPPLIERS = [
    {
        "business_name": "Fresh Produce Co.",
        "contact_name": "John Doe",
        "email": "john@freshproduce.com",
        "business_phone": "(02) 1234 5678",
        "catalog": [
            ("FP-001", "Lettuce (Iceberg)", "2.50", "each", "Crisp iceberg lettuce"),
            ("FP-002", "Tomatoes (kg)", "3.99", "kg", "Fresh red tomatoes"),
        ],
    },
    {
        "business_name": "Beverages Co.",
        "contact_name": "Jane Smith",
        "email": "jane@beveragesco.com",
        "business_phone": "(02) 9876 5432",
        "catalog": [
            ("BV-001", "Cola (12 pack)", "12.00", "box", "Canned cola x12"),
            ("BV-002", "Orange Juice (2L)", "4.50", "bottle", "Freshly squeezed OJ"),
        ],
    },
]

RESTAURANTS = [
    {
        "business_name": "Gourmet Steakhouse",
        "contact_name": "Alice Chef",
        "email": "alice@gourmetsteak.com",
        "business_phone": "(02) 2222 3333",
    },
    {
        "business_name": "Pizza Palace",
        "contact_name": "Bob Manager",
        "email": "bob@pizzapalace.com",
        "business_phone": "(02) 9999 8888",
    },
]

# (restaurant email, supplier email)
PARTNERSHIPS = [
    ("alice@gourmetsteak.com", "john@freshproduce.com"),
    ("bob@pizzapalace.com", "john@freshproduce.com"),
    ("bob@pizzapalace.com", "jane@beveragesco.com"),
]

# (name, restaurant email, supplier email, [(sku, quantity)])
PAR_LEVELS = [
    ("Weekly Produce Par", "alice@gourmetsteak.com", "john@freshproduce.com", [("FP-001", 10), ("FP-002", 5)]),
    ("Produce Par", "bob@pizzapalace.com", "john@freshproduce.com", [("FP-002", 8)]),
    ("Beverage Par", "bob@pizzapalace.com", "jane@beveragesco.com", [("BV-001", 2), ("BV-002", 3)]),
]


def _find_party(db: Session, email: str) -> Party | None:
    return db.query(Party).filter(func.lower(Party.email) == email.lower()).first()


def seed(db: Session) -> dict:
    """Insert whatever is missing. Returns counts of created rows."""
    stats = {"parties": 0, "catalog_items": 0, "partnerships": 0, "par_levels": 0}
    parties: dict[str, Party] = {}
    skus: dict[str, CatalogItem] = {}

    for entry in SUPPLIERS:
        party = _find_party(db, entry["email"])
        if party is None:
            party = Party(
                business_name=entry["business_name"],
                contact_name=entry["contact_name"],
                email=entry["email"],
                business_phone=entry["business_phone"],
                is_supplier=True,
            )
            db.add(party)
            db.flush()
            stats["parties"] += 1
            for sku, name, price, unit, description in entry["catalog"]:
                db.add(
                    CatalogItem(
                        supplier_id=party.id,
                        sku=sku,
                        name=name,
                        price=price,
                        unit=unit,
                        description=description,
                    )
                )
                stats["catalog_items"] += 1
            db.flush()
        parties[entry["email"]] = party
        for item in db.query(CatalogItem).filter(CatalogItem.supplier_id == party.id):
            skus[item.sku] = item

    for entry in RESTAURANTS:
        party = _find_party(db, entry["email"])
        if party is None:
            party = Party(is_supplier=False, **entry)
            db.add(party)
            db.flush()
            stats["parties"] += 1
        parties[entry["email"]] = party

    for restaurant_email, supplier_email in PARTNERSHIPS:
        restaurant, supplier = parties[restaurant_email], parties[supplier_email]
        exists = (
            db.query(Partnership)
            .filter_by(restaurant_id=restaurant.id, supplier_id=supplier.id)
            .first()
        )
        if exists is None:
            db.add(Partnership(restaurant_id=restaurant.id, supplier_id=supplier.id))
            stats["partnerships"] += 1

    for name, restaurant_email, supplier_email, lines in PAR_LEVELS:
        restaurant, supplier = parties[restaurant_email], parties[supplier_email]
        exists = (
            db.query(ParLevel)
            .filter_by(restaurant_id=restaurant.id, supplier_id=supplier.id)
            .first()
        )
        if exists is not None:
            continue
        par = ParLevel(name=name, restaurant_id=restaurant.id, supplier_id=supplier.id)
        par.items = [ParLevelItem(item_id=skus[sku].id, quantity=qty) for sku, qty in lines]
        db.add(par)
        stats["par_levels"] += 1

    return stats


def main():
    parser = argparse.ArgumentParser(description="Seed demo parties, catalogs and par levels")
    parser.add_argument("--apply", action="store_true", help="Commit changes (default: dry run)")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        stats = seed(db)
        if args.apply:
            db.commit()
            print(f"Seed applied: {stats}")
        else:
            db.rollback()
            print(f"[DRY RUN] Would create: {stats}")
            print("Re-run with --apply to write.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
