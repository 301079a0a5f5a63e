"""
dependencies.py — Shared FastAPI Dependencies

Business Rules:
- require_supplier raises 404 when the party is unknown or not a supplier
- require_mail_token raises 409 when the supplier never connected a mailbox,
  502 when its token cannot be refreshed

Called by: routers/channels.py
Depends on: models, database, scheduler (token refresh)
"""

import logging

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models import Party

log = logging.getLogger(__name__)


def require_supplier(supplier_id: int, db: Session = Depends(get_db)) -> Party:
    """Dependency: the supplier named in the path."""
    supplier = db.get(Party, supplier_id)
    if supplier is None or not supplier.is_supplier:
        raise HTTPException(404, "Supplier not found")
    return supplier


async def require_mail_token(
    supplier: Party = Depends(require_supplier),
    db: Session = Depends(get_db),
) -> str:
    """Dependency: a valid Gmail bearer token for the supplier."""
    from .scheduler import get_valid_token

    if not supplier.gmail_access_token and not supplier.gmail_refresh_token:
        raise HTTPException(409, "No Gmail connection for supplier")
    token = await get_valid_token(supplier, db)
    if not token:
        log.warning(f"Gmail token refresh failed for {supplier.email}")
        raise HTTPException(502, "Gmail token refresh failed")
    return token
