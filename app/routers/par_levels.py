"""
par_levels.py — Read-only view of a restaurant's par level for a supplier

Called by: main.py (router mount)
Depends on: services/par_level_service.py
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.orders import ParLevelOut
from ..services import par_level_service

router = APIRouter(tags=["par-levels"])


@router.get("/api/par-levels/{restaurant_id}/{supplier_id}", response_model=ParLevelOut)
def get_par_level(restaurant_id: int, supplier_id: int, db: Session = Depends(get_db)):
    template = par_level_service.get_template(db, restaurant_id, supplier_id)
    if template is None:
        raise HTTPException(404, "No par level for this restaurant and supplier")
    return {
        "id": template.id,
        "name": template.name,
        "restaurant_id": template.restaurant_id,
        "supplier_id": template.supplier_id,
        "items": [
            {
                "item_id": line.item_id,
                "name": line.item.name if line.item else None,
                "quantity": line.quantity,
            }
            for line in template.items
        ],
    }
