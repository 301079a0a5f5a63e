"""Database models — re-exports all models.

Import from here:  from app.models import Party, Order, ...
Or from submodules: from app.models.orders import Order
"""

from .base import Base  # noqa: F401

# Parties & Partnerships
from .parties import Party, Partnership  # noqa: F401

# Catalog & Par Levels
from .catalog import CatalogItem, ParLevel, ParLevelItem  # noqa: F401

# Orders
from .orders import Order, OrderHistory, OrderItem  # noqa: F401
