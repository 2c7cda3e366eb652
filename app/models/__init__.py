"""Database models — re-exports all models.

Import from here:  from app.models import Product, SpecialPrice, ...
Or from submodules: from app.models.pricing import SpecialPrice
"""

from .base import Base  # noqa: F401

# Catalog: groups, units, products, packages
from .catalog import Product, ProductGroup, ProductPackage, Unit  # noqa: F401

# Inventory
from .inventory import StockBalance, Warehouse  # noqa: F401

# Counterparties
from .counterparties import Counterparty, DeliveryAddress  # noqa: F401

# Pricing policy graph
from .pricing import (  # noqa: F401
    ClientAgreement,
    ClientContract,
    PriceType,
    ProductPrice,
    SpecialPrice,
)

# Sync journal
from .sync import SyncRun, SyncRunItem  # noqa: F401
