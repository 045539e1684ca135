"""ORM models of the inventory ledger."""

from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.models.product import Product

__all__ = [
    "InventoryMovement",
    "Product",
]
