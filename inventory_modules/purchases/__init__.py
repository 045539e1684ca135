"""Purchases: receipt of supplier goods into stock at purchase cost."""

from inventory_modules.purchases.service import PurchaseService

__all__ = ["PurchaseService"]
