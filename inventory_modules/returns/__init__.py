"""Supplier and customer returns."""

from inventory_modules.returns.service import ReturnService

__all__ = ["ReturnService"]
