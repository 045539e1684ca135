"""Sales: stock out on confirmation, back in on cancellation."""

from inventory_modules.sales.service import SaleService

__all__ = ["SaleService"]
