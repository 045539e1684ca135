"""Internal consumption of stock at average cost."""

from inventory_modules.consumption.service import ConsumptionService

__all__ = ["ConsumptionService"]
