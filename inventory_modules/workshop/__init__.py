"""Workshop: parts consumed on and returned from work orders."""

from inventory_modules.workshop.service import WorkshopService

__all__ = ["WorkshopService"]
