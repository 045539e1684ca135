"""Adjustments: manual stock corrections in either direction."""

from inventory_modules.adjustments.service import AdjustmentService

__all__ = ["AdjustmentService"]
