"""Read-only query selectors."""

from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.kardex_selector import KardexSelector

__all__ = [
    "BaseSelector",
    "KardexSelector",
]
