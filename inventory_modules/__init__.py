"""
Inventory Modules (``inventory_modules``).

Thin business orchestrators.  Each module turns one kind of stock document
into ledger movements through ``inventory_kernel``'s ``MovementLedger`` and
owns the transaction boundary (commit on success, rollback on failure).
None of them touches ``Product.current_stock`` or ``average_cost``
directly.
"""

from inventory_modules.common import DocumentLine, PostingResult, StockDocumentPoster

__all__ = [
    "DocumentLine",
    "PostingResult",
    "StockDocumentPoster",
]
