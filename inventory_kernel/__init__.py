"""
Inventory Kernel - movement ledger and weighted-average costing.

An append-only stock ledger with:
- Row-locked stock mutation (one writer per product at a time)
- Weighted-average unit cost recomputed on every inbound movement
- Tenant-scoped, gap-free document numbering
- Participation in the caller's transaction (never owns one)
"""

__version__ = "0.1.0"
