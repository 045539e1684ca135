"""Database layer - engine, base classes, column types, locking and kardex protection."""

from inventory_kernel.db.base import Base, TrackedBase
from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from inventory_kernel.db.types import Money, Quantity, round_cost

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "Money",
    "Quantity",
    "round_cost",
]
