"""
StockGuard -- the non-negative stock predicate.

Responsibility:
    Decides whether an outbound quantity may leave a product's stock.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The ledger evaluates it against the
    stock it read under the product row lock; orchestrators may evaluate it
    earlier for a friendlier aggregated error, but that early answer is
    advisory only.

Invariants enforced:
    A product with ``allow_negative_stock = False`` never reaches a stock
    below zero through an outbound movement.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from inventory_kernel.exceptions import InsufficientStockError

_ZERO = Decimal("0")


@dataclass(frozen=True)
class StockCheck:
    """Outcome of ``check_stock``."""

    ok: bool
    available: Decimal
    requested: Decimal
    shortfall: Decimal

    def raise_for(self, product: Any) -> None:
        """
        Raise ``InsufficientStockError`` for ``product`` if the check failed.

        ``product`` only needs ``id``, ``name`` and ``sku`` attributes.
        """
        if self.ok:
            return
        raise InsufficientStockError(
            product_id=str(product.id),
            product_name=product.name,
            available=self.available,
            requested=self.requested,
            sku=getattr(product, "sku", None),
        )


def check_stock(
    current_stock: Decimal,
    requested_out_quantity: Decimal,
    allow_negative: bool,
) -> StockCheck:
    """
    OK iff ``current_stock - requested_out_quantity >= 0`` or negatives are
    allowed.  Never touches the database.
    """
    remaining = current_stock - requested_out_quantity
    ok = allow_negative or remaining >= _ZERO
    shortfall = _ZERO if remaining >= _ZERO else -remaining
    return StockCheck(
        ok=ok,
        available=current_stock,
        requested=requested_out_quantity,
        shortfall=shortfall,
    )
