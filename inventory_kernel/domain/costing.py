"""
Weighted-average costing.

Responsibility:
    Computes a product's new average unit cost after an inbound movement.

Architecture position:
    Kernel > Domain -- pure function of its four numeric inputs, no I/O,
    no rounding.  The ledger rounds the result once, when persisting it
    (``inventory_kernel.db.types.round_cost``).

Policy:
    Moving average.  Outbound movements never change the cost basis; only
    inbound movements call into this module.  This is not FIFO lot tracking.
"""

from decimal import Decimal

_ZERO = Decimal("0")


def weighted_average(
    previous_stock: Decimal,
    previous_average_cost: Decimal,
    incoming_quantity: Decimal,
    incoming_unit_cost: Decimal,
) -> Decimal:
    """
    New average unit cost after receiving ``incoming_quantity`` units.

    Formula::

        (previous_stock * previous_average_cost
         + incoming_quantity * incoming_unit_cost)
        / (previous_stock + incoming_quantity)

    If the resulting stock is zero the formula is undefined and the incoming
    unit cost is returned.  The same holds when the resulting stock is still
    negative (only possible for products that allow negative stock): the
    old basis was computed over units that no longer exist, so the receipt's
    own cost is the only meaningful basis.

    Example:
        >>> weighted_average(Decimal("10"), Decimal("100"), Decimal("5"), Decimal("130"))
        Decimal('110')
    """
    total_quantity = previous_stock + incoming_quantity
    if total_quantity <= _ZERO:
        return incoming_unit_cost

    total_value = (
        previous_stock * previous_average_cost
        + incoming_quantity * incoming_unit_cost
    )
    return total_value / total_quantity
