"""
Module: inventory_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for stock and cost
    columns.  Centralizes precision so that every model and service uses the
    same definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the kernel.  Quantities and costs are Decimal.
    - round_cost() is the ONLY sanctioned rounding function for persisted
      costs.  It is applied at the point of persisting, never to
      intermediate results, so rounding error does not compound inside one
      computation.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric

# Stock quantity (signed on products, always positive on movements)
Quantity = Annotated[Decimal, Numeric(38, 9)]

# Monetary amount (unit cost, total cost, average cost)
Money = Annotated[Decimal, Numeric(38, 9)]

# Storage precision of Numeric(38, 9)
STORAGE_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

# Minor-unit exponents for currencies that do not use two decimals.
# Everything not listed uses 2.
_CURRENCY_EXPONENTS: dict[str, int] = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "UYI": 0, "VND": 0, "VUV": 0,
    "XAF": 0, "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
    "CLF": 4, "UYW": 4,
}


def currency_decimal_places(currency: str) -> int:
    """Number of minor-unit digits for an ISO 4217 code (default 2)."""
    return _CURRENCY_EXPONENTS.get(currency.upper(), 2)


def round_cost(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Preconditions: value is a Decimal; 0 <= decimal_places <= 9.
    Postconditions: Returns value quantized with ROUND_HALF_UP by default.
    """
    if decimal_places < 0 or decimal_places > STORAGE_DECIMAL_PLACES:
        raise ValueError(
            f"decimal_places must be between 0 and {STORAGE_DECIMAL_PLACES}, "
            f"got {decimal_places}"
        )
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce a quantity/cost argument to Decimal.

    Floats are rejected: binary floating point cannot represent most
    decimal quantities exactly.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Use Decimal or str for quantities and costs, got {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)
