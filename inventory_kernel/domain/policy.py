"""
LedgerPolicy -- the kernel-side view of per-tenant ledger settings.

The kernel never reads configuration itself; ``inventory_config.bridges``
builds a LedgerPolicy from the loaded settings and the callers hand it to
``MovementLedger``.
"""

from dataclasses import dataclass

from inventory_kernel.domain.numbering import DEFAULT_WIDTH
from inventory_kernel.domain.values import DocumentPrefix


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Knobs the ledger honours when writing a movement.

    Attributes:
        movement_prefix: Number prefix for kardex movements.
        cost_decimal_places: Scale persisted costs are rounded to.
        number_width: Zero-pad width of the counter part of a number.
        lock_timeout_ms: ``SET LOCAL lock_timeout`` applied before the
            product lock; None keeps the server default (wait forever).
    """

    movement_prefix: str = DocumentPrefix.MOVEMENT.value
    cost_decimal_places: int = 2
    number_width: int = DEFAULT_WIDTH
    lock_timeout_ms: int | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.cost_decimal_places <= 9:
            raise ValueError(
                f"cost_decimal_places must be between 0 and 9, got {self.cost_decimal_places}"
            )
        if self.number_width < 1:
            raise ValueError(f"number_width must be >= 1, got {self.number_width}")
        if self.lock_timeout_ms is not None and self.lock_timeout_ms < 0:
            raise ValueError(f"lock_timeout_ms must be >= 0, got {self.lock_timeout_ms}")


DEFAULT_POLICY = LedgerPolicy()
