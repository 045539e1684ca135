"""
Closed vocabularies and immutable value objects of the movement ledger.

Responsibility:
    Defines the enumerations that classify a movement (direction, reason,
    originating document type, document prefix) and the frozen DTOs the
    ledger hands back to callers.  The string values are a stable contract
    consumed by reporting and export collaborators.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Every MovementReason belongs to exactly one MovementDirection
      (``MovementReason.direction``); the ledger rejects mismatches.
    - MovementRecord.total_cost == quantity * unit_cost (rounded at persist).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class MovementDirection(str, Enum):
    """Whether a movement adds to or removes from stock."""

    IN = "in"
    OUT = "out"

    @property
    def sign(self) -> int:
        return 1 if self is MovementDirection.IN else -1


class MovementReason(str, Enum):
    """Why stock moved.  Each reason implies one direction."""

    PURCHASE_RECEIPT = "purchase_receipt"
    SALE = "sale"
    SALE_REVERSAL = "sale_reversal"
    ADJUSTMENT_IN = "adjustment_in"
    ADJUSTMENT_OUT = "adjustment_out"
    TRANSFER_SEND = "transfer_send"
    TRANSFER_RECEIVE = "transfer_receive"
    TRANSFER_CANCEL = "transfer_cancel"
    SUPPLIER_RETURN = "supplier_return"
    CUSTOMER_RETURN = "customer_return"
    INTERNAL_CONSUMPTION = "internal_consumption"
    WORKSHOP_PART = "workshop_part"
    WORKSHOP_PART_RETURN = "workshop_part_return"

    @property
    def direction(self) -> MovementDirection:
        return _REASON_DIRECTIONS[self]


_REASON_DIRECTIONS: dict[MovementReason, MovementDirection] = {
    MovementReason.PURCHASE_RECEIPT: MovementDirection.IN,
    MovementReason.SALE: MovementDirection.OUT,
    MovementReason.SALE_REVERSAL: MovementDirection.IN,
    MovementReason.ADJUSTMENT_IN: MovementDirection.IN,
    MovementReason.ADJUSTMENT_OUT: MovementDirection.OUT,
    MovementReason.TRANSFER_SEND: MovementDirection.OUT,
    MovementReason.TRANSFER_RECEIVE: MovementDirection.IN,
    MovementReason.TRANSFER_CANCEL: MovementDirection.IN,
    MovementReason.SUPPLIER_RETURN: MovementDirection.OUT,
    MovementReason.CUSTOMER_RETURN: MovementDirection.IN,
    MovementReason.INTERNAL_CONSUMPTION: MovementDirection.OUT,
    MovementReason.WORKSHOP_PART: MovementDirection.OUT,
    MovementReason.WORKSHOP_PART_RETURN: MovementDirection.IN,
}


class ReferenceType(str, Enum):
    """Kind of business document a movement originates from."""

    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    SUPPLIER_RETURN = "supplier_return"
    CUSTOMER_RETURN = "customer_return"
    INTERNAL_CONSUMPTION = "internal_consumption"
    WORK_ORDER = "work_order"


class DocumentPrefix(str, Enum):
    """Number prefixes, one per numbered document kind."""

    MOVEMENT = "MOV"
    ADJUSTMENT = "AJ"
    TRANSFER = "TRANS"
    PURCHASE = "COMP"
    SUPPLIER_RETURN = "DEVP"
    CUSTOMER_RETURN = "DEVC"
    INTERNAL_CONSUMPTION = "CONS"
    WORK_ORDER = "OT"


class ProductType(str, Enum):
    """Physical goods carry stock; services never do."""

    PHYSICAL = "physical"
    SERVICE = "service"


@dataclass(frozen=True)
class MovementRecord:
    """
    A persisted kardex row, as returned by ``MovementLedger.record_movement``.

    Contract: Immutable snapshot of what was written.  ``product_seq`` is the
    movement's position in the product's authoritative order; the
    ``movement_number`` is for display only.
    """

    id: UUID
    tenant_id: UUID
    product_id: UUID
    movement_number: str
    product_seq: int
    direction: MovementDirection
    reason: MovementReason
    quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    previous_stock: Decimal
    new_stock: Decimal
    previous_average_cost: Decimal
    new_average_cost: Decimal
    user_id: UUID
    movement_date: date
    reference_type: ReferenceType | None = None
    reference_id: UUID | None = None
    warehouse_id: UUID | None = None
    notes: str | None = None
    created_at: datetime | None = None

    @property
    def signed_quantity(self) -> Decimal:
        return self.quantity * self.direction.sign


@dataclass(frozen=True)
class KardexLine:
    """One row of a product's kardex report."""

    movement_id: UUID
    movement_number: str
    product_seq: int
    movement_date: date
    direction: MovementDirection
    reason: MovementReason
    quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    previous_stock: Decimal
    new_stock: Decimal
    average_cost: Decimal
    reference_type: ReferenceType | None
    reference_id: UUID | None
    user_id: UUID
    notes: str | None

    @property
    def quantity_in(self) -> Decimal:
        return self.quantity if self.direction is MovementDirection.IN else Decimal("0")

    @property
    def quantity_out(self) -> Decimal:
        return self.quantity if self.direction is MovementDirection.OUT else Decimal("0")


@dataclass(frozen=True)
class KardexSummary:
    """Totals over a kardex window."""

    product_id: UUID
    movement_count: int
    total_in: Decimal
    total_out: Decimal
    inbound_cost: Decimal
    ending_stock: Decimal
    average_inbound_cost: Decimal


@dataclass(frozen=True)
class MovementFilter:
    """Criteria for ``KardexSelector.list_movements``.  ``None`` means any."""

    product_id: UUID | None = None
    direction: MovementDirection | None = None
    reason: MovementReason | None = None
    reference_type: ReferenceType | None = None
    reference_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    search: str | None = None
    sort_by: str = "movement_date"
    descending: bool = True


@dataclass(frozen=True)
class MovementPage:
    items: tuple[MovementRecord, ...]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


@dataclass(frozen=True)
class MovementStats:
    """Dashboard counters for a tenant's movements."""

    movements_today: int
    movements_this_month: int
    quantity_in_this_month: Decimal
    quantity_out_this_month: Decimal


@dataclass(frozen=True)
class ReplayResult:
    """
    Outcome of replaying one product's kardex from zero.

    ``breaks`` lists human-readable descriptions of every discontinuity
    found; an empty tuple with ``matches_product`` set means the kardex
    fully explains the product's current stock.
    """

    product_id: UUID
    movement_count: int
    replayed_stock: Decimal
    recorded_stock: Decimal
    breaks: tuple[str, ...] = ()

    @property
    def matches_product(self) -> bool:
        return self.replayed_stock == self.recorded_stock

    @property
    def ok(self) -> bool:
        return self.matches_product and not self.breaks
