"""
InventoryMovement -- one immutable kardex row.

Responsibility:
    Records a single stock change of one product: direction, reason, the
    originating document, quantity and cost, and the stock / average-cost
    snapshot before and after.

Architecture position:
    Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Append-only.  ORM listeners (db/immutability.py) and PostgreSQL
      triggers (db/sql/01_inventory_movement.sql) reject UPDATE and DELETE.
    - ``new_stock = previous_stock + quantity`` (in) or ``- quantity`` (out).
    - ``product_seq`` is unique per product and strictly increasing; for
      consecutive values ``new_stock[n] == previous_stock[n + 1]``.
    - ``movement_number`` is unique per tenant.

Audit relevance:
    Replaying a product's movements in ``product_seq`` order from zero must
    reproduce ``Product.current_stock`` exactly.  Reversals are new
    opposite-direction rows with the same reference, never edits.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.db.types import Money, Quantity
from inventory_kernel.domain.values import (
    MovementDirection,
    MovementReason,
    MovementRecord,
    ReferenceType,
)
from inventory_kernel.models.product import enum_column_type


class InventoryMovement(TrackedBase):
    """A single kardex entry.  Never updated, never deleted."""

    __tablename__ = "inventory_movements"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "movement_number", name="uq_movement_tenant_number"
        ),
        UniqueConstraint("product_id", "product_seq", name="uq_movement_product_seq"),
        CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        Index("idx_movement_tenant_date", "tenant_id", "movement_date"),
        Index("idx_movement_product_date", "product_id", "movement_date", "product_seq"),
        Index("idx_movement_reference", "tenant_id", "reference_type", "reference_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)

    # {PREFIX}-{YYYY}-{NNNNN}
    movement_number: Mapped[str] = mapped_column(String(40), nullable=False)

    direction: Mapped[MovementDirection] = mapped_column(
        enum_column_type(MovementDirection, length=3), nullable=False
    )

    reason: Mapped[MovementReason] = mapped_column(
        enum_column_type(MovementReason), nullable=False
    )

    reference_type: Mapped[ReferenceType | None] = mapped_column(
        enum_column_type(ReferenceType), nullable=True
    )

    reference_id: Mapped[UUID | None] = mapped_column(nullable=True)

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Traceability only; stock is not partitioned by warehouse
    warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)

    quantity: Mapped[Quantity] = mapped_column(nullable=False)

    unit_cost: Mapped[Money] = mapped_column(nullable=False)

    total_cost: Mapped[Money] = mapped_column(nullable=False)

    previous_stock: Mapped[Quantity] = mapped_column(nullable=False)

    new_stock: Mapped[Quantity] = mapped_column(nullable=False)

    previous_average_cost: Mapped[Money] = mapped_column(nullable=False)

    new_average_cost: Mapped[Money] = mapped_column(nullable=False)

    product_seq: Mapped[int] = mapped_column(nullable=False)

    user_id: Mapped[UUID] = mapped_column(nullable=False)

    # Business date (drives the number's year), not the write timestamp
    movement_date: Mapped[date] = mapped_column(Date, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> MovementRecord:
        return MovementRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            product_id=self.product_id,
            movement_number=self.movement_number,
            product_seq=self.product_seq,
            direction=MovementDirection(self.direction),
            reason=MovementReason(self.reason),
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            total_cost=self.total_cost,
            previous_stock=self.previous_stock,
            new_stock=self.new_stock,
            previous_average_cost=self.previous_average_cost,
            new_average_cost=self.new_average_cost,
            user_id=self.user_id,
            movement_date=self.movement_date,
            reference_type=(
                ReferenceType(self.reference_type) if self.reference_type else None
            ),
            reference_id=self.reference_id,
            warehouse_id=self.warehouse_id,
            notes=self.notes,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement {self.movement_number} {self.direction} "
            f"{self.quantity} seq={self.product_seq}>"
        )
