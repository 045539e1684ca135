"""
Product -- the stock-carrying catalogue item.

Responsibility:
    Holds the running stock scalar and the weighted-average unit cost of one
    product of one tenant.  Those two fields (and ``movement_count``) are the
    ledger's write targets; everything else is catalogue data owned by the
    callers.

Architecture position:
    Kernel > Models.  May import from db/base.py, db/types.py and domain/.

Invariants enforced:
    - ``current_stock``, ``average_cost`` and ``movement_count`` change only
      through ``MovementLedger.record_movement``.  A database trigger rejects
      any update of those columns that is not backed by the movement with
      ``product_seq = movement_count``.
    - A product referenced by any movement cannot be deleted (FK RESTRICT
      plus the ORM guard in db/immutability.py).

Non-goals:
    - ``available_stock`` is derived (current - reserved) and maintained by
      the callers that manage reservations, never by the ledger.
    - ``min_stock`` / ``max_stock`` feed external alerting only.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Enum, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.db.types import Money, Quantity
from inventory_kernel.domain.values import ProductType


def enum_column_type(enum_cls, length: int = 40) -> Enum:
    """Store a str-Enum by value in a VARCHAR column and load it back as the enum."""
    return Enum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class Product(TrackedBase):
    """A tenant's product, with stock and average cost maintained by the ledger."""

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
        Index("idx_product_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)

    sku: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    product_type: Mapped[ProductType] = mapped_column(
        enum_column_type(ProductType, length=20),
        default=ProductType.PHYSICAL,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Signed: may go negative only when allow_negative_stock is set
    current_stock: Mapped[Quantity] = mapped_column(
        default=Decimal("0"), nullable=False
    )

    reserved_stock: Mapped[Quantity] = mapped_column(
        default=Decimal("0"), nullable=False
    )

    available_stock: Mapped[Quantity] = mapped_column(
        default=Decimal("0"), nullable=False
    )

    min_stock: Mapped[Quantity] = mapped_column(default=Decimal("0"), nullable=False)

    max_stock: Mapped[Quantity | None] = mapped_column(nullable=True)

    average_cost: Mapped[Money] = mapped_column(default=Decimal("0"), nullable=False)

    allow_negative_stock: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Number of movements ever written; the last one has product_seq == movement_count
    movement_count: Mapped[int] = mapped_column(default=0, nullable=False)

    @property
    def is_stocked(self) -> bool:
        return self.product_type is ProductType.PHYSICAL

    def __repr__(self) -> str:
        return f"<Product {self.sku} stock={self.current_stock} avg={self.average_cost}>"
