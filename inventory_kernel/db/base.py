"""
Module: inventory_kernel.db.base
Responsibility: Declarative base and column conventions shared by the
    ledger's tables (products, inventory_movements, document_sequences).
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - Primary keys are client-generated uuid4 values in native PostgreSQL
      ``uuid`` columns, so a movement's id is known before its INSERT.
    - Every Decimal column is Numeric(38, 9).  Quantities and costs are
      never floats; costs are rounded to the tenant's scale before they are
      stored, and the nine stored places leave room for fractional units.
    - Every counter (movement_count, product_seq, sequence values) is a
      BIGINT.
    - TrackedBase rows carry who created them and when.  On movements
      ``created_at`` is the write instant, independent of the business
      ``movement_date``.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: Uuid(as_uuid=True),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds creation and last-update provenance.

    ``updated_at`` / ``updated_by_id`` only ever change on products; the
    kardex listeners and triggers refuse any UPDATE of a movement.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[UUID]
    updated_by_id: Mapped[UUID | None]
