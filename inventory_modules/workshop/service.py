"""
Workshop Module Service (``inventory_modules.workshop.service``).

Responsibility
--------------
Parts used on a work order leave stock as ``workshop_part`` movements at
average cost; parts taken back off the order re-enter as
``workshop_part_return`` at the cost they left with.  Work orders are
numbered ``OT``.

Invariants
----------
- A work order can never return more of a product than it consumed; the
  outstanding quantity is computed from the work order's movements.
- Service products (labour) are accepted and skipped: they never touch
  stock.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerSettings
from inventory_kernel.db.types import to_decimal
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.values import DocumentPrefix, MovementReason, ReferenceType
from inventory_kernel.exceptions import DocumentStateError
from inventory_kernel.logging_config import get_logger
from inventory_modules.common import DocumentLine, PostingResult, StockDocumentPoster

logger = get_logger("modules.workshop.service")

_ZERO = Decimal("0")


class WorkshopService:
    """Posts work-order part consumption and returns to the movement ledger."""

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._poster = StockDocumentPoster(session, settings, clock)

    def allocate_work_order_number(
        self, tenant_id: UUID, on_date: date | None = None
    ) -> str:
        """Hand out the next ``OT`` number for a new work order and commit it."""
        on_date = on_date or self._poster.clock.today()
        try:
            self._poster.begin()
            number = self._poster.allocate_number(tenant_id, DocumentPrefix.WORK_ORDER, on_date)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return number

    def outstanding_parts(self, tenant_id: UUID, work_order_id: UUID) -> dict[UUID, Decimal]:
        """Quantity of each product consumed by the work order and not yet returned."""
        outstanding: dict[UUID, Decimal] = {}
        for m in self._poster.history(tenant_id, ReferenceType.WORK_ORDER, work_order_id):
            sign = 1 if m.reason is MovementReason.WORKSHOP_PART else -1
            outstanding[m.product_id] = outstanding.get(m.product_id, _ZERO) + sign * m.quantity
        return {pid: qty for pid, qty in outstanding.items() if qty > _ZERO}

    def add_part(
        self,
        tenant_id: UUID,
        work_order_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """Consume a part on the work order."""
        line = DocumentLine(product_id=product_id, quantity=quantity)
        try:
            self._poster.begin()
            self._poster.lock_document(tenant_id, ReferenceType.WORK_ORDER, work_order_id)
            self._poster.prevalidate_lines(tenant_id, [line])
            result = self._poster.post_lines(
                tenant_id,
                [line],
                reason=MovementReason.WORKSHOP_PART,
                reference_type=ReferenceType.WORK_ORDER,
                reference_id=work_order_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "workshop_part_added",
            extra={
                "work_order_id": str(work_order_id),
                "product_id": str(product_id),
                "quantity": quantity,
                "skipped": bool(result.skipped_product_ids),
            },
        )
        return result

    def remove_part(
        self,
        tenant_id: UUID,
        work_order_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """
        Take a part back off the work order and return it to stock.

        Raises:
            DocumentStateError: ``quantity`` exceeds what the work order
                consumed of the product and has not already returned.
        """
        try:
            self._poster.begin()
            self._poster.lock_document(tenant_id, ReferenceType.WORK_ORDER, work_order_id)
            history = self._poster.history(tenant_id, ReferenceType.WORK_ORDER, work_order_id)
            consumed = [
                m
                for m in history
                if m.product_id == product_id and m.reason is MovementReason.WORKSHOP_PART
            ]
            outstanding = self.outstanding_parts(tenant_id, work_order_id).get(product_id, _ZERO)
            if to_decimal(quantity) > outstanding:
                raise DocumentStateError(
                    ReferenceType.WORK_ORDER.value,
                    str(work_order_id),
                    f"cannot return {quantity} of product {product_id}; "
                    f"{outstanding} outstanding",
                )
            result = self._poster.post_lines(
                tenant_id,
                [
                    DocumentLine(
                        product_id=product_id,
                        quantity=quantity,
                        unit_cost=consumed[-1].unit_cost,
                    )
                ],
                reason=MovementReason.WORKSHOP_PART_RETURN,
                reference_type=ReferenceType.WORK_ORDER,
                reference_id=work_order_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "workshop_part_removed",
            extra={
                "work_order_id": str(work_order_id),
                "product_id": str(product_id),
                "quantity": quantity,
            },
        )
        return result
