"""
Purchase Module Service (``inventory_modules.purchases.service``).

Responsibility
--------------
Receives a purchase: one ``purchase_receipt`` movement per line at the
purchase's unit cost, which moves each product's weighted-average cost.

Invariants
----------
- Each public method owns its transaction boundary: commit on success,
  rollback and re-raise on failure.
- A purchase is received once; a second receipt of the same purchase id
  raises ``DocumentStateError``.

Usage::

    service = PurchaseService(session)
    result = service.receive_purchase(
        tenant_id, purchase_id,
        [DocumentLine(product_id, Decimal("10"), Decimal("100"))],
        user_id=user_id,
    )
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.values import DocumentPrefix, MovementReason, ReferenceType
from inventory_kernel.exceptions import DocumentStateError
from inventory_kernel.logging_config import get_logger
from inventory_modules.common import DocumentLine, PostingResult, StockDocumentPoster

logger = get_logger("modules.purchases.service")


class PurchaseService:
    """Posts purchase receipts to the movement ledger."""

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._poster = StockDocumentPoster(session, settings, clock)

    def receive_purchase(
        self,
        tenant_id: UUID,
        purchase_id: UUID,
        lines: Sequence[DocumentLine],
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """
        Receive every line of a purchase into stock.

        Preconditions:
            - Every line carries a unit cost (the supplier's price); a
              receipt without a cost would silently re-use the average.

        Postconditions:
            - One inbound movement per physical line; average cost updated.
            - A ``COMP`` document number is allocated.
            - Session committed on success, rolled back on any failure.
        """
        try:
            self._poster.begin()
            for line in lines:
                if line.unit_cost is None:
                    raise DocumentStateError(
                        ReferenceType.PURCHASE.value,
                        str(purchase_id),
                        f"line for product {line.product_id} has no unit cost",
                    )
            self._poster.require_no_history(
                tenant_id, ReferenceType.PURCHASE, purchase_id, "purchase already received"
            )
            result = self._poster.post_lines(
                tenant_id,
                lines,
                reason=MovementReason.PURCHASE_RECEIPT,
                reference_type=ReferenceType.PURCHASE,
                reference_id=purchase_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
                document_prefix=DocumentPrefix.PURCHASE,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "purchase_received",
            extra={
                "purchase_id": str(purchase_id),
                "document_number": result.document_number,
                "lines": len(result.movements),
                "total_cost": result.total_cost,
            },
        )
        return result
