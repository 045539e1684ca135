"""
Sales Module Service (``inventory_modules.sales.service``).

Responsibility
--------------
Confirms a sale (one ``sale`` movement per line, at the average cost) and
cancels a confirmed sale (one ``sale_reversal`` movement per original
movement, at the original unit cost).

Invariants
----------
- Each public method owns its transaction boundary.
- A sale is confirmed once and cancelled at most once; the state is read
  from the sale's movements, never from a status flag.
- Outbound lines are pre-validated together so the caller sees every
  short product in one ``InsufficientStockLinesError``.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.values import MovementReason, ReferenceType
from inventory_kernel.exceptions import DocumentStateError
from inventory_kernel.logging_config import get_logger
from inventory_modules.common import (
    DocumentLine,
    PostingResult,
    StockDocumentPoster,
    lines_from_movements,
)

logger = get_logger("modules.sales.service")


class SaleService:
    """Posts sale confirmations and cancellations to the movement ledger."""

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._poster = StockDocumentPoster(session, settings, clock)

    def confirm_sale(
        self,
        tenant_id: UUID,
        sale_id: UUID,
        lines: Sequence[DocumentLine],
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """
        Take the sold quantities out of stock.

        Lines normally omit ``unit_cost`` so each movement is valued at the
        product's average cost (cost of goods sold).

        Raises:
            InsufficientStockLinesError: pre-validation found short lines.
            InsufficientStockError: stock changed between pre-validation
                and the locked write.
            DocumentStateError: the sale already has movements.
        """
        try:
            self._poster.begin()
            self._poster.require_no_history(
                tenant_id, ReferenceType.SALE, sale_id, "sale already confirmed"
            )
            self._poster.prevalidate_lines(tenant_id, lines)
            result = self._poster.post_lines(
                tenant_id,
                lines,
                reason=MovementReason.SALE,
                reference_type=ReferenceType.SALE,
                reference_id=sale_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "sale_confirmed",
            extra={"sale_id": str(sale_id), "lines": len(result.movements)},
        )
        return result

    def cancel_sale(
        self,
        tenant_id: UUID,
        sale_id: UUID,
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """
        Return the goods of a confirmed sale to stock.

        Each original ``sale`` movement is mirrored by a ``sale_reversal``
        at its original unit cost, so the reversal re-enters the goods at
        the value they left with.

        Raises:
            DocumentStateError: the sale was never confirmed, or was
                already cancelled.
        """
        try:
            self._poster.begin()
            self._poster.lock_document(tenant_id, ReferenceType.SALE, sale_id)
            history = self._poster.history(tenant_id, ReferenceType.SALE, sale_id)
            sold = [m for m in history if m.reason is MovementReason.SALE]
            if not sold:
                raise DocumentStateError(
                    ReferenceType.SALE.value, str(sale_id), "sale has no stock movements to reverse"
                )
            if any(m.reason is MovementReason.SALE_REVERSAL for m in history):
                raise DocumentStateError(
                    ReferenceType.SALE.value, str(sale_id), "sale already cancelled"
                )
            result = self._poster.post_lines(
                tenant_id,
                lines_from_movements(sold),
                reason=MovementReason.SALE_REVERSAL,
                reference_type=ReferenceType.SALE,
                reference_id=sale_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes or "Sale cancelled",
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "sale_cancelled",
            extra={"sale_id": str(sale_id), "lines": len(result.movements)},
        )
        return result
