"""
Adjustments Module Service (``inventory_modules.adjustments.service``).

Responsibility
--------------
Confirms a manual stock adjustment (count corrections, shrinkage, found
goods).  An adjustment has one direction for all of its lines: ``in``
posts ``adjustment_in`` movements, ``out`` posts ``adjustment_out``.
Each confirmation gets an ``AJ`` document number.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.values import (
    DocumentPrefix,
    MovementDirection,
    MovementReason,
    ReferenceType,
)
from inventory_kernel.exceptions import InvalidMovementTypeError
from inventory_kernel.logging_config import get_logger
from inventory_modules.common import DocumentLine, PostingResult, StockDocumentPoster

logger = get_logger("modules.adjustments.service")

_REASONS = {
    MovementDirection.IN: MovementReason.ADJUSTMENT_IN,
    MovementDirection.OUT: MovementReason.ADJUSTMENT_OUT,
}


class AdjustmentService:
    """Posts confirmed stock adjustments to the movement ledger."""

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._poster = StockDocumentPoster(session, settings, clock)

    def confirm_adjustment(
        self,
        tenant_id: UUID,
        adjustment_id: UUID,
        direction: MovementDirection | str,
        lines: Sequence[DocumentLine],
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """
        Apply an adjustment.  Inbound lines without a unit cost enter at the
        product's average cost, leaving it unchanged.

        Raises:
            InvalidMovementTypeError: ``direction`` is not ``in`` / ``out``.
            InsufficientStockLinesError: outbound lines exceed stock.
            DocumentStateError: the adjustment was already confirmed.
        """
        try:
            direction = MovementDirection(direction)
        except ValueError:
            raise InvalidMovementTypeError(str(direction)) from None
        reason = _REASONS[direction]

        try:
            self._poster.begin()
            self._poster.require_no_history(
                tenant_id, ReferenceType.ADJUSTMENT, adjustment_id, "adjustment already confirmed"
            )
            if direction is MovementDirection.OUT:
                self._poster.prevalidate_lines(tenant_id, lines)
            result = self._poster.post_lines(
                tenant_id,
                lines,
                reason=reason,
                reference_type=ReferenceType.ADJUSTMENT,
                reference_id=adjustment_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
                document_prefix=DocumentPrefix.ADJUSTMENT,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "adjustment_confirmed",
            extra={
                "adjustment_id": str(adjustment_id),
                "document_number": result.document_number,
                "direction": direction.value,
                "lines": len(result.movements),
            },
        )
        return result
