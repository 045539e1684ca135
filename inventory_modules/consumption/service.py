"""
Internal Consumption Module Service (``inventory_modules.consumption.service``).

Responsibility
--------------
Approves an internal consumption (goods used by the business itself):
one ``internal_consumption`` movement per line, always valued at the
product's average cost, numbered ``CONS``.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.values import DocumentPrefix, MovementReason, ReferenceType
from inventory_kernel.logging_config import get_logger
from inventory_modules.common import DocumentLine, PostingResult, StockDocumentPoster

logger = get_logger("modules.consumption.service")


class ConsumptionService:
    """Posts approved internal consumptions to the movement ledger."""

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._poster = StockDocumentPoster(session, settings, clock)

    def approve_consumption(
        self,
        tenant_id: UUID,
        consumption_id: UUID,
        lines: Sequence[DocumentLine],
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """Consume the lines.  Any unit cost on the lines is ignored."""
        at_average = [
            DocumentLine(
                product_id=line.product_id,
                quantity=line.quantity,
                warehouse_id=line.warehouse_id,
                notes=line.notes,
            )
            for line in lines
        ]
        try:
            self._poster.begin()
            self._poster.require_no_history(
                tenant_id,
                ReferenceType.INTERNAL_CONSUMPTION,
                consumption_id,
                "consumption already approved",
            )
            self._poster.prevalidate_lines(tenant_id, at_average)
            result = self._poster.post_lines(
                tenant_id,
                at_average,
                reason=MovementReason.INTERNAL_CONSUMPTION,
                reference_type=ReferenceType.INTERNAL_CONSUMPTION,
                reference_id=consumption_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
                document_prefix=DocumentPrefix.INTERNAL_CONSUMPTION,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "consumption_approved",
            extra={
                "consumption_id": str(consumption_id),
                "document_number": result.document_number,
                "total_cost": result.total_cost,
            },
        )
        return result
